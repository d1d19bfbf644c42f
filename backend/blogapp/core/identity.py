from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Identity:
    """
    Кто выполняет запрос.

    username=None означает анонимного посетителя.
    """
    username: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.username is None

    @property
    def is_authenticated(self) -> bool:
        return self.username is not None


ANONYMOUS = Identity()
