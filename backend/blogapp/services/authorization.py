"""
Проверка прав на посты.

Правило одно: менять и удалять пост может только его автор.
Смотреть посты может кто угодно, включая анонимов.
"""
from enum import Enum
from typing import Optional, Protocol

from blogapp.core.errors import AuthorizationDenied
from blogapp.core.identity import Identity


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class Decision(str, Enum):
    PERMIT = "permit"
    DENY = "deny"


class Authored(Protocol):
    """Всё, у чего есть автор: сохранённый пост или присланная форма"""
    author: Optional[str]


def is_author(identity: Identity, post: Optional[Authored]) -> bool:
    """Флаг для отображения ("это ваш пост"), а не проверка доступа"""
    return (
        post is not None
        and identity.is_authenticated
        and identity.username == post.author
    )


def authorize(identity: Identity, post: Optional[Authored], action: Action) -> Decision:
    """
    Docstring для authorize

    :param identity: Кто выполняет действие
    :param post: Пост (для CREATE - присланные данные, для EDIT/DELETE None значит "не найден")
    :param action: Действие
    :return: PERMIT или DENY
    :rtype: Decision
    """
    if action is Action.VIEW:
        return Decision.PERMIT

    if identity.is_anonymous:
        return Decision.DENY

    if action is Action.CREATE:
        # Совпадение автора с вошедшим пользователем не проверяется
        if post is None or not post.author:
            return Decision.DENY
        return Decision.PERMIT

    return Decision.PERMIT if is_author(identity, post) else Decision.DENY


def ensure_permitted(
    identity: Identity,
    post: Optional[Authored],
    action: Action,
    message: Optional[str] = None,
) -> None:
    """Как authorize(), но при DENY бросает AuthorizationDenied"""
    if authorize(identity, post, action) is Decision.DENY:
        raise AuthorizationDenied(message or "")
