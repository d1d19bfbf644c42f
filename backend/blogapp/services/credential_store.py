import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from blogapp.core.errors import UserAlreadyExists
from blogapp.core.models import User
from blogapp.core.security import hash_password, verify_password
from blogapp.services.base import SqlStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    """Учётная запись: имя пользователя и bcrypt-хеш пароля"""
    username: str
    password_hash: str

    def check_password(self, plain_password: str) -> bool:
        return verify_password(plain_password, self.password_hash)


def _to_record(user: User) -> UserRecord:
    return UserRecord(username=user.username, password_hash=user.hashed_password)


class CredentialStore(SqlStore):
    """
    Хранилище учётных записей.

    Уникальность имени проверяет вызывающий код через lookup() перед create(),
    уникальный индекс в таблице страхует от гонки двух регистраций.
    """

    async def lookup(self, username: str) -> Optional[UserRecord]:
        """
        Docstring для lookup

        :param username: Имя пользователя, точное совпадение с учётом регистра
        :type username: str
        :return: Запись пользователя или None, если такого нет
        :rtype: Optional[UserRecord]
        """
        def work(db: Session) -> Optional[UserRecord]:
            user = db.query(User).filter(User.username == username).first()
            return _to_record(user) if user else None

        return await self._run("users.lookup", work)

    async def create(self, username: str, password: str) -> UserRecord:
        """
        Docstring для create

        :param username: Имя нового пользователя
        :param password: Пароль в открытом виде, в БД попадает только хеш
        :return: Созданная запись
        """
        hashed = await asyncio.to_thread(hash_password, password)

        def work(db: Session) -> UserRecord:
            user = User(username=username, hashed_password=hashed)
            db.add(user)
            try:
                db.flush()
            except IntegrityError:
                raise UserAlreadyExists(f"Пользователь уже существует: {username}")
            return _to_record(user)

        record = await self._run("users.create", work)
        logger.info("Создан пользователь: %s", username)
        return record

    async def count(self) -> int:
        return await self._count("users.count", User)
