"""
Менеджер сессий: вход, выход и восстановление пользователя по токену.

Токен в cookie - подписанный JWT, внутри только ID серверной сессии.
Связь "сессия -> username" хранится в таблице sessions, и менять её
может только этот модуль.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from blogapp import config
from blogapp.core.errors import AuthenticationFailure, StorageFailure
from blogapp.core.identity import ANONYMOUS, Identity
from blogapp.core.models import UserSession
from blogapp.core.security import create_session_token, decode_session_token
from blogapp.services.base import SqlStore
from blogapp.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class SessionManager(SqlStore):
    """Сессии пользователей поверх CredentialStore"""

    def __init__(
        self,
        session_factory: sessionmaker,
        credentials: CredentialStore,
        timeout: Optional[float] = None,
    ):
        super().__init__(session_factory, timeout)
        self.credentials = credentials

    # ============= ВХОД =============

    async def authenticate(self, username: str, password: str) -> Identity:
        """
        Проверяет логин и пароль.

        Клиенту причина отказа не сообщается (чтобы нельзя было перебирать
        имена), в лог пишем, что именно не так.

        :raises AuthenticationFailure: нет такого пользователя или пароль неверный
        :raises StorageFailure: хранилище недоступно
        """
        logger.info("Попытка входа: %s", username)

        user = await self.credentials.lookup(username)
        if user is None:
            logger.warning("Пользователь %s не найден", username)
            raise AuthenticationFailure()

        if not await asyncio.to_thread(user.check_password, password):
            logger.warning("Неверный пароль для пользователя %s", username)
            raise AuthenticationFailure()

        return Identity(username=user.username)

    async def open_session(self, identity: Identity) -> str:
        """
        Создаёт серверную сессию и возвращает подписанный токен для cookie.

        Заодно удаляет сессии старше срока жизни токена: такие токены
        всё равно уже не пройдут проверку.
        """
        def work(db: Session) -> str:
            expired = _expired_sessions(db).delete(synchronize_session=False)
            if expired:
                logger.debug("Удалено просроченных сессий: %s", expired)
            session = UserSession(username=identity.username)
            db.add(session)
            db.flush()
            return session.id

        session_id = await self._run("sessions.open", work)
        logger.info("Пользователь вошёл: %s", identity.username)
        return create_session_token(session_id)

    async def login(self, username: str, password: str) -> Tuple[Identity, str]:
        identity = await self.authenticate(username, password)
        token = await self.open_session(identity)
        return identity, token

    # ============= ВОССТАНОВЛЕНИЕ СЕССИИ =============

    async def resolve_session(self, token: Optional[str]) -> Identity:
        """
        Docstring для resolve_session

        Никогда не бросает исключений: любой сбой означает анонима.
        Если учётную запись успели удалить, возвращаем Identity с одним username.

        :param token: Значение cookie (может отсутствовать)
        :return: Identity пользователя или ANONYMOUS
        :rtype: Identity
        """
        if not token:
            return ANONYMOUS

        session_id = decode_session_token(token)
        if session_id is None:
            logger.debug("Токен сессии не прошёл проверку")
            return ANONYMOUS

        try:
            username = await self._run(
                "sessions.resolve",
                lambda db: db.query(UserSession.username).filter(UserSession.id == session_id).scalar(),
            )
        except StorageFailure:
            logger.warning("Хранилище сессий недоступно, запрос обработан как анонимный")
            return ANONYMOUS

        if username is None:
            logger.debug("Сессия %s не найдена (уже вышли?)", session_id)
            return ANONYMOUS

        try:
            user = await self.credentials.lookup(username)
        except StorageFailure:
            logger.warning("Не удалось загрузить пользователя %s, запрос обработан как анонимный", username)
            return ANONYMOUS

        if user is None:
            logger.info("Пользователь %s из сессии больше не существует", username)
            return Identity(username=username)

        return Identity(username=user.username)

    # ============= ВЫХОД =============

    async def terminate(self, token: Optional[str]) -> None:
        """Закрывает сессию. Повторный вызов и битый токен - не ошибка."""
        if not token:
            return

        session_id = decode_session_token(token)
        if session_id is None:
            return

        try:
            removed = await self._run(
                "sessions.terminate",
                lambda db: db.query(UserSession).filter(UserSession.id == session_id).delete(synchronize_session=False),
            )
        except StorageFailure:
            logger.error("Не удалось удалить сессию %s", session_id)
            return

        if removed:
            logger.info("Сессия %s закрыта", session_id)

    async def purge_expired(self) -> int:
        """Удаляет просроченные сессии, возвращает их количество"""
        removed = await self._run(
            "sessions.purge",
            lambda db: _expired_sessions(db).delete(synchronize_session=False),
        )
        logger.info("Удалено просроченных сессий: %s", removed)
        return removed


def _expired_sessions(db: Session):
    cutoff = datetime.utcnow() - timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    return db.query(UserSession).filter(UserSession.created_at < cutoff)
