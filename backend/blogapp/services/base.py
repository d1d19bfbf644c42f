import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from blogapp import config
from blogapp.core.database import session_lock
from blogapp.core.errors import StorageFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _CommitGate:
    """
    Решение "коммитить или откатить", которое поток БД ждёт от event loop.

    Поток сообщает, что работа сделана и всё готово к commit, и ждёт ответа.
    Если ответ "нет" (таймаут или отмена запроса), транзакция откатывается.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self.ready = loop.create_future()
        self._decided = threading.Event()
        self._commit = False

    def wait_for_commit(self) -> bool:
        # Вызывается из потока БД
        if not self._decided.is_set():
            try:
                self._loop.call_soon_threadsafe(self._mark_ready)
            except RuntimeError:
                # event loop уже закрыт, ждать ответа некому
                return False
        self._decided.wait()
        return self._commit

    def _mark_ready(self) -> None:
        if not self.ready.done():
            self.ready.set_result(None)

    def decide(self, commit: bool) -> None:
        if not self._decided.is_set():
            self._commit = commit
            self._decided.set()


def _consume_result(task: "asyncio.Future") -> None:
    # Брошенный после таймаута поток может упасть, это уже никого не ждёт
    if not task.cancelled():
        task.exception()


class SqlStore:
    """
    Базовый класс хранилищ поверх SQLAlchemy.

    Каждая операция - отдельная короткая сессия БД, выполняемая в threadpool,
    чтобы не блокировать event loop. Ошибки БД и таймауты превращаются
    в StorageFailure, "не найдено" ошибкой не считается.

    Таймаут действует до момента commit: если время вышло, транзакция
    откатывается, и StorageFailure значит "ничего не записано". Начатый
    commit не прерывается, его результат возвращается как есть.
    """

    def __init__(self, session_factory: sessionmaker, timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.timeout = config.STORE_TIMEOUT_SECONDS if timeout is None else timeout
        self._lock = session_lock(session_factory.kw.get("bind"))

    def _in_session(self, work: Callable[[Session], T], gate: _CommitGate) -> Optional[T]:
        with self._lock:
            db = self.session_factory()
            try:
                result = work(db)
                db.flush()
                if not gate.wait_for_commit():
                    db.rollback()
                    return None
                db.commit()
                return result
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        """
        Выполняет work(db) в отдельном потоке с ограничением по времени.

        :param operation: Имя операции для логов
        :param work: Функция, получающая сессию БД
        :return: Результат work
        """
        gate = _CommitGate(asyncio.get_running_loop())
        task = asyncio.ensure_future(asyncio.to_thread(self._in_session, work, gate))
        task.add_done_callback(_consume_result)

        try:
            done, _ = await asyncio.wait(
                {task, gate.ready},
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                gate.decide(False)
                logger.error("Таймаут хранилища (%s с), транзакция откатывается: %s", self.timeout, operation)
                raise StorageFailure(operation, asyncio.TimeoutError())

            gate.decide(True)
            return await task
        except asyncio.CancelledError:
            gate.decide(False)
            raise
        except SQLAlchemyError as e:
            logger.error("Ошибка хранилища: %s", operation, exc_info=True)
            raise StorageFailure(operation, e) from e

    async def _count(self, operation: str, model: Any) -> int:
        return await self._run(operation, lambda db: db.query(model).count())
