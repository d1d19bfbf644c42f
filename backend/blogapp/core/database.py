"""
Настройка подключения к базе данных.

Движок и фабрика сессий создаются явно (в lifespan приложения или в manage.py)
и передаются хранилищам, глобального движка нет.
"""

import threading
from contextlib import nullcontext
from pathlib import Path
from typing import ContextManager, Optional
from weakref import WeakKeyDictionary

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Базовый класс для моделей
Base = declarative_base()

# Блокировки для движков с одним общим соединением (in-memory SQLite)
_shared_connection_locks: "WeakKeyDictionary[Engine, threading.Lock]" = WeakKeyDictionary()


def build_engine(database_url: str) -> Engine:
    """
    Создаёт движок БД.

    Для SQLite отключаем проверку потока (запросы выполняются в threadpool),
    а для in-memory базы держим одно соединение, иначе каждое соединение
    получит свою пустую базу.

    In-memory режим (sqlite://) предназначен только для тестов: все потоки
    делят одно соединение, поэтому операции хранилищ над таким движком
    выполняются строго по одной (см. session_lock).
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False}  # Только для SQLite
        )

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _shared_connection_locks[engine] = threading.Lock()
    return engine


def session_lock(engine: Optional[Engine]) -> ContextManager:
    """Блокировка на время сессии: настоящая только для движка с общим соединением"""
    if engine is None:
        return nullcontext()
    return _shared_connection_locks.get(engine) or nullcontext()


def build_session_factory(engine: Engine) -> sessionmaker:
    """Фабрика сессий для работы с БД"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Создаёт таблицы (если их нет)"""
    # Импорт нужен, чтобы модели зарегистрировались в Base.metadata
    from blogapp.core import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
