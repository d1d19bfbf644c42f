# Таблицы блога: пользователи, посты и серверные сессии

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from blogapp.core.database import Base

# Формат времени поста, как его видит читатель
POST_TIME_FORMAT = "%Y-%m-%d %H:%M"


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """SQLAlchemy модель - учётная запись пользователя"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)                            # В БД: INTEGER PRIMARY KEY
    username = Column(String, unique=True, nullable=False, index=True)  # В БД: VARCHAR UNIQUE, регистр важен
    hashed_password = Column(String, nullable=False)                  # bcrypt-хеш, сравнивается только через verify
    created_at = Column(DateTime, default=datetime.utcnow)


class Post(Base):
    """SQLAlchemy модель - пост в блоге"""
    __tablename__ = "posts"

    id = Column(String(32), primary_key=True, default=_new_id)
    author = Column(String, nullable=False, index=True)  # username автора, без внешнего ключа
    topic = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(String(16), nullable=False)      # "YYYY-MM-DD HH:MM"


class UserSession(Base):
    """SQLAlchemy модель - привязка токена сессии к пользователю"""
    __tablename__ = "sessions"

    id = Column(String(32), primary_key=True, default=_new_id)
    username = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
