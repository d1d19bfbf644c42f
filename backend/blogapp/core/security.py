"""
Функции безопасности: хеширование паролей, подпись токена сессии.
"""
from blogapp import config
from datetime import datetime, timezone, timedelta
from typing import Optional
from passlib.context import CryptContext
from jose import JWTError, jwt

# Контекст для хеширования паролей (стоимость bcrypt настраивается)
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=config.BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    """Хеширует пароль"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет пароль. Битый хеш считается несовпадением."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_session_token(session_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Создаёт подписанный токен для cookie.

    Args:
        session_id: ID серверной сессии (сам username в токен не вшивается)
        expires_delta: Время жизни токена
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"sid": session_id, "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_session_token(token: str) -> Optional[str]:
    """Декодирует токен и возвращает ID сессии (None если токен битый или истёк)"""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    session_id = payload.get("sid")
    return session_id if isinstance(session_id, str) else None
