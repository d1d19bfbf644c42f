"""
Конфигурация бэкенда блога.
"""

from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

# Корневая директория проекта и базовые настройки
BASE_DIR = Path(__file__).parent.parent  # backend/
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(BASE_DIR / "logs")))


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ============= DATA =============
DATA_DIR = BASE_DIR / "data"

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{str(DATA_DIR / 'blog.db')}")
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
SEED_DEMO_DATA = _env_flag("SEED_DEMO_DATA")


# ============= БЕЗОПАСНОСТЬ =============
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
ALGORITHM = os.getenv("ALGORITHM", "HS256")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-in-production")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "blog_session")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

# Автор поста берётся из формы, вход для публикации не обязателен.
# Включите, чтобы публиковать могли только вошедшие пользователи.
REQUIRE_LOGIN_TO_POST = _env_flag("REQUIRE_LOGIN_TO_POST")


# ============= API =============
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
SITE_TITLE = os.getenv("SITE_TITLE", "Blog")
