"""
Зависимости FastAPI: хранилища из app.state и текущий пользователь.

Использование:
    @app.get("/newblog")
    async def get_new_blog(identity: Identity = Depends(require_login)):
        ...
"""
from typing import Optional

from fastapi import Depends, Request

from blogapp import config
from blogapp.core.errors import LoginRequired
from blogapp.core.identity import Identity
from blogapp.services.credential_store import CredentialStore
from blogapp.services.post_store import PostStore
from blogapp.services.session_manager import SessionManager


def get_posts(request: Request) -> PostStore:
    return request.app.state.posts


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(config.SESSION_COOKIE_NAME)


async def get_identity(
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionManager = Depends(get_sessions),
) -> Identity:
    """Текущий пользователь или ANONYMOUS"""
    return await sessions.resolve_session(token)


async def require_login(identity: Identity = Depends(get_identity)) -> Identity:
    """Пропускает только вошедших, остальных отправляет на /login"""
    if identity.is_anonymous:
        raise LoginRequired()
    return identity
