"""
Blog API - главный файл приложения.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogapp import config
from blogapp.core.database import build_engine, build_session_factory, create_tables
from blogapp.core.errors import (
    AuthenticationFailure,
    BlogError,
    LoginRequired,
    NotFound,
    SignUpRejected,
    StorageFailure,
    UserAlreadyExists,
    ValidationError,
)
from blogapp.core.identity import Identity
from blogapp.core.logging_config import setup_logging
from blogapp.dependencies import (
    get_credentials,
    get_identity,
    get_posts,
    get_session_token,
    get_sessions,
    require_login,
)
from blogapp.schemas import (
    Credentials,
    EditPostForm,
    NewPostForm,
    PageResponse,
    PostListResponse,
    PostResponse,
    PostSubmission,
)
from blogapp.services.authorization import Action, ensure_permitted, is_author
from blogapp.services.credential_store import CredentialStore
from blogapp.services.demo_data import seed_demo_data
from blogapp.services.post_store import PostRecord, PostStore
from blogapp.services.session_manager import SessionManager


# ===== НАСТРОЙКА ЛОГИРОВАНИЯ =====
setup_logging()
logger = logging.getLogger(__name__)


# ============= LIFESPAN EVENT =============

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Выполняется при запуске и остановке приложения.

    При старте создаёт движок БД и хранилища и кладёт их в app.state,
    обработчики получают их через Depends.
    """
    # ===== STARTUP =====
    logger.info("Blog API запускается...")

    engine = build_engine(config.DATABASE_URL)
    create_tables(engine)
    logger.info(f"База данных: {config.DATABASE_URL}")

    session_factory = build_session_factory(engine)
    credentials = CredentialStore(session_factory)
    app.state.credentials = credentials
    app.state.posts = PostStore(session_factory)
    app.state.sessions = SessionManager(session_factory, credentials)

    if config.SEED_DEMO_DATA:
        await seed_demo_data(app.state.credentials, app.state.posts)

    logger.info(f"Документация: http://{config.API_HOST}:{config.API_PORT}/docs")
    logger.info("API готов к работе!")

    yield  # Приложение работает

    # ===== SHUTDOWN =====
    logger.info("Остановка приложения...")
    engine.dispose()
    logger.info("Приложение остановлено")


# ============= СОЗДАНИЕ ПРИЛОЖЕНИЯ =============

app = FastAPI(
    title="Blog API",
    description="Multi-user blog: posts are editable only by their authors",
    version="1.0.0",
    lifespan=lifespan
)


# ============= ОБРАБОТКА ОШИБОК =============

def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    logger.debug("Анонимный запрос к %s, отправляем на /login", request.url.path)
    return _redirect("/login")


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error("Сбой хранилища при %s %s: %s", request.method, request.url.path, exc.message)
    return PlainTextResponse(StorageFailure.public_message, status_code=exc.status_code)


@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError):
    logger.warning("⚠️ %s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Тело не JSON, отсутствует или поле не строка: как незаполненная форма
    logger.warning("⚠️ Некорректное тело запроса %s %s: %s", request.method, request.url.path, [e.get("loc") for e in exc.errors()])
    if request.url.path == "/login":
        return _redirect("/login")
    if request.url.path == "/signup":
        return PlainTextResponse(SignUpRejected.public_message, status_code=SignUpRejected.status_code)
    return PlainTextResponse(ValidationError.public_message, status_code=ValidationError.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return PlainTextResponse(NotFound.public_message, status_code=exc.status_code)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Необработанная ошибка при %s %s", request.method, request.url.path, exc_info=exc)
    return PlainTextResponse(BlogError.public_message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ============= ВСПОМОГАТЕЛЬНОЕ =============

def _post_view(post: PostRecord, identity: Identity) -> PostResponse:
    return PostResponse(**asdict(post), is_author=is_author(identity, post))


def _post_list(posts: List[PostRecord], identity: Identity) -> PostListResponse:
    return PostListResponse(
        title=config.SITE_TITLE,
        user=identity.username,
        posts=[_post_view(p, identity) for p in posts],
    )


def _require_fields(form: PostSubmission, *fields: str) -> None:
    if any(not getattr(form, name) for name in fields):
        raise ValidationError("Все поля обязательны!")


# ============= HEALTH CHECK =============

@app.get("/health", tags=["Health"])
async def health(posts: PostStore = Depends(get_posts)):
    """Проверка состояния приложения и БД"""
    logger.debug("Health check вызван")
    try:
        await posts.count()
        database = True
    except StorageFailure:
        database = False
    return {
        "status": "ok" if database else "degraded",
        "version": "1.0.0",
        "services": {"database": database},
    }


# ============= ЛЕНТА =============

@app.get("/", response_model=PostListResponse, tags=["Posts"])
async def main_page(
    identity: Identity = Depends(get_identity),
    posts: PostStore = Depends(get_posts),
):
    """Все посты всех авторов"""
    return _post_list(await posts.list_all(), identity)


@app.get("/user/{author}", response_model=PostListResponse, tags=["Posts"])
async def show_user_posts(
    author: str,
    identity: Identity = Depends(get_identity),
    posts: PostStore = Depends(get_posts),
):
    """Посты одного автора"""
    logger.debug("Посты автора: %s", author)
    return _post_list(await posts.list_by_author(author), identity)


# ============= ПОСТЫ =============

@app.get("/newblog", response_model=NewPostForm, tags=["Posts"])
async def get_new_post(identity: Identity = Depends(require_login)):
    """Форма нового поста"""
    return NewPostForm(title=config.SITE_TITLE, user=identity.username, username=identity.username)


@app.post("/newblog", tags=["Posts"])
async def post_new_post(
    form: PostSubmission,
    identity: Identity = Depends(get_identity),
    posts: PostStore = Depends(get_posts),
):
    """Публикация поста. Автор берётся из формы"""
    if not form.author:
        raise ValidationError("У поста должен быть автор!")
    _require_fields(form, "topic", "message")

    if config.REQUIRE_LOGIN_TO_POST:
        if identity.is_anonymous:
            raise LoginRequired()
        ensure_permitted(identity, form, Action.CREATE)

    await posts.create(form.author, form.topic, form.message)
    return _redirect("/")


@app.get("/editblog/{post_id}", response_model=EditPostForm, tags=["Posts"])
async def get_edit_post(
    post_id: str,
    identity: Identity = Depends(require_login),
    posts: PostStore = Depends(get_posts),
):
    """Форма редактирования, только для автора"""
    post = await posts.get_by_id(post_id)
    ensure_permitted(identity, post, Action.EDIT, "У вас нет прав редактировать этот пост!")
    return EditPostForm(title="Редактирование поста", user=identity.username, post=_post_view(post, identity))


@app.post("/editblog/{post_id}", tags=["Posts"])
async def post_edit_post(
    post_id: str,
    form: PostSubmission,
    identity: Identity = Depends(require_login),
    posts: PostStore = Depends(get_posts),
):
    """Сохранение правок. Сначала поля, потом права, потом запись"""
    _require_fields(form, "author", "topic", "message")

    post = await posts.get_by_id(post_id)
    ensure_permitted(identity, post, Action.EDIT, "У вас нет прав редактировать этот пост!")

    updated = await posts.update(post_id, form.author, form.topic, form.message)
    if updated == 0:
        # Пост удалили между проверкой и записью
        raise NotFound("Пост не найден")
    return _redirect("/")


@app.post("/deleteblog/{post_id}", tags=["Posts"])
async def delete_post(
    post_id: str,
    identity: Identity = Depends(require_login),
    posts: PostStore = Depends(get_posts),
):
    """Удаление поста, только для автора"""
    post = await posts.get_by_id(post_id)
    ensure_permitted(identity, post, Action.DELETE, "У вас нет прав удалить этот пост!")

    await posts.delete(post_id)
    return _redirect("/")


# ============= AUTH ENDPOINTS =============

@app.get("/signup", response_model=PageResponse, tags=["Authentication"])
async def get_sign_up():
    return PageResponse(title=config.SITE_TITLE, page="signup")


@app.post("/signup", tags=["Authentication"])
async def post_sign_up(
    form: Credentials,
    credentials: CredentialStore = Depends(get_credentials),
):
    """Регистрация нового пользователя"""
    logger.info("🔄 Попытка регистрации: %s", form.username)

    if not form.username or not form.password:
        raise SignUpRejected()

    if await credentials.lookup(form.username):
        logger.warning("⚠️ Username уже занят: %s", form.username)
        raise UserAlreadyExists(f"Пользователь уже существует: {form.username}")

    await credentials.create(form.username, form.password)
    logger.info(f"Пользователь зарегистрирован: {form.username}")
    return _redirect("/login")


@app.get("/login", response_model=PageResponse, tags=["Authentication"])
async def get_login():
    return PageResponse(title=config.SITE_TITLE, page="login")


@app.post("/login", tags=["Authentication"])
async def post_login(
    form: Credentials,
    sessions: SessionManager = Depends(get_sessions),
):
    """Вход пользователя. При неудаче - обратно на форму входа"""
    if not form.username or not form.password:
        return _redirect("/login")

    try:
        _, token = await sessions.login(form.username, form.password)
    except AuthenticationFailure:
        return _redirect("/login")

    response = _redirect("/")
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@app.get("/logout", tags=["Authentication"])
async def logout(
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionManager = Depends(get_sessions),
):
    """Выход. Всегда успешен для клиента"""
    await sessions.terminate(token)
    response = _redirect("/")
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return response


@app.get("/about", response_model=PageResponse, tags=["Pages"])
async def about(identity: Identity = Depends(get_identity)):
    return PageResponse(title=config.SITE_TITLE, user=identity.username, page="about")
