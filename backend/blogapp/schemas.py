"""
Pydantic модели запросов и ответов блога.

Поля форм необязательны на уровне схемы: пустые значения проверяют
обработчики, чтобы вернуть 400/401, а не 422.
"""
from pydantic import BaseModel, Field
from typing import List, Optional


# ============= ФОРМЫ =============

class PostSubmission(BaseModel):
    """
    Форма создания или редактирования поста.

    POST /newblog, POST /editblog/{id}
    {
        "author": "Ann",
        "topic": "Заголовок",
        "message": "Текст поста"
    }
    """
    author: Optional[str] = Field(default=None, description="Имя автора")
    topic: Optional[str] = Field(default=None, description="Тема поста")
    message: Optional[str] = Field(default=None, description="Текст поста")


class Credentials(BaseModel):
    """
    Форма регистрации и входа.

    POST /signup, POST /login
    {
        "username": "Ann",
        "password": "pw1"
    }
    """
    username: Optional[str] = Field(default=None, description="Имя пользователя")
    password: Optional[str] = Field(default=None, description="Пароль")


# ============= ОТВЕТЫ =============

class PostResponse(BaseModel):
    """Пост в ленте. is_author нужен только для отображения кнопок"""
    id: str
    author: str
    topic: str
    message: str
    created_at: str = Field(..., description="Время создания, YYYY-MM-DD HH:MM")
    is_author: bool = False


class PostListResponse(BaseModel):
    """Лента постов (все или одного автора)"""
    title: str
    user: Optional[str] = Field(default=None, description="Вошедший пользователь")
    posts: List[PostResponse]


class NewPostForm(BaseModel):
    """Данные для формы нового поста"""
    title: str
    user: str
    username: str = Field(..., description="Автор по умолчанию")


class EditPostForm(BaseModel):
    """Данные для формы редактирования, заполненной текущим постом"""
    title: str
    user: str
    post: PostResponse


class PageResponse(BaseModel):
    """Простая страница без данных (вход, регистрация, о блоге)"""
    title: str
    user: Optional[str] = None
    page: str
