"""
Исключения предметной области.

Компоненты не формируют текст для пользователя сами по себе: обработчики
в main.py превращают эти исключения в HTTP-ответы.
"""

from typing import Optional


class BlogError(Exception):
    """Базовое исключение блога"""

    status_code = 500
    public_message = "500 Внутренняя ошибка сервера"

    def __init__(self, message: str = ""):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(BlogError):
    """Не заполнено обязательное поле"""
    status_code = 400
    public_message = "Все поля обязательны"


class AuthenticationFailure(BlogError):
    """Неверное имя пользователя или пароль"""
    status_code = 401
    public_message = "Неверное имя пользователя или пароль"


class LoginRequired(BlogError):
    """Действие доступно только после входа"""
    status_code = 401
    public_message = "Нужно войти"


class SignUpRejected(BlogError):
    """Регистрация отклонена"""
    status_code = 401
    public_message = "Имя пользователя и пароль не могут быть пустыми"


class UserAlreadyExists(SignUpRejected):
    public_message = "Пользователь уже существует"


class AuthorizationDenied(BlogError):
    """Пользователь не автор поста"""
    status_code = 403
    public_message = "У вас нет прав на это действие"


class NotFound(BlogError):
    status_code = 404
    public_message = "404 Страница не найдена"


class StorageFailure(BlogError):
    """
    Сбой хранилища (ошибка БД или таймаут).

    Детали пишутся в лог, клиент получает только public_message.
    """
    status_code = 500
    public_message = "500 Внутренняя ошибка сервера"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        detail = f"{operation}: {cause!r}" if cause is not None else operation
        super().__init__(detail)
        self.operation = operation
        self.cause = cause
