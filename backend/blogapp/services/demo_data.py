import logging

from blogapp.services.credential_store import CredentialStore
from blogapp.services.post_store import PostStore

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"username": "Peter", "password": "peter12345"},
    {"username": "Ann", "password": "ann12345"},
]

DEMO_POSTS = [
    {"author": "Ann", "topic": "Тестовый пост 1", "message": "Тестовое содержимое 1"},
    {"author": "Ann", "topic": "Тестовый пост 2", "message": "Тестовое содержимое 2"},
]


async def seed_demo_data(credentials: CredentialStore, posts: PostStore) -> dict:
    """
    Заполняет БД демо-пользователями и постами.

    Пользователи, которые уже есть, пропускаются. Посты добавляются,
    только если в БД ещё нет ни одного поста.
    """
    created_users = 0
    for user_data in DEMO_USERS:
        if await credentials.lookup(user_data["username"]):
            logger.info("Пользователь %s уже существует", user_data["username"])
            continue
        await credentials.create(user_data["username"], user_data["password"])
        created_users += 1

    created_posts = 0
    if await posts.count() == 0:
        for post_data in DEMO_POSTS:
            await posts.create(**post_data)
            created_posts += 1

    logger.info("Демо-данные: пользователей=%s, постов=%s", created_users, created_posts)
    return {"users": created_users, "posts": created_posts}
