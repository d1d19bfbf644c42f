import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from blogapp.core.models import POST_TIME_FORMAT, Post
from blogapp.services.base import SqlStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostRecord:
    id: str
    author: str
    topic: str
    message: str
    created_at: str


def _to_record(post: Post) -> PostRecord:
    return PostRecord(
        id=post.id,
        author=post.author,
        topic=post.topic,
        message=post.message,
        created_at=post.created_at,
    )


class PostStore(SqlStore):
    """
    Хранилище постов.

    Поля не перепроверяются: обязательность author/topic/message
    проверяет обработчик запроса до вызова хранилища.
    """

    async def create(self, author: str, topic: str, message: str) -> PostRecord:
        """Сохраняет новый пост, назначает id и время создания"""
        created_at = datetime.now().strftime(POST_TIME_FORMAT)

        def work(db: Session) -> PostRecord:
            post = Post(author=author, topic=topic, message=message, created_at=created_at)
            db.add(post)
            db.flush()
            return _to_record(post)

        record = await self._run("posts.create", work)
        logger.info("Пост создан: id=%s, автор=%s", record.id, author)
        return record

    async def list_all(self) -> List[PostRecord]:
        """Все посты в порядке добавления"""
        def work(db: Session) -> List[PostRecord]:
            posts = db.query(Post).all()
            return [_to_record(p) for p in posts]

        return await self._run("posts.list_all", work)

    async def list_by_author(self, author: str) -> List[PostRecord]:
        def work(db: Session) -> List[PostRecord]:
            posts = db.query(Post).filter(Post.author == author).all()
            return [_to_record(p) for p in posts]

        return await self._run("posts.list_by_author", work)

    async def get_by_id(self, post_id: str) -> Optional[PostRecord]:
        """Пост по id. Неизвестный или кривой id -> None"""
        def work(db: Session) -> Optional[PostRecord]:
            post = db.get(Post, post_id)
            return _to_record(post) if post else None

        return await self._run("posts.get_by_id", work)

    async def update(self, post_id: str, author: str, topic: str, message: str) -> int:
        """
        Docstring для update

        :param post_id: ID поста
        :param author: Новый автор (поле можно сменить при редактировании)
        :param topic: Новая тема
        :param message: Новый текст
        :return: Количество обновлённых записей (0 - поста нет)
        :rtype: int
        """
        def work(db: Session) -> int:
            return (
                db.query(Post)
                .filter(Post.id == post_id)
                .update(
                    {Post.author: author, Post.topic: topic, Post.message: message},
                    synchronize_session=False,
                )
            )

        updated = await self._run("posts.update", work)
        logger.info("Пост обновлён: id=%s, записей=%s", post_id, updated)
        return updated

    async def delete(self, post_id: str) -> int:
        """Удаляет пост, возвращает количество удалённых записей"""
        def work(db: Session) -> int:
            return db.query(Post).filter(Post.id == post_id).delete(synchronize_session=False)

        removed = await self._run("posts.delete", work)
        logger.info("Пост удалён: id=%s, записей=%s", post_id, removed)
        return removed

    async def count(self) -> int:
        return await self._count("posts.count", Post)
