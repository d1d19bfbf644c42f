"""
Управление проектом - CLI команды.

Использование:
    python manage.py check-db
    python manage.py reset-db
    python manage.py seed-db
    python manage.py create-tables
    python manage.py purge-sessions
"""

import argparse
import asyncio

from blogapp import config
from blogapp.core.database import Base, build_engine, build_session_factory, create_tables as create_all
from blogapp.core.models import Post, User
from blogapp.services.credential_store import CredentialStore
from blogapp.services.demo_data import seed_demo_data
from blogapp.services.post_store import PostStore
from blogapp.services.session_manager import SessionManager


def check_db():
    """Проверка базы данных - показать пользователей и посты"""
    engine = build_engine(config.DATABASE_URL)
    create_all(engine)
    SessionLocal = build_session_factory(engine)
    db = SessionLocal()

    try:
        users = db.query(User).all()
        posts = db.query(Post).all()

        print(f"\n📊 Всего пользователей в БД: {len(users)}, постов: {len(posts)}\n")
        print("=" * 60)

        if not users:
            print("⚠️  Пользователей нет.")
            print("   Зарегистрируйтесь через POST /signup или выполните seed-db\n")

        for user in users:
            print(f"ID: {user.id}")
            print(f"Username: {user.username}")
            print(f"Пароль (хеш): {user.hashed_password[:60]}...")
            print(f"Создан: {user.created_at}")
            print("-" * 60)

        for post in posts:
            print(f"[{post.created_at}] {post.author}: {post.topic} (id={post.id})")

    finally:
        db.close()
        engine.dispose()


def reset_db():
    """Сброс базы данных (удалить все таблицы и создать заново)"""
    print("⚠️  ВНИМАНИЕ: Это удалит все данные из БД!")
    confirm = input("Продолжить? (yes/no): ")

    if confirm.lower() != "yes":
        print("❌ Отменено")
        return

    engine = build_engine(config.DATABASE_URL)
    create_all(engine)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    print("✅ База данных сброшена\n")


def seed_db():
    """Заполнить БД демо-пользователями и постами"""
    engine = build_engine(config.DATABASE_URL)
    create_all(engine)
    session_factory = build_session_factory(engine)

    created = asyncio.run(
        seed_demo_data(CredentialStore(session_factory), PostStore(session_factory))
    )
    engine.dispose()
    print(f"\n✅ Демо-данные добавлены: пользователей {created['users']}, постов {created['posts']}\n")


def create_tables():
    """Создать таблицы в БД (если их нет)"""
    engine = build_engine(config.DATABASE_URL)
    create_all(engine)
    engine.dispose()
    print("✅ Таблицы созданы\n")


def purge_sessions():
    """Удалить просроченные сессии"""
    engine = build_engine(config.DATABASE_URL)
    create_all(engine)
    session_factory = build_session_factory(engine)

    sessions = SessionManager(session_factory, CredentialStore(session_factory))
    removed = asyncio.run(sessions.purge_expired())
    engine.dispose()
    print(f"✅ Удалено просроченных сессий: {removed}\n")


def main():
    """Главная функция - обработка команд"""
    parser = argparse.ArgumentParser(
        description="Управление проектом Blog API"
    )

    parser.add_argument(
        "command",
        choices=["check-db", "reset-db", "seed-db", "create-tables", "purge-sessions"],
        help="Команда для выполнения"
    )

    args = parser.parse_args()

    # Выполнение команды
    commands = {
        "check-db": check_db,
        "reset-db": reset_db,
        "seed-db": seed_db,
        "create-tables": create_tables,
        "purge-sessions": purge_sessions,
    }

    commands[args.command]()


if __name__ == "__main__":
    main()
