"""
Tests for the credential and post stores.
"""

import asyncio
import re
import time

import pytest
from sqlalchemy.orm import Session, sessionmaker

from conftest import run
from blogapp.core.database import build_engine, session_lock
from blogapp.core.models import Post
from blogapp.core.errors import StorageFailure, UserAlreadyExists
from blogapp.services.base import SqlStore
from blogapp.services.credential_store import CredentialStore
from blogapp.services.demo_data import DEMO_POSTS, DEMO_USERS, seed_demo_data
from blogapp.services.post_store import PostStore


# =============================================================================
# CredentialStore
# =============================================================================


class TestCredentialStore:
    def test_lookup_missing_user_returns_none(self, credentials):
        assert run(credentials.lookup("nobody")) is None

    def test_create_then_lookup(self, credentials):
        run(credentials.create("Ann", "pw1"))

        user = run(credentials.lookup("Ann"))
        assert user is not None
        assert user.username == "Ann"

    def test_password_is_stored_hashed(self, credentials):
        run(credentials.create("Ann", "pw1"))
        user = run(credentials.lookup("Ann"))

        assert user.password_hash != "pw1"
        assert user.password_hash.startswith("$2")
        assert user.check_password("pw1")
        assert not user.check_password("wrong")

    def test_lookup_is_case_sensitive(self, credentials):
        run(credentials.create("Ann", "pw1"))

        assert run(credentials.lookup("ann")) is None
        assert run(credentials.lookup("ANN")) is None

    def test_duplicate_insert_is_rejected_by_index(self, credentials):
        run(credentials.create("Ann", "pw1"))

        with pytest.raises(UserAlreadyExists):
            run(credentials.create("Ann", "other"))
        assert run(credentials.count()) == 1

    def test_storage_error_is_not_not_found(self, broken_session_factory):
        store = CredentialStore(broken_session_factory)

        with pytest.raises(StorageFailure):
            run(store.lookup("Ann"))


# =============================================================================
# PostStore
# =============================================================================


class TestPostStore:
    def test_create_then_get(self, posts):
        created = run(posts.create("Ann", "T", "M"))

        fetched = run(posts.get_by_id(created.id))
        assert fetched is not None
        assert fetched.id == created.id
        assert (fetched.author, fetched.topic, fetched.message) == ("Ann", "T", "M")
        assert fetched.created_at

    def test_created_at_format(self, posts):
        created = run(posts.create("Ann", "T", "M"))
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}", created.created_at)

    def test_ids_are_unique(self, posts):
        first = run(posts.create("Ann", "T1", "M1"))
        second = run(posts.create("Ann", "T2", "M2"))
        assert first.id and second.id
        assert first.id != second.id

    def test_list_all_and_by_author(self, posts):
        run(posts.create("Ann", "T1", "M1"))
        run(posts.create("Peter", "T2", "M2"))
        run(posts.create("Ann", "T3", "M3"))

        assert len(run(posts.list_all())) == 3
        by_ann = run(posts.list_by_author("Ann"))
        assert sorted(p.topic for p in by_ann) == ["T1", "T3"]
        assert run(posts.list_by_author("ann")) == []

    def test_unknown_id_is_not_found(self, posts):
        assert run(posts.get_by_id("does-not-exist")) is None
        assert run(posts.get_by_id("")) is None
        assert run(posts.update("does-not-exist", "Ann", "T", "M")) == 0
        assert run(posts.delete("does-not-exist")) == 0

    def test_update_replaces_all_fields(self, posts):
        created = run(posts.create("Ann", "T", "M"))

        assert run(posts.update(created.id, "Peter", "T2", "M2")) == 1

        updated = run(posts.get_by_id(created.id))
        assert (updated.author, updated.topic, updated.message) == ("Peter", "T2", "M2")
        assert updated.created_at == created.created_at

    def test_delete(self, posts):
        created = run(posts.create("Ann", "T", "M"))

        assert run(posts.delete(created.id)) == 1
        assert run(posts.get_by_id(created.id)) is None
        assert run(posts.delete(created.id)) == 0

    def test_storage_failure(self, broken_session_factory):
        store = PostStore(broken_session_factory)

        with pytest.raises(StorageFailure):
            run(store.list_all())
        with pytest.raises(StorageFailure):
            run(store.create("Ann", "T", "M"))


class TestStoreTimeout:
    def test_slow_operation_becomes_storage_failure(self, session_factory):
        store = SqlStore(session_factory, timeout=0.05)

        def slow(db):
            time.sleep(0.5)
            return 1

        with pytest.raises(StorageFailure) as excinfo:
            run(store._run("slow", slow))
        assert excinfo.value.operation == "slow"

    def test_timed_out_write_is_rolled_back(self, session_factory):
        store = SqlStore(session_factory, timeout=0.05)

        def slow_insert(db):
            db.add(Post(author="Ann", topic="T", message="M", created_at="2024-06-16 16:16"))
            db.flush()
            time.sleep(0.3)
            return 1

        with pytest.raises(StorageFailure):
            run(store._run("posts.create", slow_insert))

        # asyncio.run waits for the worker thread, so the transaction is closed here
        assert run(PostStore(session_factory).count()) == 0

    def test_slow_commit_is_not_reported_as_failure(self, session_factory):
        class SlowCommitSession(Session):
            def commit(self):
                time.sleep(0.3)
                super().commit()

        slow_factory = sessionmaker(
            bind=session_factory.kw["bind"], class_=SlowCommitSession, expire_on_commit=False
        )
        created = run(PostStore(slow_factory, timeout=0.05).create("Ann", "T", "M"))

        assert run(PostStore(session_factory).get_by_id(created.id)) is not None
        assert run(PostStore(session_factory).count()) == 1


class TestSharedConnection:
    def test_only_in_memory_engine_is_serialized(self, tmp_path):
        memory = build_engine("sqlite://")
        db_file = tmp_path / "blog.db"
        on_disk = build_engine(f"sqlite:///{db_file}")

        assert hasattr(session_lock(memory), "acquire")
        assert not hasattr(session_lock(on_disk), "acquire")
        assert session_lock(memory) is session_lock(memory)

        memory.dispose()
        on_disk.dispose()

    def test_concurrent_writes_all_land(self, posts):
        async def write_many():
            return await asyncio.gather(
                *(posts.create("Ann", f"T{i}", "M") for i in range(20))
            )

        created = run(write_many())

        assert len({p.id for p in created}) == 20
        assert run(posts.count()) == 20


# =============================================================================
# Demo data
# =============================================================================


class TestDemoData:
    def test_seed_is_idempotent(self, credentials, posts):
        first = run(seed_demo_data(credentials, posts))
        second = run(seed_demo_data(credentials, posts))

        assert first == {"users": len(DEMO_USERS), "posts": len(DEMO_POSTS)}
        assert second == {"users": 0, "posts": 0}
        assert run(credentials.count()) == len(DEMO_USERS)

    def test_seeded_users_can_log_in(self, credentials, posts, sessions):
        run(seed_demo_data(credentials, posts))

        for user in DEMO_USERS:
            identity = run(sessions.authenticate(user["username"], user["password"]))
            assert identity.username == user["username"]
