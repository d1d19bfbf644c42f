"""
Tests for authentication and session resolution.
"""

from datetime import datetime, timedelta

import pytest

from conftest import run
from blogapp import config
from blogapp.core.errors import AuthenticationFailure
from blogapp.core.identity import ANONYMOUS, Identity
from blogapp.core.models import User, UserSession
from blogapp.core.security import create_session_token
from blogapp.services.credential_store import CredentialStore
from blogapp.services.session_manager import SessionManager


@pytest.fixture
def ann(credentials):
    run(credentials.create("Ann", "pw1"))
    return "Ann"


class TestAuthenticate:
    def test_correct_password(self, sessions, ann):
        identity = run(sessions.authenticate("Ann", "pw1"))
        assert identity == Identity(username="Ann")

    def test_wrong_password(self, sessions, ann):
        with pytest.raises(AuthenticationFailure):
            run(sessions.authenticate("Ann", "wrong"))

    def test_unknown_user_fails_the_same_way(self, sessions):
        with pytest.raises(AuthenticationFailure) as unknown:
            run(sessions.authenticate("Nobody", "pw1"))
        assert unknown.value.message == AuthenticationFailure.public_message


class TestResolveSession:
    def test_login_then_resolve(self, sessions, ann):
        identity, token = run(sessions.login("Ann", "pw1"))

        assert identity.username == "Ann"
        assert run(sessions.resolve_session(token)) == Identity(username="Ann")

    def test_missing_or_garbage_token_is_anonymous(self, sessions):
        assert run(sessions.resolve_session(None)) is ANONYMOUS
        assert run(sessions.resolve_session("")) is ANONYMOUS
        assert run(sessions.resolve_session("not-a-jwt")) is ANONYMOUS

    def test_expired_token_is_anonymous(self, sessions, session_factory, ann):
        _, token = run(sessions.login("Ann", "pw1"))

        db = session_factory()
        session_id = db.query(UserSession.id).scalar()
        db.close()
        expired = create_session_token(session_id, expires_delta=timedelta(minutes=-1))

        assert run(sessions.resolve_session(expired)) is ANONYMOUS
        assert run(sessions.resolve_session(token)).username == "Ann"

    def test_unknown_session_is_anonymous(self, sessions):
        token = create_session_token("0" * 32)
        assert run(sessions.resolve_session(token)) is ANONYMOUS

    def test_deleted_user_still_resolves_to_username(self, sessions, session_factory, ann):
        _, token = run(sessions.login("Ann", "pw1"))

        db = session_factory()
        db.query(User).filter(User.username == "Ann").delete()
        db.commit()
        db.close()

        assert run(sessions.resolve_session(token)) == Identity(username="Ann")

    def test_user_store_failure_degrades_to_anonymous(self, sessions, broken_session_factory, ann):
        _, token = run(sessions.login("Ann", "pw1"))
        sessions.credentials = CredentialStore(broken_session_factory)

        assert run(sessions.resolve_session(token)) is ANONYMOUS

    def test_session_store_failure_degrades_to_anonymous(self, broken_session_factory, credentials):
        broken = SessionManager(broken_session_factory, credentials)
        token = create_session_token("0" * 32)

        assert run(broken.resolve_session(token)) is ANONYMOUS


class TestTerminate:
    def test_terminate_twice(self, sessions, ann):
        _, token = run(sessions.login("Ann", "pw1"))

        run(sessions.terminate(token))
        assert run(sessions.resolve_session(token)) is ANONYMOUS

        run(sessions.terminate(token))
        assert run(sessions.resolve_session(token)) is ANONYMOUS

    def test_terminate_without_session(self, sessions):
        run(sessions.terminate(None))
        run(sessions.terminate("garbage"))

    def test_terminate_only_closes_own_session(self, sessions, ann):
        _, first = run(sessions.login("Ann", "pw1"))
        _, second = run(sessions.login("Ann", "pw1"))

        run(sessions.terminate(first))

        assert run(sessions.resolve_session(first)) is ANONYMOUS
        assert run(sessions.resolve_session(second)).username == "Ann"

    def test_storage_failure_is_swallowed(self, broken_session_factory, credentials):
        broken = SessionManager(broken_session_factory, credentials)
        run(broken.terminate(create_session_token("0" * 32)))


class TestExpiredSessionCleanup:
    @pytest.fixture
    def stale_session_id(self, session_factory):
        db = session_factory()
        stale = UserSession(
            username="Ann",
            created_at=datetime.utcnow() - timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES + 1),
        )
        db.add(stale)
        db.commit()
        session_id = stale.id
        db.close()
        return session_id

    def session_ids(self, session_factory):
        db = session_factory()
        ids = {row.id for row in db.query(UserSession.id)}
        db.close()
        return ids

    def test_login_removes_expired_sessions(self, sessions, session_factory, ann, stale_session_id):
        _, token = run(sessions.login("Ann", "pw1"))

        ids = self.session_ids(session_factory)
        assert stale_session_id not in ids
        assert len(ids) == 1
        assert run(sessions.resolve_session(token)).username == "Ann"

    def test_purge_keeps_live_sessions(self, sessions, session_factory, ann):
        _, token = run(sessions.login("Ann", "pw1"))
        db = session_factory()
        db.add(UserSession(username="Peter", created_at=datetime(2000, 1, 1)))
        db.commit()
        db.close()

        assert run(sessions.purge_expired()) == 1
        assert len(self.session_ids(session_factory)) == 1
        assert run(sessions.resolve_session(token)).username == "Ann"
