"""Test configuration and fixtures."""

import asyncio
import os
import tempfile

import pytest

# Settings BEFORE blogapp.config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="blog-logs-")
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["REQUIRE_LOGIN_TO_POST"] = "false"

from fastapi.testclient import TestClient

from blogapp.core.database import build_engine, build_session_factory, create_tables
from blogapp.main import app
from blogapp.services.credential_store import CredentialStore
from blogapp.services.post_store import PostStore
from blogapp.services.session_manager import SessionManager


def run(coro):
    """Run a store coroutine from a plain test function."""
    return asyncio.run(coro)


@pytest.fixture
def session_factory():
    """Fresh in-memory database with all tables."""
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def broken_session_factory():
    """In-memory database without tables: every query fails."""
    engine = build_engine("sqlite://")
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def credentials(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def posts(session_factory):
    return PostStore(session_factory)


@pytest.fixture
def sessions(session_factory, credentials):
    return SessionManager(session_factory, credentials)


@pytest.fixture
def client():
    """Test client; lifespan builds a new in-memory database each time."""
    with TestClient(app) as test_client:
        yield test_client


def signup(client, username, password):
    return client.post(
        "/signup",
        json={"username": username, "password": password},
        follow_redirects=False,
    )


def login(client, username, password):
    return client.post(
        "/login",
        json={"username": username, "password": password},
        follow_redirects=False,
    )


def logout(client):
    return client.get("/logout", follow_redirects=False)
