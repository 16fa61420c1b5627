"""
tests/conftest.py -- Shared test fixtures for CampusAuth.

This module provides:
  - FakeClock: a settable clock injected into TokenService and the registry
  - unit fixtures: keypair, clock, registry, token_service, user_store,
    hasher, events, authz, auth_service
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient plus seeded users and tokens for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API fixture because TestClient runs route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any auth/core import so get_settings() accepts a
missing signing keypair instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple
from unittest.mock import MagicMock

# CRITICAL: Set the environment before any auth/core/api import. get_settings()
# is cached and api/main.py reads it at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authorization import AuthorizationEngine
from auth.keys import KeyPair, KeyProvider, generate_keypair
from auth.models import User
from auth.passwords import BcryptPasswordHasher
from auth.revocation import InMemoryRevocationRegistry
from auth.roles import Role
from auth.service import AuthenticationService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TOKEN_LIFETIME = 3600
START_TIME = 1_700_000_000.0

# Seeded API users: username -> (role, password)
SEED_PASSWORD = "correct-horse-9"
SEED_USERS = {
    "root": Role.SUPER_ADMIN,
    "admin": Role.ADMIN,
    "teacher": Role.TEACHER,
    "student": Role.STUDENT,
}


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def keypair() -> KeyPair:
    """One RSA keypair for the whole session; generation is the slow part."""
    return generate_keypair()


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    # Minimum cost factor keeps the suite fast.
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> InMemoryRevocationRegistry:
    return InMemoryRevocationRegistry(clock=clock)


@pytest.fixture
def token_service(keypair: KeyPair, registry: InMemoryRevocationRegistry, clock: FakeClock) -> TokenService:
    return TokenService(KeyProvider.static(keypair), TOKEN_LIFETIME, registry=registry, clock=clock)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def events() -> MagicMock:
    return MagicMock()


@pytest.fixture
def authz(token_service: TokenService) -> AuthorizationEngine:
    return AuthorizationEngine(token_service)


@pytest.fixture
def auth_service(
    user_store: UserStore,
    hasher: BcryptPasswordHasher,
    token_service: TokenService,
    events: MagicMock,
    authz: AuthorizationEngine,
) -> AuthenticationService:
    return AuthenticationService(user_store, hasher, token_service, events=events, authz=authz)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


class ApiContext(NamedTuple):
    client: TestClient
    token_service: TokenService
    user_store: UserStore
    user_ids: dict[str, str]
    tokens: dict[str, str]

    def headers(self, username: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[username]}"}


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, token_service: TokenService, hasher: BcryptPasswordHasher, events):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.revocations = token_service.registry
        app.state.token_service = token_service
        app.state.authz = AuthorizationEngine(token_service)
        app.state.events = events
        app.state.auth_service = AuthenticationService(
            user_store, hasher, token_service, events=events, authz=app.state.authz
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _api_context(db_suffix: str, keypair: KeyPair, hasher: BcryptPasswordHasher):
    user_store = _make_test_store(db_suffix)
    token_service = TokenService(KeyProvider.static(keypair), TOKEN_LIFETIME)

    user_ids: dict[str, str] = {}
    tokens: dict[str, str] = {}
    for username, role in SEED_USERS.items():
        uid = user_store.create_user(
            User(
                username=username,
                email=f"{username}@campus.example",
                role=role,
                password_hash=hasher.hash(SEED_PASSWORD),
            )
        )
        user_ids[username] = uid
        tokens[username] = token_service.issue(uid, username, role).access_token

    app.router.lifespan_context = _patch_lifespan(user_store, token_service, hasher, MagicMock())
    return user_store, token_service, user_ids, tokens


@pytest.fixture(scope="module")
def api_client(keypair: KeyPair, hasher: BcryptPasswordHasher) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use an isolated in-memory store. One user per
    role is seeded (password SEED_PASSWORD) with a long-lived token each.
    Tests that revoke or rotate a token must log in for a fresh one rather
    than spend the shared seeded tokens.
    """
    suffix = os.urandom(4).hex()
    user_store, token_service, user_ids, tokens = _api_context(suffix, keypair, hasher)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, token_service, user_store, user_ids, tokens)

    user_store.close()
