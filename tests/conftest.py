"""
tests/conftest.py -- Shared test fixtures for Gatehouse.

This module provides:
  - Recording fakes for every auth.ports collaborator, used by the flow unit
    tests. Each fake records its calls in .calls and raises whatever
    exception is registered for a method name in .fail.
  - make_config: builds an AuthConfig over the fakes for either strategy.
  - _make_test_stores() / _patch_lifespan(): real SQL stores on named
    shared-memory SQLite, wired into app.state for TestClient tests.
  - api_client / passwordless_client: TestClient over the real app, one
    per strategy.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any core/auth import so get_settings() can
auto-generate SECRET_KEY in dev mode instead of raising ValueError.
REQUEST_RATE_LIMIT is raised so the slowapi throttle never trips during a
test module; attempt limiting is tested through AuthService directly.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("REQUEST_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.keystore import TemporaryKeyStore
from auth.mailer import LoggingMailer
from auth.service import AuthService, build_auth_service
from auth.store import UserStore
from auth.strategy import AuthConfig, AuthConfigBuilder
from core.config import Settings
from core.models import ClientContext
from core.validation import PasswordPolicy

STRONG_PASSWORD = "Secret123!"


# ---------------------------------------------------------------------------
# Recording fakes
# ---------------------------------------------------------------------------


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.fail: dict[str, Exception] = {}

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]


class FakeKeyStore(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str:
        self._record("get", key)
        return self.data[key]

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._record("set", key, value, ttl_seconds)
        self.data[key] = value


class FakeSessions(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.tokens: dict[str, str] = {}

    def find_user_by_token(self, token: str, ctx: ClientContext) -> str:
        self._record("find_user_by_token", token)
        return self.tokens.get(token, "")

    def store_token(self, token: str, user_id: str, ctx: ClientContext) -> None:
        self._record("store_token", token, user_id)
        self.tokens[token] = user_id

    def logout(self, user_id: str, ctx: ClientContext) -> None:
        self._record("logout", user_id)
        self.tokens = {t: u for t, u in self.tokens.items() if u != user_id}


class FakePasswordUsers(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.users: dict[str, dict[str, str]] = {}

    def add(self, email: str, password: str, first_name: str = "Ann", last_name: str = "Lee") -> str:
        user_id = uuid.uuid4().hex
        self.users[email] = {"id": user_id, "password": password, "first_name": first_name, "last_name": last_name}
        return user_id

    def login(self, email: str, password: str, ctx: ClientContext) -> str:
        self._record("login", email, password)
        user = self.users.get(email)
        return user["id"] if user and user["password"] == password else ""

    def register(self, email: str, password: str, first_name: str, last_name: str, ctx: ClientContext) -> None:
        self._record("register", email, password, first_name, last_name)
        if email in self.users:
            raise ValueError("email already registered")
        self.add(email, password, first_name, last_name)

    def find_by_username(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> str:
        self._record("find_by_username", email, first_name, last_name)
        user = self.users.get(email)
        if user is None:
            return ""
        if first_name and user["first_name"] != first_name:
            return ""
        if last_name and user["last_name"] != last_name:
            return ""
        return user["id"]

    def change_password(self, user_id: str, password: str, ctx: ClientContext) -> None:
        self._record("change_password", user_id, password)
        for user in self.users.values():
            if user["id"] == user_id:
                user["password"] = password
                return
        raise LookupError(user_id)


class FakePasswordlessUsers(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.users: dict[str, str] = {}

    def find_by_email(self, email: str, ctx: ClientContext) -> str:
        self._record("find_by_email", email)
        return self.users.get(email, "")

    def register_passwordless(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> None:
        self._record("register_passwordless", email, first_name, last_name)
        if email in self.users:
            raise ValueError("email already registered")
        self.users[email] = uuid.uuid4().hex


class FakeNotifier(_Recorder):
    def send(self, recipient: str, subject: str, body: str, ctx: ClientContext) -> None:
        self._record("send", recipient, subject, body)


class FakeTemplates(_Recorder):
    def login_code(self, email: str, code: str, ctx: ClientContext) -> str:
        self._record("login_code", email, code)
        return f"login code {code} for {email}"

    def registration_code(self, email: str, code: str, ctx: ClientContext) -> str:
        self._record("registration_code", email, code)
        return f"registration code {code} for {email}"

    def password_restore(self, user_id: str, link: str, ctx: ClientContext) -> str:
        self._record("password_restore", user_id, link)
        return f"reset link {link}"


@pytest.fixture
def ctx() -> ClientContext:
    return ClientContext(ip="203.0.113.7", user_agent="pytest")


@pytest.fixture
def keys() -> FakeKeyStore:
    return FakeKeyStore()


@pytest.fixture
def sessions() -> FakeSessions:
    return FakeSessions()


@pytest.fixture
def password_users() -> FakePasswordUsers:
    return FakePasswordUsers()


@pytest.fixture
def passwordless_users() -> FakePasswordlessUsers:
    return FakePasswordlessUsers()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def templates() -> FakeTemplates:
    return FakeTemplates()


@pytest.fixture
def make_config(keys, sessions, password_users, passwordless_users, notifier, templates):
    """Return a factory building an AuthConfig over the recording fakes.

    Defaults: password strategy, single-phase registration, default password
    policy, rate limiting on.
    """

    def _make(
        passwordless: bool = False,
        enable_verification: bool = False,
        password_policy: PasswordPolicy | None = None,
        enable_registration: bool = True,
        disable_rate_limit: bool = False,
    ) -> AuthConfig:
        builder = (
            AuthConfigBuilder()
            .endpoint("https://example.com/auth")
            .redirect_on_success("/dashboard")
            .temporary_keys(keys)
            .sessions(sessions)
            .notifier(notifier)
            .templates(templates)
            .registration(enable_registration)
            .rate_limit(disabled=disable_rate_limit)
        )
        if passwordless:
            builder.passwordless_strategy(passwordless_users)
        else:
            builder.password_strategy(
                password_users,
                enable_verification=enable_verification,
                password_policy=password_policy,
            )
        return builder.build()

    return _make


# ---------------------------------------------------------------------------
# SQL stores and the patched lifespan
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TemporaryKeyStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'passwordless').
    """
    url = f"sqlite:///file:test_gatehouse_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), TemporaryKeyStore(db_url=url)


def _patch_lifespan(settings: Settings, user_store: UserStore, key_store: TemporaryKeyStore, mailer: LoggingMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.key_store = key_store
        app.state.mailer = mailer
        app.state.auth_service = build_auth_service(settings, user_store, key_store, mailer)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
#
# The attempt limiter is raised to 1000 per ip:endpoint so a module's worth of
# logins never trips it; tests that exercise 429 swap in their own service.
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService, LoggingMailer], None, None]:
    """Yield (client, service, mailer) for the password strategy.

    The account ann@example.com / Secret123! exists before the client starts.
    The mailer keeps every email in .outbox so tests can read codes and links.
    """
    settings = Settings(debug=True, max_login_attempts=1000)
    user_store, key_store = _make_test_stores(f"api_{uuid.uuid4().hex[:8]}")
    user_store.register("ann@example.com", STRONG_PASSWORD, "Ann", "Lee", ClientContext())
    mailer = LoggingMailer()

    app.router.lifespan_context = _patch_lifespan(settings, user_store, key_store, mailer)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, app.state.auth_service, mailer

    key_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def passwordless_client() -> Generator[tuple[TestClient, AuthService, LoggingMailer], None, None]:
    """Yield (client, service, mailer) for the passwordless strategy."""
    settings = Settings(debug=True, auth_strategy="passwordless", max_login_attempts=1000)
    user_store, key_store = _make_test_stores(f"passwordless_{uuid.uuid4().hex[:8]}")
    mailer = LoggingMailer()

    app.router.lifespan_context = _patch_lifespan(settings, user_store, key_store, mailer)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, app.state.auth_service, mailer

    key_store.close()
    user_store.close()
