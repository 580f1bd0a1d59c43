"""
tests/conftest.py -- Shared test fixtures for Mosifra.

This module provides:
  - FakeSessionStore / FakeTwoFactorStore: in-memory stand-ins for the redis
    stores, implementing the same protocols. `fail = True` makes every call
    raise InfrastructureFailure, simulating an unreachable store.
  - RecordingCodeSender: captures 2FA codes so tests can complete the login.
  - _make_repo(): isolated shared-memory SQLite UserRepository
  - _patch_lifespan(): wires test components into app.state, bypassing the
    real startup (no redis connection is attempted)
  - api: TestClient + seeded accounts for HTTP integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

JWT_SECRET and REDIS_URL must be set before any api import: api.main
validates Settings at import and refuses to load without them.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

# CRITICAL: set before importing api.main, which validates Settings at import.
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.errors import InfrastructureFailure, SessionNotFound
from auth.guard import AuthGuard
from auth.models import CourseType, Internship, PendingLogin, Role, SchoolClass
from auth.passwords import hash_password
from auth.service import AdminCredentials, AuthService
from auth.sessions import new_session_id
from auth.tokens import TokenCodec
from auth.twofactor import MAX_CODE_ATTEMPTS
from users.store import UserRepository

TEST_SECRET = os.environ["JWT_SECRET"]

# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


class FakeSessionStore:
    """Dict-backed SessionStore. Counts calls so tests can assert on round trips."""

    def __init__(self) -> None:
        self.sessions: dict[str, tuple[str, Role]] = {}
        self.fail = False
        self.calls = 0

    def _check(self) -> None:
        self.calls += 1
        if self.fail:
            raise InfrastructureFailure("fake session store is down")

    def ping(self) -> None:
        self._check()

    def create_session(self, user_id: str, role: Role) -> str:
        self._check()
        session_id = new_session_id()
        while session_id in self.sessions:
            session_id = new_session_id()
        self.sessions[session_id] = (user_id, role)
        return session_id

    def exists(self, session_id: str) -> bool:
        self._check()
        return session_id in self.sessions

    def resolve_user_id(self, session_id: str) -> str:
        self._check()
        try:
            return self.sessions[session_id][0]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def invalidate(self, session_id: str) -> None:
        self._check()
        self.sessions.pop(session_id, None)


class FakeTwoFactorStore:
    def __init__(self) -> None:
        self.pending: dict[str, tuple[PendingLogin, str]] = {}
        self.failures: dict[str, int] = {}

    def create(self, user_id: str, role: Role, code: str, remember_me: bool) -> str:
        transaction_id = new_session_id()
        self.pending[transaction_id] = (PendingLogin(transaction_id, user_id, role, remember_me), code)
        return transaction_id

    def consume(self, transaction_id: str, code: str) -> Optional[PendingLogin]:
        entry = self.pending.get(transaction_id)
        if entry is None:
            return None
        if entry[1] != code:
            self.failures[transaction_id] = self.failures.get(transaction_id, 0) + 1
            if self.failures[transaction_id] >= MAX_CODE_ATTEMPTS:
                del self.pending[transaction_id]
            return None
        del self.pending[transaction_id]
        return entry[0]


@dataclass
class RecordingCodeSender:
    sent: list[tuple[str, str]] = field(default_factory=list)

    def send(self, mail: str, code: str) -> None:
        self.sent.append((mail, code))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

ADMIN_PASSWORD = "admin-pass-123"
_ADMIN_HASH = hash_password(ADMIN_PASSWORD)


def _make_repo(db_suffix: str) -> UserRepository:
    """Create an isolated named shared-memory SQLite repository.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserRepository(f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")


def build_service(
    users: UserRepository,
    sessions: FakeSessionStore,
    challenges: FakeTwoFactorStore,
    sender: RecordingCodeSender,
    codec: Optional[TokenCodec] = None,
) -> AuthService:
    return AuthService(
        users=users,
        sessions=sessions,
        challenges=challenges,
        codec=codec or TokenCodec(TEST_SECRET),
        sender=sender,
        admin=AdminCredentials(login="admin", password_hash=_ADMIN_HASH, mail="admin@mosifra.test"),
    )


def _patch_lifespan(users: UserRepository, sessions: FakeSessionStore, service: AuthService, guard: AuthGuard):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.users = users
        app.state.sessions = sessions
        app.state.auth_guard = guard
        app.state.auth_service = service
        yield

    return test_lifespan


@dataclass
class ApiEnv:
    client: TestClient
    users: UserRepository
    sessions: FakeSessionStore
    challenges: FakeTwoFactorStore
    sender: RecordingCodeSender
    codec: TokenCodec
    ids: dict[str, str]
    login: Callable[..., str]


def _seed(users: UserRepository) -> dict[str, str]:
    """Seed two universities, a class each, a student, and a company with an internship."""
    ids: dict[str, str] = {}
    ids["university"] = users.create_university(
        "Université de Lille", "ulille", "uni-pass-123", "contact@univ-lille.fr"
    )
    ids["other_university"] = users.create_university(
        "Université de Paris", "uparis", "uni-pass-456", "hello@u-paris.fr"
    )
    ids["class"] = users.create_class(
        SchoolClass(
            id="",
            name="BUT Info 3",
            course_type=CourseType.INFO,
            university_id=ids["university"],
            date_internship_start=date(2025, 4, 1),
            date_internship_end=date(2025, 6, 30),
            minimum_internship_length=56,
            maximum_internship_length=84,
        )
    )
    ids["other_class"] = users.create_class(
        SchoolClass(id="", name="Licence Info", course_type=CourseType.INFO, university_id=ids["other_university"])
    )
    ids["student"], ids["student_login"] = users.create_student(
        "Alice", "Martin", "alice@etu.univ-lille.fr", "correct", class_id=ids["class"], login="alice"
    )
    ids["company"] = users.create_company("Acme", "acme", "company-pass-1", "hr@acme.com")
    ids["internship"] = users.create_internship(
        Internship(id="", company_id=ids["company"], course_type=CourseType.INFO, title="Backend intern")
    )
    return ids


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request: pytest.FixtureRequest) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv for HTTP integration tests.

    Accounts (login / password):
      alice  / correct          student in ids["class"]
      ulille / uni-pass-123     university owning ids["class"]
      uparis / uni-pass-456     university owning ids["other_class"]
      acme   / company-pass-1   company with one INFO internship
      admin  / ADMIN_PASSWORD   configured admin
    """
    users = _make_repo(f"api_{request.module.__name__}")
    ids = _seed(users)
    sessions = FakeSessionStore()
    challenges = FakeTwoFactorStore()
    sender = RecordingCodeSender()
    codec = TokenCodec(TEST_SECRET)
    service = build_service(users, sessions, challenges, sender, codec)
    guard = AuthGuard(codec, sessions, users)

    app.router.lifespan_context = _patch_lifespan(users, sessions, service, guard)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:

        def login(login: str, password: str, user_type: str) -> str:
            """Run login + 2FA over HTTP and return the bearer token."""
            resp = client.post(
                "/api/v1/auth/login",
                json={"login": login, "password": password, "user_type": user_type},
            )
            assert resp.status_code == 200, resp.text
            body = resp.json()
            assert body["valid"] is True, body
            resp = client.post(
                "/api/v1/auth/2fa",
                json={"transaction_id": body["transaction_id"], "code": sender.last_code},
            )
            assert resp.status_code == 200, resp.text
            return resp.json()["token"]

        yield ApiEnv(client, users, sessions, challenges, sender, codec, ids, login)

    limiter.enabled = True
    users.close()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
