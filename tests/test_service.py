"""Unit tests for auth/service.py -- AuthService without HTTP.

Covers:
- successful primary login sends a code and opens a 2FA transaction, no session yet
- failed login writes nothing and returns the fixed rejection shape
- complete_two_factor mints a token naming a live session
- admin login from configuration; empty hash disables it
- logout removes exactly the caller's session
"""

from collections.abc import Generator

import pytest

from auth.models import AuthContext, Role
from auth.passwords import hash_password
from auth.service import ADMIN_USER_ID, AdminCredentials, AuthService, LoginResult
from conftest import (
    ADMIN_PASSWORD,
    FakeSessionStore,
    FakeTwoFactorStore,
    RecordingCodeSender,
    _make_repo,
    build_service,
)
from users.store import UserRepository


@pytest.fixture
def users(request: pytest.FixtureRequest) -> Generator[UserRepository, None, None]:
    repo = _make_repo(f"service_{request.node.name}")
    repo.create_company("Acme", "acme", "company-pass-1", "hr@acme.com")
    yield repo
    repo.close()


@pytest.fixture
def sessions() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture
def challenges() -> FakeTwoFactorStore:
    return FakeTwoFactorStore()


@pytest.fixture
def sender() -> RecordingCodeSender:
    return RecordingCodeSender()


@pytest.fixture
def service(users, sessions, challenges, sender) -> AuthService:
    return build_service(users, sessions, challenges, sender)


class TestLogin:
    def test_success_opens_transaction_only(self, service, sessions, challenges, sender) -> None:
        result = service.login("acme", "company-pass-1", Role.COMPANY, remember_me=True)
        assert result.valid is True
        assert result.remember_me is True
        assert result.transaction_id in challenges.pending
        assert sender.sent == [("hr@acme.com", sender.last_code)]
        assert sessions.sessions == {}

    @pytest.mark.parametrize(
        "login,password,role",
        [
            ("acme", "wrong-password", Role.COMPANY),
            ("ghost", "company-pass-1", Role.COMPANY),
            ("acme", "company-pass-1", Role.UNIVERSITY),
        ],
    )
    def test_failure_writes_nothing(self, service, challenges, sender, login, password, role) -> None:
        assert service.login(login, password, role) == LoginResult(valid=False)
        assert challenges.pending == {}
        assert sender.sent == []


class TestTwoFactor:
    def test_token_names_live_session(self, service, sessions, sender) -> None:
        txn = service.login("acme", "company-pass-1", Role.COMPANY).transaction_id
        token = service.complete_two_factor(txn, sender.last_code)
        claims = service.codec.decode(token)
        assert claims.role is Role.COMPANY
        assert claims.session_id in sessions.sessions

    def test_wrong_code(self, service, sessions, sender) -> None:
        txn = service.login("acme", "company-pass-1", Role.COMPANY).transaction_id
        assert service.complete_two_factor(txn, "not-the-code") is None
        assert sessions.sessions == {}


class TestAdmin:
    def test_admin_login(self, service, sessions, sender) -> None:
        result = service.login("admin", ADMIN_PASSWORD, Role.ADMIN)
        assert result.valid
        service.complete_two_factor(result.transaction_id, sender.last_code)
        assert [user_id for user_id, _ in sessions.sessions.values()] == [ADMIN_USER_ID]

    def test_empty_hash_disables_admin(self, users, sessions, challenges, sender) -> None:
        service = build_service(users, sessions, challenges, sender)
        service.admin = AdminCredentials(login="admin", password_hash="")
        assert service.login("admin", "", Role.ADMIN).valid is False
        assert service.login("admin", ADMIN_PASSWORD, Role.ADMIN).valid is False

    def test_admin_login_must_match(self, service) -> None:
        service.admin = AdminCredentials(login="root", password_hash=hash_password(ADMIN_PASSWORD))
        assert service.login("admin", ADMIN_PASSWORD, Role.ADMIN).valid is False
        assert service.login("root", ADMIN_PASSWORD, Role.ADMIN).valid is True


def test_logout_removes_only_own_session(service, sessions) -> None:
    mine = sessions.create_session("u1", Role.STUDENT)
    other = sessions.create_session("u2", Role.STUDENT)
    service.logout(AuthContext(mine, Role.STUDENT))
    assert mine not in sessions.sessions
    assert other in sessions.sessions
