"""
auth/service.py -- Login, second-factor completion and logout.

Control flow:
  login()               credentials -> passwords.verify() -> 2FA code sent,
                        transaction issued. No session exists yet.
  complete_two_factor() transaction + code -> SessionStore.create_session()
                        -> TokenCodec.encode() -> token returned to client.
  logout()              SessionStore.invalidate(). The token still decodes
                        afterwards, but AuthGuard rejects it (non-admin).

A failed primary check returns LoginResult(valid=False, transaction_id=None,
remember_me=None) -- the same shape whether the login is unknown or the
password is wrong, and nothing is written to any store.

Layer rule: no imports from api/ or users/. The user store is reached through
the CredentialDirectory protocol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from auth import passwords
from auth.models import AuthContext, Credentials, Role
from auth.sessions import SessionStore
from auth.tokens import TokenCodec
from auth.twofactor import CodeSender, TwoFactorStore, generate_code

logger = logging.getLogger("mosifra.auth")

ADMIN_USER_ID = "admin"


class CredentialDirectory(Protocol):
    def get_credentials(self, role: Role, login: str) -> Optional[Credentials]: ...


@dataclass(frozen=True)
class AdminCredentials:
    """Admin login settings. An empty password_hash disables admin login."""

    login: str
    password_hash: str = ""
    mail: str = ""


@dataclass(frozen=True)
class LoginResult:
    valid: bool
    transaction_id: Optional[str] = None
    remember_me: Optional[bool] = None


_REJECTED = LoginResult(valid=False)


class AuthService:
    def __init__(
        self,
        users: CredentialDirectory,
        sessions: SessionStore,
        challenges: TwoFactorStore,
        codec: TokenCodec,
        sender: CodeSender,
        admin: AdminCredentials,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.challenges = challenges
        self.codec = codec
        self.sender = sender
        self.admin = admin

    def _lookup(self, role: Role, login: str) -> Optional[Credentials]:
        if role is Role.ADMIN:
            if not self.admin.password_hash or login != self.admin.login:
                return None
            return Credentials(
                user_id=ADMIN_USER_ID,
                role=Role.ADMIN,
                hashed_password=self.admin.password_hash,
                mail=self.admin.mail,
            )
        return self.users.get_credentials(role, login)

    def login(self, login: str, password: str, role: Role, remember_me: bool = False) -> LoginResult:
        """Check primary credentials and, on success, start a second-factor transaction."""
        credentials = self._lookup(role, login)
        stored_hash = credentials.hashed_password if credentials is not None else None
        if not passwords.verify(login, password, stored_hash):
            logger.warning("%s login failed for login=%s", role.value.capitalize(), login)
            return _REJECTED

        code = generate_code()
        self.sender.send(credentials.mail, code)
        transaction_id = self.challenges.create(credentials.user_id, role, code, remember_me)
        logger.info("%s primary login ok user_id=%s, 2FA pending", role.value.capitalize(), credentials.user_id)
        return LoginResult(valid=True, transaction_id=transaction_id, remember_me=remember_me)

    def complete_two_factor(self, transaction_id: str, code: str) -> Optional[str]:
        """Exchange a confirmed 2FA transaction for a session token. None if the code is wrong."""
        pending = self.challenges.consume(transaction_id, code)
        if pending is None:
            return None
        session_id = self.sessions.create_session(pending.user_id, pending.role)
        logger.info("Login completed user_id=%s role=%s", pending.user_id, pending.role.value)
        return self.codec.encode(session_id, pending.role)

    def logout(self, ctx: AuthContext) -> None:
        self.sessions.invalidate(ctx.session_id)
        logger.info("Logout role=%s", ctx.role.value)
