"""
auth/guard.py -- Request-time authentication gate.

AuthGuard.authenticate() runs once per request:

  1. Extract   "Authorization: Bearer <token>" is required.
  2. Decode    TokenCodec.decode(); any failure -> Unauthenticated.
  3. Admin     role admin is accepted without a session store call.
  4. Liveness  SessionStore.exists(); False -> Unauthenticated,
               store error -> InfrastructureFailure (propagated unchanged).
  5. Accept    AuthContext(session_id, role).

Terminal outcomes are Accepted (an AuthContext), Unauthenticated, or
InfrastructureFailure. There is no retry and no refresh.

A valid signature is not enough: after logout the token still decodes, but
its session is gone from the store and step 4 rejects it.

resolve_principal() is the lazy second step: one store round trip for the
user id plus one user-store query, performed only by routes that need
role-specific fields.

Dependencies (codec, session store, user directory) are injected by the
caller; the API lifespan builds one AuthGuard and stores it on app.state.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from auth.errors import SessionNotFound, Unauthenticated
from auth.models import Admin, AuthContext, Company, Principal, Role, Student, University
from auth.sessions import SessionStore
from auth.tokens import TokenCodec

logger = logging.getLogger("mosifra.auth.guard")

_BEARER_PREFIX = "Bearer "


class PrincipalDirectory(Protocol):
    def get_university(self, university_id: str) -> Optional[University]: ...

    def get_student(self, student_id: str) -> Optional[Student]: ...

    def get_company(self, company_id: str) -> Optional[Company]: ...


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an "Authorization: Bearer <token>" header value."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise Unauthenticated("authorization header missing")
    token = authorization[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthenticated("authorization header missing")
    return token


class AuthGuard:
    def __init__(self, codec: TokenCodec, sessions: SessionStore, users: PrincipalDirectory) -> None:
        self.codec = codec
        self.sessions = sessions
        self.users = users
        # Every non-admin role must appear here; admin is resolved without a lookup.
        self._loaders: dict[Role, Callable[[str], Optional[Principal]]] = {
            Role.UNIVERSITY: users.get_university,
            Role.STUDENT: users.get_student,
            Role.COMPANY: users.get_company,
        }

    def authenticate(self, authorization: Optional[str]) -> AuthContext:
        """Authenticate one request from its Authorization header value."""
        token = extract_bearer_token(authorization)

        claims = self.codec.decode(token)
        if claims is None:
            raise Unauthenticated("invalid token")

        if claims.role is Role.ADMIN:
            return AuthContext(session_id=claims.session_id, role=claims.role)

        if not self.sessions.exists(claims.session_id):
            raise Unauthenticated("session expired")

        return AuthContext(session_id=claims.session_id, role=claims.role)

    def resolve_principal(self, ctx: AuthContext) -> Principal:
        """Fetch the full principal for an authenticated context.

        Raises Unauthenticated if the session disappeared after authenticate()
        or if the user row it points to no longer exists.
        """
        if ctx.role is Role.ADMIN:
            return Admin()

        try:
            user_id = self.sessions.resolve_user_id(ctx.session_id)
        except SessionNotFound as exc:
            raise Unauthenticated("session expired") from exc

        principal = self._loaders[ctx.role](user_id)
        if principal is None:
            logger.warning("Session points at missing %s user_id=%s", ctx.role.value, user_id)
            raise Unauthenticated("user no longer exists")
        return principal
