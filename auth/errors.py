"""
auth/errors.py -- Exception taxonomy for the auth core.

Every failure the auth core can produce is one of four kinds:

  Unauthenticated       bad, missing or expired token / session.
  Unauthorized          valid principal, but role or ownership does not match.
                        Also raised when a data-scoped request does not match
                        the principal's filter, so the two are indistinguishable
                        to the caller.
  InfrastructureFailure session store or user database unreachable, or a
                        stored value could not be parsed.
  ValidationFailure     malformed caller input (email, password format...).

The `reason` carried by Unauthenticated and Unauthorized is for server-side
logs only. api/main.py maps each kind to a status code and a generic body;
only ValidationFailure's message is shown to the caller verbatim.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth core."""


class Unauthenticated(AuthError):
    def __init__(self, reason: str = "authentication required") -> None:
        super().__init__(reason)
        self.reason = reason


class Unauthorized(AuthError):
    def __init__(self, reason: str = "access denied") -> None:
        super().__init__(reason)
        self.reason = reason


class InfrastructureFailure(AuthError):
    """A backing store failed. The message is logged, never returned to the caller."""


class ValidationFailure(AuthError):
    """Caller input was malformed. The message is safe to return as-is."""


class SessionNotFound(AuthError):
    """resolve_user_id() was asked for a session the store does not hold."""

    def __init__(self, session_id: str) -> None:
        # Only a prefix of the id is kept -- the full value is a live credential.
        super().__init__(f"session {session_id[:8]}... not found")
        self.session_id = session_id
