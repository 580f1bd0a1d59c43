"""
auth/tokens.py -- Bearer token encode / decode.

Security design decisions:
  JWT: python-jose with HS256. A token carries exactly two claims,
       session_id and user_type, signed with the process-wide secret.

  No expiry: tokens have no "exp" claim and decode() does not enforce one if
       present. Time claims in general are ignored: a stray "nbf" or "iat"
       cannot make a validly signed token undecodable. Revocation is the session store's job -- a token is only ever
       as alive as the session it names (see auth/guard.py). Decoding is
       stateless and never touches the store.

  Uniform rejection: malformed tokens, wrong signatures, disallowed algorithms
       (including "none") and tokens with missing or unknown claims all decode
       to None. The reason is logged at DEBUG and never returned to the caller.

  Secret injection: TokenCodec receives the secret in its constructor. The
       API lifespan builds one codec from Settings at startup; nothing in this
       module reads configuration.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
from typing import Optional

from jose import JWTError, jwt

from auth.models import Role, TokenClaims

logger = logging.getLogger("mosifra.auth.tokens")

_ALGORITHM = "HS256"


class TokenCodec:
    """Signs and verifies bearer tokens with a single shared secret.

    Usage:
        codec = TokenCodec(settings.jwt_secret)
        token = codec.encode(session_id, Role.STUDENT)
        claims = codec.decode(token)   # TokenClaims or None
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret")
        self._secret = secret

    def encode(self, session_id: str, role: Role) -> str:
        """Return a signed token for (session_id, role). Deterministic for equal input."""
        payload = {
            "session_id": session_id,
            "user_type": role.value,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def decode(self, token: str) -> Optional[TokenClaims]:
        """Verify the signature and return the claims, or None on any failure."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_nbf": False, "verify_iat": False, "verify_aud": False},
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            return None

        session_id = payload.get("session_id")
        user_type = payload.get("user_type")
        if not isinstance(session_id, str) or not session_id or not isinstance(user_type, str):
            logger.debug("Token rejected: missing session_id or user_type claim")
            return None
        try:
            role = Role.parse(user_type)
        except ValueError:
            logger.debug("Token rejected: unknown user_type %r", user_type)
            return None
        return TokenClaims(session_id=session_id, role=role)
