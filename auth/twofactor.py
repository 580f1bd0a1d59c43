"""
auth/twofactor.py -- Second-factor (emailed code) transactions.

Flow:
  1. Primary credentials pass -> generate_code() -> CodeSender.send(mail, code)
  2. TwoFactorStore.create() stores a short-lived transaction and returns its
     id. The id (never the code) goes back to the client as transaction_id.
  3. The client submits (transaction_id, code). consume() checks the code and,
     on a match, deletes the transaction and returns the PendingLogin so the
     caller can mint a session.

Security:
  Only the SHA-256 digest of the code is stored; comparison is constant-time
  (hmac.compare_digest). A transaction is single-use: a successful consume()
  deletes it. Wrong codes are counted under twofa:<id>:fails (same TTL); the
  MAX_CODE_ATTEMPTS-th wrong code deletes the transaction, so a 6-digit code
  cannot be brute-forced within one transaction.

Mail delivery is an external collaborator behind the CodeSender protocol.
LogCodeSender writes the code to the log and is meant for development only.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
from typing import Optional, Protocol

import redis

from auth.errors import InfrastructureFailure
from auth.models import PendingLogin, Role

logger = logging.getLogger("mosifra.auth.twofactor")

_KEY_PREFIX = "twofa:"
_FAILS_SUFFIX = ":fails"
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


def generate_code() -> str:
    """Return a zero-padded numeric code of CODE_LENGTH digits."""
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def _digest(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class CodeSender(Protocol):
    def send(self, mail: str, code: str) -> None: ...


class LogCodeSender:
    """Development CodeSender: logs the code instead of mailing it."""

    def send(self, mail: str, code: str) -> None:
        logger.warning("2FA code for %s: %s (LogCodeSender -- do not use in production)", mail, code)


class TwoFactorStore(Protocol):
    def create(self, user_id: str, role: Role, code: str, remember_me: bool) -> str: ...

    def consume(self, transaction_id: str, code: str) -> Optional[PendingLogin]: ...


class RedisTwoFactorStore:
    """TwoFactorStore backed by redis keys with a TTL.

    Redis layout:
      twofa:<transaction_id> -> JSON {"user_id", "role", "code_sha256", "remember_me"}
      twofa:<transaction_id>:fails -> count of wrong codes submitted
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int) -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds

    def create(self, user_id: str, role: Role, code: str, remember_me: bool) -> str:
        transaction_id = secrets.token_urlsafe(24)
        value = json.dumps(
            {
                "user_id": user_id,
                "role": role.value,
                "code_sha256": _digest(code),
                "remember_me": remember_me,
            }
        )
        try:
            self._client.set(f"{_KEY_PREFIX}{transaction_id}", value, ex=self.ttl_seconds)
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"2FA store write failed: {exc}") from exc
        return transaction_id

    def consume(self, transaction_id: str, code: str) -> Optional[PendingLogin]:
        """Return the pending login if the code matches, else None."""
        key = f"{_KEY_PREFIX}{transaction_id}"
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"2FA store read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            record = json.loads(raw)
            expected = record["code_sha256"]
            pending = PendingLogin(
                transaction_id=transaction_id,
                user_id=record["user_id"],
                role=Role.parse(record["role"]),
                remember_me=bool(record.get("remember_me", False)),
            )
        except (ValueError, TypeError, KeyError) as exc:
            raise InfrastructureFailure(f"Malformed 2FA record: {exc}") from exc

        if not hmac.compare_digest(expected, _digest(code)):
            logger.info("2FA code mismatch for user_id=%s", pending.user_id)
            self._record_failure(key, pending.user_id)
            return None
        try:
            # DEL returns 0 if a concurrent consume() won the race.
            if not self._client.delete(key):
                return None
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"2FA store delete failed: {exc}") from exc
        return pending

    def _record_failure(self, key: str, user_id: str) -> None:
        fails_key = f"{key}{_FAILS_SUFFIX}"
        try:
            fails = self._client.incr(fails_key)
            if fails == 1:
                self._client.expire(fails_key, self.ttl_seconds)
            if fails >= MAX_CODE_ATTEMPTS:
                self._client.delete(key, fails_key)
                logger.warning("2FA transaction dropped after %d wrong codes for user_id=%s", fails, user_id)
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"2FA store write failed: {exc}") from exc
