"""
auth/sessions.py -- Server-side session store.

A session maps an opaque, server-generated session id to the user id and
role it was issued for. The store is the single source of truth for
whether a session is alive: a token naming a session the store no longer
holds is dead, whatever its signature says.

Pattern: Repository behind a Protocol. AuthGuard and AuthService depend on
the SessionStore protocol only; RedisSessionStore is the production
implementation and tests substitute an in-memory fake.

Redis layout:
  session:<id>  ->  JSON {"user_id": "...", "role": "student"}   (no TTL)

There is no automatic expiry at this layer: a session lives until logout or
administrative invalidation deletes its key.

Every call is a live round trip -- nothing is cached in-process. Redis
errors are converted to InfrastructureFailure so that "store down" is never
confused with "session not found".

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Protocol

import redis

from auth.errors import InfrastructureFailure, SessionNotFound
from auth.models import Role, SessionRecord

logger = logging.getLogger("mosifra.auth.sessions")

_KEY_PREFIX = "session:"
_MAX_ID_ATTEMPTS = 5


class SessionStore(Protocol):
    def create_session(self, user_id: str, role: Role) -> str: ...

    def exists(self, session_id: str) -> bool: ...

    def resolve_user_id(self, session_id: str) -> str: ...

    def invalidate(self, session_id: str) -> None: ...

    def ping(self) -> None: ...


def new_session_id() -> str:
    """Return a fresh opaque session id (256 bits of entropy, URL-safe)."""
    return secrets.token_urlsafe(32)


def _key(session_id: str) -> str:
    return f"{_KEY_PREFIX}{session_id}"


def _dump(record: SessionRecord) -> str:
    # The id is the key; only the owner and role go in the value.
    return json.dumps({"user_id": record.user_id, "role": record.role.value})


def _load(session_id: str, raw: str) -> SessionRecord:
    try:
        data = json.loads(raw)
        user_id = data["user_id"]
        role = Role.parse(data["role"])
    except (ValueError, TypeError, KeyError) as exc:
        raise InfrastructureFailure(f"Malformed session record: {exc}") from exc
    if not isinstance(user_id, str):
        raise InfrastructureFailure("Malformed session record: user_id is not a string")
    return SessionRecord(session_id=session_id, user_id=user_id, role=role)


def connect_redis(url: str) -> redis.Redis:
    """Build a redis client for url and ping it.

    Raises InfrastructureFailure if redis is unreachable. Called once at
    startup, where the failure is fatal.
    """
    client = redis.Redis.from_url(url, decode_responses=True)
    try:
        client.ping()
    except redis.RedisError as exc:
        raise InfrastructureFailure(f"Session store unreachable: {exc}") from exc
    return client


class RedisSessionStore:
    """SessionStore backed by a shared redis instance.

    Usage:
        store = RedisSessionStore(connect_redis("redis://localhost:6379/0"))
        sid = store.create_session(user_id, Role.STUDENT)
        store.exists(sid)        # True
        store.invalidate(sid)
        store.exists(sid)        # False
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def ping(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"Session store unreachable: {exc}") from exc

    def create_session(self, user_id: str, role: Role) -> str:
        """Persist a new session and return its id.

        SET NX guarantees the new id does not overwrite a live session. A
        collision on 256 random bits is not expected in practice; if one
        happens a new id is drawn.
        """
        try:
            for _ in range(_MAX_ID_ATTEMPTS):
                session_id = new_session_id()
                value = _dump(SessionRecord(session_id=session_id, user_id=user_id, role=role))
                if self._client.set(_key(session_id), value, nx=True):
                    logger.info("Session created for user_id=%s role=%s", user_id, role.value)
                    return session_id
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"Session store write failed: {exc}") from exc
        raise InfrastructureFailure("Could not allocate a unique session id")

    def exists(self, session_id: str) -> bool:
        try:
            return self._client.exists(_key(session_id)) > 0
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"Session store read failed: {exc}") from exc

    def get(self, session_id: str) -> SessionRecord:
        """Return the full session record. Raises SessionNotFound if absent."""
        try:
            raw = self._client.get(_key(session_id))
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"Session store read failed: {exc}") from exc
        if raw is None:
            raise SessionNotFound(session_id)
        return _load(session_id, raw)

    def resolve_user_id(self, session_id: str) -> str:
        """Return the user id the session was issued for. Raises SessionNotFound if absent."""
        return self.get(session_id).user_id

    def invalidate(self, session_id: str) -> None:
        """Delete the session. Deleting an absent session is not an error."""
        try:
            removed = self._client.delete(_key(session_id))
        except redis.RedisError as exc:
            raise InfrastructureFailure(f"Session store delete failed: {exc}") from exc
        if removed:
            logger.info("Session invalidated")
