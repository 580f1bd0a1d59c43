"""
auth/passwords.py -- Credential verification, password hashing and input validation.

Security design decisions:
  Hashing: argon2-cffi PasswordHasher with the argon2id variant. argon2id is
       memory-hard, so GPU/ASIC brute-force of a leaked hash is expensive in
       both time and memory. The encoded hash string embeds the algorithm
       parameters and a fresh random salt, so verification needs nothing but
       the stored string -- no separate salt column.

  Timing equalization: verify() always runs argon2, even when the login does
       not exist (stored_hash is None). _DUMMY_HASH stands in for the missing
       row so response time does not reveal whether a login exists.

  Logging: the login is logged on failure; the submitted password never is.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from typing import Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from auth.errors import ValidationFailure

logger = logging.getLogger("mosifra.auth.passwords")

_hasher = PasswordHasher(type=Type.ID)

MIN_PASSWORD_LENGTH = 8

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# Look-alike characters are excluded from generated passwords: they are read
# off a screen or a letter and typed back by hand.
_SIMILAR = set("iIl1Lo0O")
_LOWER = "".join(c for c in string.ascii_lowercase if c not in _SIMILAR)
_UPPER = "".join(c for c in string.ascii_uppercase if c not in _SIMILAR)
_DIGITS = "".join(c for c in string.digits if c not in _SIMILAR)
_SYMBOLS = "!#$%&*+-=?@^_"


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return an argon2id encoded hash of the plaintext password.

    A new random salt is drawn on every call, so hashing the same password
    twice yields two different strings that both verify.
    """
    return _hasher.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the encoded hash."""
    try:
        return _hasher.verify(hashed, plain)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning("Stored password hash could not be parsed")
        return False


# Computed once at module load so the first failed login is not measurably
# faster than later ones.
_DUMMY_HASH: str = hash_password("mosifra_timing_dummy")


def verify(login: str, submitted_password: str, stored_hash: Optional[str]) -> bool:
    """Check a login/password pair against the stored hash for that login.

    stored_hash is None when no user with this login exists. argon2 still
    runs (against _DUMMY_HASH) and the result is forced to False.
    """
    if stored_hash is None:
        verify_password(submitted_password, _DUMMY_HASH)
        logger.info("Credential check failed for login=%s (unknown login)", login)
        return False
    if not verify_password(submitted_password, stored_hash):
        logger.info("Credential check failed for login=%s", login)
        return False
    return True


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_password(plain: str) -> None:
    """Raise ValidationFailure if the password is too short."""
    if len(plain) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def validate_email(mail: str) -> None:
    """Raise ValidationFailure if mail is not a plausible email address."""
    if not _EMAIL_RE.match(mail):
        raise ValidationFailure("Invalid email address.")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_password(length: int = MIN_PASSWORD_LENGTH) -> str:
    """Generate a random password for an account created on someone's behalf.

    The result always contains at least one lowercase letter, uppercase letter,
    digit and symbol. secrets.SystemRandom is used for every draw and for the
    final shuffle.
    """
    if length < 4:
        raise ValueError("length must be at least 4")
    rng = secrets.SystemRandom()
    pools = (_LOWER, _UPPER, _DIGITS, _SYMBOLS)
    chars = [secrets.choice(pool) for pool in pools]
    alphabet = "".join(pools)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    rng.shuffle(chars)
    return "".join(chars)
