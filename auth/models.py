"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores and
routes do the work.

Principal is a tagged union over four variants. Each variant carries a
`role` class attribute so callers branch on the tag (see auth/policies.py
and AuthGuard.resolve_principal) rather than on isinstance chains.

Admin has no stored row: it is a self-verifying role whose credentials live
in configuration, so the Admin variant has no fields.

Principals never carry password hashes. Credentials is the only shape that
does, and it only travels between the user store and the login flow.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import ClassVar, Optional, Union


class Role(str, Enum):
    """The four user roles. The value is the lowercase wire form."""

    ADMIN = "admin"
    UNIVERSITY = "university"
    STUDENT = "student"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Case-sensitive parse of the wire form. Raises ValueError on anything else."""
        return cls(value)


class CourseType(str, Enum):
    INFO = "info"

    def to_sql(self) -> int:
        return _COURSE_TYPE_TO_SQL[self]

    @classmethod
    def from_sql(cls, value: int) -> "CourseType":
        try:
            return _SQL_TO_COURSE_TYPE[value]
        except KeyError:
            raise ValueError(f"Unknown course type id: {value!r}") from None


_COURSE_TYPE_TO_SQL = {CourseType.INFO: 1}
_SQL_TO_COURSE_TYPE = {v: k for k, v in _COURSE_TYPE_TO_SQL.items()}


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


@dataclass
class SchoolClass:
    """A university class. Students belong to exactly one class."""

    id: str
    name: str
    course_type: CourseType
    university_id: str
    date_internship_start: Optional[date] = None
    date_internship_end: Optional[date] = None
    minimum_internship_length: int = 0  # days
    maximum_internship_length: int = 0  # days


@dataclass
class Internship:
    id: str
    company_id: str
    course_type: CourseType
    title: str
    description: str = ""


# ---------------------------------------------------------------------------
# Principal variants
# ---------------------------------------------------------------------------


@dataclass
class Admin:
    role: ClassVar[Role] = Role.ADMIN


@dataclass
class University:
    id: str
    login: str
    name: str
    mail: str
    classes: list[SchoolClass] = field(default_factory=list)
    role: ClassVar[Role] = Role.UNIVERSITY

    def course_types(self) -> list[CourseType]:
        """Course types this university administers, in first-seen order."""
        seen: list[CourseType] = []
        for school_class in self.classes:
            if school_class.course_type not in seen:
                seen.append(school_class.course_type)
        return seen


@dataclass
class Student:
    id: str
    login: str
    mail: str
    first_name: str
    last_name: str
    class_id: Optional[str] = None
    role: ClassVar[Role] = Role.STUDENT


@dataclass
class Company:
    id: str
    login: str
    name: str
    mail: str
    internships: list[Internship] = field(default_factory=list)
    role: ClassVar[Role] = Role.COMPANY


Principal = Union[Admin, University, Student, Company]


# ---------------------------------------------------------------------------
# Auth flow records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credentials:
    """What the login flow needs from a user row. Never returned to clients."""

    user_id: str
    role: Role
    hashed_password: str
    mail: str


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    user_id: str
    role: Role


@dataclass(frozen=True)
class TokenClaims:
    """The signed payload of a bearer token. No expiry -- see auth/tokens.py."""

    session_id: str
    role: Role


@dataclass(frozen=True)
class AuthContext:
    """The authenticated handle produced by AuthGuard for one request.

    Only the session id and role are known at this point. The full Principal
    is resolved lazily (AuthGuard.resolve_principal) when a route needs it.
    """

    session_id: str
    role: Role


@dataclass(frozen=True)
class PendingLogin:
    """A second-factor transaction: primary credentials passed, code not yet confirmed."""

    transaction_id: str
    user_id: str
    role: Role
    remember_me: bool = False
