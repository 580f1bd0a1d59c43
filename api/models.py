"""
API request and response models for the Mosifra REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import CourseType, Internship, Role, SchoolClass, Student

# ---------------------------------------------------------------------------
# Auth flow
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No whitespace stripping: passwords are compared byte for byte.
    """

    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    user_type: Role
    remember_me: bool = False


class LoginResponse(BaseModel):
    """Primary credential check result.

    transaction_id is the second-factor challenge handle; it is set only when
    valid is True. A failed check is {valid: false, transaction_id: null,
    remember_me: null}.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    transaction_id: Optional[str] = None
    remember_me: Optional[bool] = None


class TwoFactorRequest(BaseModel):
    """Request body for POST /api/v1/auth/2fa."""

    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_id: str = Field(min_length=1, max_length=128)
    code: str = Field(min_length=1, max_length=16)


class TwoFactorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    token: Optional[str] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    user_type: Role


class LogoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserTypeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_type: Role


class StudentInfoResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    login: str
    mail: str
    first_name: str
    last_name: str
    class_id: Optional[str] = None

    @classmethod
    def from_student(cls, student: Student) -> "StudentInfoResponse":
        return cls(
            id=student.id,
            login=student.login,
            mail=student.mail,
            first_name=student.first_name,
            last_name=student.last_name,
            class_id=student.class_id,
        )


class CourseTypeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_type: CourseType


class CourseTypesResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_types: list[CourseType]


class AccountCreate(BaseModel):
    """Request body for POST /api/v1/user/universities and /user/companies.

    Email and password format are checked by the store (ValidationFailure ->
    400 with a precise message), not here, so the rules live in one place.
    """

    name: str = Field(min_length=1, max_length=255)
    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    mail: str = Field(min_length=1, max_length=255)


class AccountResponse(BaseModel):
    """A university or company account. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    login: str
    name: str
    mail: str


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


class InternshipsRequest(BaseModel):
    """Request body for POST /api/v1/courses/internships."""

    course_types: Optional[list[CourseType]] = None


class InternshipResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    company_id: str
    course_type: CourseType
    title: str
    description: str = ""

    @classmethod
    def from_internship(cls, internship: Internship) -> "InternshipResponse":
        return cls(
            id=internship.id,
            company_id=internship.company_id,
            course_type=internship.course_type,
            title=internship.title,
            description=internship.description,
        )


class InternshipsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    internships: list[InternshipResponse]


class ClassResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    course_type: CourseType
    date_internship_start: Optional[date] = None
    date_internship_end: Optional[date] = None
    minimum_internship_length: int
    maximum_internship_length: int

    @classmethod
    def from_class(cls, school_class: SchoolClass) -> "ClassResponse":
        return cls(
            id=school_class.id,
            name=school_class.name,
            course_type=school_class.course_type,
            date_internship_start=school_class.date_internship_start,
            date_internship_end=school_class.date_internship_end,
            minimum_internship_length=school_class.minimum_internship_length,
            maximum_internship_length=school_class.maximum_internship_length,
        )


class ClassStudentRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    login: str
    first_name: str
    last_name: str
    mail: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
