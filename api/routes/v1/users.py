"""
api/routes/v1/users.py -- Role-specific account endpoints.

Routes:
  GET  /api/v1/user/user_type                -- any authenticated role
  GET  /api/v1/user/student/info             -- student
  GET  /api/v1/user/student/course_type      -- student
  GET  /api/v1/user/university/course_types  -- university
  GET  /api/v1/user/universities             -- admin
  POST /api/v1/user/universities             -- admin
  GET  /api/v1/user/companies                -- admin
  POST /api/v1/user/companies                -- admin

Role checks run on the token's role before the principal is loaded, so a
caller with the wrong role never costs a user-store query.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    AccountCreate,
    AccountResponse,
    CourseTypeResponse,
    CourseTypesResponse,
    StudentInfoResponse,
    UserTypeResponse,
)
from auth.dependencies import get_auth_context, require_principal, require_roles
from auth.models import AuthContext, Role, Student, University
from users.store import UserRepository

router = APIRouter()


@router.get("/user/user_type", response_model=UserTypeResponse)
def get_user_type(ctx: AuthContext = Depends(get_auth_context)) -> UserTypeResponse:
    return UserTypeResponse(user_type=ctx.role)


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------


@router.get("/user/student/info", response_model=StudentInfoResponse)
def get_student_info(student: Student = Depends(require_principal(Role.STUDENT))) -> StudentInfoResponse:
    return StudentInfoResponse.from_student(student)


@router.get("/user/student/course_type", response_model=CourseTypeResponse)
def get_student_course_type(
    request: Request,
    student: Student = Depends(require_principal(Role.STUDENT)),
) -> CourseTypeResponse:
    """Return the course type of the student's class."""
    users: UserRepository = request.app.state.users
    school_class = users.get_class(student.class_id) if student.class_id else None
    if school_class is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Student has no class."},
        )
    return CourseTypeResponse(course_type=school_class.course_type)


# ---------------------------------------------------------------------------
# University
# ---------------------------------------------------------------------------


@router.get("/user/university/course_types", response_model=CourseTypesResponse)
def get_university_course_types(
    university: University = Depends(require_principal(Role.UNIVERSITY)),
) -> CourseTypesResponse:
    """Course types the university administers, derived from its classes."""
    return CourseTypesResponse(course_types=university.course_types())


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/user/universities", response_model=list[AccountResponse])
def list_universities(
    request: Request,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
) -> list[AccountResponse]:
    users: UserRepository = request.app.state.users
    return [AccountResponse(id=u.id, login=u.login, name=u.name, mail=u.mail) for u in users.list_universities()]


@router.post("/user/universities", response_model=AccountResponse, status_code=201)
def create_university(
    request: Request,
    body: AccountCreate,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
) -> AccountResponse:
    """Create a university account. Bad email/password or a taken login -> 400."""
    users: UserRepository = request.app.state.users
    university_id = users.create_university(body.name, body.login, body.password, body.mail)
    return AccountResponse(id=university_id, login=body.login, name=body.name, mail=body.mail)


@router.get("/user/companies", response_model=list[AccountResponse])
def list_companies(
    request: Request,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
) -> list[AccountResponse]:
    users: UserRepository = request.app.state.users
    return [AccountResponse(id=c.id, login=c.login, name=c.name, mail=c.mail) for c in users.list_companies()]


@router.post("/user/companies", response_model=AccountResponse, status_code=201)
def create_company(
    request: Request,
    body: AccountCreate,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
) -> AccountResponse:
    """Create a company account. Bad email/password or a taken login -> 400."""
    users: UserRepository = request.app.state.users
    company_id = users.create_company(body.name, body.login, body.password, body.mail)
    return AccountResponse(id=company_id, login=body.login, name=body.name, mail=body.mail)
