"""
api/routes/v1/courses.py -- Class and internship queries scoped by role.

Routes:
  POST /api/v1/courses/internships                 -- university or student, filtered
  GET  /api/v1/courses/classes                     -- university: its own classes
  GET  /api/v1/courses/class/{class_id}/students   -- university owning the class

Authorization lives in auth/policies.py. A class that does not exist and a
class owned by another university give the same 403, as does an internship
filter outside the caller's scope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ClassResponse, ClassStudentRow, InternshipResponse, InternshipsRequest, InternshipsResponse
from auth.dependencies import require_principal
from auth.models import Principal, Role, University
from auth.policies import authorize_class_access, authorize_internship_query
from users.store import UserRepository

router = APIRouter()


@router.post("/courses/internships", response_model=InternshipsResponse)
def get_internships(
    request: Request,
    body: InternshipsRequest,
    principal: Principal = Depends(require_principal(Role.UNIVERSITY, Role.STUDENT)),
) -> InternshipsResponse:
    """List internships for the requested course types.

    University: any course types it administers. Student: exactly its own
    class's course type.
    """
    users: UserRepository = request.app.state.users
    student_class = None
    if principal.role is Role.STUDENT and principal.class_id:
        student_class = users.get_class(principal.class_id)
    course_types = authorize_internship_query(principal, body.course_types, student_class)
    internships = users.get_internships_by_course_types(course_types)
    return InternshipsResponse(
        success=True,
        internships=[InternshipResponse.from_internship(i) for i in internships],
    )


@router.get("/courses/classes", response_model=list[ClassResponse])
def get_classes(university: University = Depends(require_principal(Role.UNIVERSITY))) -> list[ClassResponse]:
    return [ClassResponse.from_class(c) for c in university.classes]


@router.get("/courses/class/{class_id}/students", response_model=list[ClassStudentRow])
def get_class_students(
    request: Request,
    class_id: str,
    principal: Principal = Depends(require_principal(Role.UNIVERSITY)),
) -> list[ClassStudentRow]:
    authorize_class_access(principal, class_id)
    users: UserRepository = request.app.state.users
    return [
        ClassStudentRow(id=s.id, login=s.login, first_name=s.first_name, last_name=s.last_name, mail=s.mail)
        for s in users.get_students_in_class(class_id)
    ]
