"""
auth/policies.py -- Role-scoped authorization.

Each protected operation declares the roles allowed to call it and, for
data-scoped operations, an ownership predicate. Every denial raises
Unauthorized -- including "the requested filter does not match what this
principal may see" -- so a caller cannot tell a forbidden resource from one
that merely falls outside its scope.

Ownership is membership: a principal may act on an entity iff the entity is
present in the principal's owned collection.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from typing import Optional, Union

from auth.errors import Unauthorized
from auth.models import AuthContext, CourseType, Principal, Role, SchoolClass, Student, University


def require_role(subject: Union[AuthContext, Principal], *roles: Role) -> None:
    """Raise Unauthorized unless the subject's role is one of roles."""
    if subject.role not in roles:
        raise Unauthorized(f"role {subject.role.value} not in {[r.value for r in roles]}")


def university_has_class(university: University, class_id: str) -> bool:
    return any(school_class.id == class_id for school_class in university.classes)


def student_in_class(student: Student, class_id: str) -> bool:
    return student.class_id is not None and student.class_id == class_id


def authorize_class_access(principal: Principal, class_id: str) -> None:
    """Only the university that owns a class may act on it."""
    if principal.role is not Role.UNIVERSITY or not university_has_class(principal, class_id):
        raise Unauthorized("class not owned by principal")


def authorize_internship_query(
    principal: Principal,
    course_types: Optional[list[CourseType]],
    student_class: Optional[SchoolClass] = None,
) -> list[CourseType]:
    """Return the course types the principal may list internships for.

    University: every requested course type must be one it administers.
    Student:    exactly one course type, equal to its own class's course type.
                student_class is the student's class, loaded by the caller.
    Any other role, a missing or empty filter, or a mismatch -> Unauthorized.
    """
    if not course_types:
        raise Unauthorized("no course type filter")

    if principal.role is Role.UNIVERSITY:
        administered = set(principal.course_types())
        if all(ct in administered for ct in course_types):
            return list(course_types)
        raise Unauthorized("course type not administered by university")

    if principal.role is Role.STUDENT:
        if student_class is None or not student_in_class(principal, student_class.id):
            raise Unauthorized("student has no class")
        if len(course_types) == 1 and course_types[0] == student_class.course_type:
            return list(course_types)
        raise Unauthorized("course type does not match student's class")

    raise Unauthorized(f"role {principal.role.value} may not list internships")
