"""Unit tests for auth/policies.py -- role gates and ownership predicates."""

import pytest

from auth.errors import Unauthorized
from auth.models import Admin, AuthContext, Company, CourseType, Role, SchoolClass, Student, University
from auth.policies import (
    authorize_class_access,
    authorize_internship_query,
    require_role,
    student_in_class,
    university_has_class,
)


def _class(class_id: str, university_id: str = "u1") -> SchoolClass:
    return SchoolClass(id=class_id, name=f"Class {class_id}", course_type=CourseType.INFO, university_id=university_id)


@pytest.fixture
def university() -> University:
    return University(
        id="u1", login="ulille", name="Lille", mail="u@lille.fr", classes=[_class("c1"), _class("c2")]
    )


@pytest.fixture
def student() -> Student:
    return Student(id="s1", login="alice", mail="a@x.fr", first_name="Alice", last_name="M", class_id="c1")


class TestRequireRole:
    def test_allowed(self) -> None:
        require_role(AuthContext("sid", Role.STUDENT), Role.STUDENT, Role.UNIVERSITY)

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.COMPANY, Role.UNIVERSITY])
    def test_denied(self, role: Role) -> None:
        with pytest.raises(Unauthorized):
            require_role(AuthContext("sid", role), Role.STUDENT)

    def test_accepts_principal(self) -> None:
        require_role(Admin(), Role.ADMIN)


class TestOwnership:
    def test_university_has_any_of_its_classes(self, university: University) -> None:
        assert university_has_class(university, "c1")
        assert university_has_class(university, "c2")

    def test_university_does_not_have_foreign_class(self, university: University) -> None:
        assert not university_has_class(university, "c3")

    def test_university_without_classes(self) -> None:
        assert not university_has_class(University(id="u2", login="x", name="X", mail="x@x.fr"), "c1")

    def test_student_in_class(self, student: Student) -> None:
        assert student_in_class(student, "c1")
        assert not student_in_class(student, "c2")

    def test_student_without_class(self, student: Student) -> None:
        student.class_id = None
        assert not student_in_class(student, "c1")

    def test_class_access_owner(self, university: University) -> None:
        authorize_class_access(university, "c2")

    def test_class_access_other_class(self, university: University) -> None:
        with pytest.raises(Unauthorized):
            authorize_class_access(university, "c9")

    @pytest.mark.parametrize(
        "principal",
        [Admin(), Company(id="c", login="acme", name="Acme", mail="a@a.com")],
    )
    def test_class_access_other_roles(self, principal) -> None:
        with pytest.raises(Unauthorized):
            authorize_class_access(principal, "c1")

    def test_class_access_student(self, student: Student) -> None:
        with pytest.raises(Unauthorized):
            authorize_class_access(student, "c1")


class TestInternshipQuery:
    def test_university_administered_types(self, university: University) -> None:
        assert authorize_internship_query(university, [CourseType.INFO]) == [CourseType.INFO]

    def test_university_without_classes_denied(self) -> None:
        empty = University(id="u2", login="x", name="X", mail="x@x.fr")
        with pytest.raises(Unauthorized):
            authorize_internship_query(empty, [CourseType.INFO])

    @pytest.mark.parametrize("filter_", [None, []])
    def test_empty_filter_denied(self, university: University, filter_) -> None:
        with pytest.raises(Unauthorized):
            authorize_internship_query(university, filter_)

    def test_student_own_course_type(self, student: Student) -> None:
        assert authorize_internship_query(student, [CourseType.INFO], _class("c1")) == [CourseType.INFO]

    def test_student_more_than_one_type_denied(self, student: Student) -> None:
        with pytest.raises(Unauthorized):
            authorize_internship_query(student, [CourseType.INFO, CourseType.INFO], _class("c1"))

    def test_student_without_class_denied(self, student: Student) -> None:
        with pytest.raises(Unauthorized):
            authorize_internship_query(student, [CourseType.INFO], None)

    def test_student_given_wrong_class_denied(self, student: Student) -> None:
        with pytest.raises(Unauthorized):
            authorize_internship_query(student, [CourseType.INFO], _class("c2"))

    @pytest.mark.parametrize(
        "principal",
        [Admin(), Company(id="c", login="acme", name="Acme", mail="a@a.com")],
    )
    def test_other_roles_denied(self, principal) -> None:
        with pytest.raises(Unauthorized):
            authorize_internship_query(principal, [CourseType.INFO])
