"""
users/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserRepository is the repository; the
_row_to_* functions are the mappers. Route and auth code never touches SQL
directly.

Tables:
  university, company, student  -- one per stored role. Each row has a login
                                   (unique across all three tables, enforced in
                                   code) and an argon2 password hash.
  school_class                  -- belongs to a university; students belong
                                   to one class.
  internship                    -- offered by a company for one course type.

The Admin role has no table: its credentials come from configuration.

Error handling:
  Every query runs inside _connect(). SQLAlchemyError is converted to
  InfrastructureFailure (the database is down or the schema is wrong), except
  IntegrityError on insert, which means a duplicate and becomes
  ValidationFailure. A row the mappers cannot decode (an unknown course type
  id) is also InfrastructureFailure.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Password hashes are read only by get_credentials(); the principal mappers
  never copy them into the returned dataclasses.
"""

from __future__ import annotations

import logging
import unicodedata
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import InfrastructureFailure, ValidationFailure
from auth.models import Company, CourseType, Credentials, Internship, Role, SchoolClass, Student, University
from auth.passwords import hash_password, validate_email, validate_password

logger = logging.getLogger("mosifra.users.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'mosifra_users.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_universities = Table(
    "university",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("login", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # argon2 encoded hash
    Column("name", String(255), nullable=False),
    Column("mail", String(255), nullable=False),
)

_companies = Table(
    "company",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("login", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),
    Column("name", String(255), nullable=False),
    Column("mail", String(255), nullable=False),
)

_classes = Table(
    "school_class",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("course_type", Integer, nullable=False),  # CourseType.to_sql()
    Column("university_id", String(36), ForeignKey("university.id", ondelete="CASCADE"), nullable=False),
    Column("date_internship_start", Date),
    Column("date_internship_end", Date),
    Column("minimum_internship_length", Integer, nullable=False, server_default="0"),
    Column("maximum_internship_length", Integer, nullable=False, server_default="0"),
)

_students = Table(
    "student",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("login", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),
    Column("mail", String(255), nullable=False),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("class_id", String(36), ForeignKey("school_class.id", ondelete="SET NULL")),
)

_internships = Table(
    "internship",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("company_id", String(36), ForeignKey("company.id", ondelete="CASCADE"), nullable=False),
    Column("course_type", Integer, nullable=False),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
)

_LOGIN_TABLES: dict[Role, Table] = {
    Role.UNIVERSITY: _universities,
    Role.STUDENT: _students,
    Role.COMPANY: _companies,
}


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _new_id() -> str:
    return str(uuid.uuid4())


def _ascii_fold(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return normalized.encode("ascii", "ignore").decode("ascii")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserRepository:
    """Repository for universities, companies, students, classes and internships.

    Usage:
        repo = UserRepository("sqlite:///mosifra.db")
        uni_id = repo.create_university("Université de Lille", "ulille", "secret-pass", "contact@univ-lille.fr")
        creds = repo.get_credentials(Role.UNIVERSITY, "ulille")
        repo.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError as exc:
            raise ValidationFailure("A record with these values already exists.") from exc
        except SQLAlchemyError as exc:
            raise InfrastructureFailure(f"User database error: {exc}") from exc

    def ping(self) -> None:
        """Run a trivial query. Raises InfrastructureFailure if the database is unreachable."""
        with self._connect() as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def get_credentials(self, role: Role, login: str) -> Optional[Credentials]:
        """Return the password hash and mail for (role, login), or None if no such user.

        Admin has no row; asking for it is a programming error.
        """
        table = _LOGIN_TABLES.get(role)
        if table is None:
            raise ValueError(f"Role {role.value!r} has no stored credentials")
        with self._connect() as conn:
            row = conn.execute(
                select(table.c.id, table.c.password, table.c.mail).where(table.c.login == login)
            ).fetchone()
        if row is None:
            return None
        return Credentials(user_id=row.id, role=role, hashed_password=row.password, mail=row.mail)

    def is_login_taken(self, login: str) -> bool:
        """Return True if any university, company or student uses this login."""
        with self._connect() as conn:
            for table in _LOGIN_TABLES.values():
                if conn.execute(select(table.c.id).where(table.c.login == login)).first() is not None:
                    return True
        return False

    def generate_login(self, first_name: str, last_name: str) -> str:
        """Build a free login from a student's name: "Yaniss Lasbordes" -> "ylasbordes1".

        The numeric suffix counts up from 1 until the login is free.
        """
        first = _ascii_fold(first_name.strip().lower())
        last = _ascii_fold(last_name.strip().lower()).replace(" ", "").replace("-", "")
        if not first:
            raise ValidationFailure("First name must not be empty.")
        suffix = 1
        while True:
            candidate = f"{first[0]}{last}{suffix}"
            if not self.is_login_taken(candidate):
                return candidate
            suffix += 1

    # ------------------------------------------------------------------
    # Principals
    # ------------------------------------------------------------------

    def get_university(self, university_id: str) -> Optional[University]:
        with self._connect() as conn:
            row = conn.execute(_universities.select().where(_universities.c.id == university_id)).fetchone()
        if row is None:
            return None
        return _row_to_university(row, self.get_classes_for_university(university_id))

    def get_student(self, student_id: str) -> Optional[Student]:
        with self._connect() as conn:
            row = conn.execute(_students.select().where(_students.c.id == student_id)).fetchone()
        return _row_to_student(row) if row is not None else None

    def get_company(self, company_id: str) -> Optional[Company]:
        with self._connect() as conn:
            row = conn.execute(_companies.select().where(_companies.c.id == company_id)).fetchone()
            if row is None:
                return None
            internship_rows = conn.execute(
                _internships.select().where(_internships.c.company_id == company_id).order_by(_internships.c.title)
            ).fetchall()
        return _row_to_company(row, [_row_to_internship(r) for r in internship_rows])

    def list_universities(self) -> list[University]:
        """Return all universities ordered by name. Admin-only operation."""
        with self._connect() as conn:
            rows = conn.execute(_universities.select().order_by(_universities.c.name)).fetchall()
        return [_row_to_university(r, self.get_classes_for_university(r.id)) for r in rows]

    def list_companies(self) -> list[Company]:
        """Return all companies ordered by name. Internship lists are not loaded."""
        with self._connect() as conn:
            rows = conn.execute(_companies.select().order_by(_companies.c.name)).fetchall()
        return [_row_to_company(r, []) for r in rows]

    # ------------------------------------------------------------------
    # Classes and internships
    # ------------------------------------------------------------------

    def get_class(self, class_id: str) -> Optional[SchoolClass]:
        with self._connect() as conn:
            row = conn.execute(_classes.select().where(_classes.c.id == class_id)).fetchone()
        return _row_to_class(row) if row is not None else None

    def get_classes_for_university(self, university_id: str) -> list[SchoolClass]:
        with self._connect() as conn:
            rows = conn.execute(
                _classes.select().where(_classes.c.university_id == university_id).order_by(_classes.c.name)
            ).fetchall()
        return [_row_to_class(r) for r in rows]

    def get_students_in_class(self, class_id: str) -> list[Student]:
        with self._connect() as conn:
            rows = conn.execute(
                _students.select()
                .where(_students.c.class_id == class_id)
                .order_by(_students.c.last_name, _students.c.first_name)
            ).fetchall()
        return [_row_to_student(r) for r in rows]

    def get_internships_by_course_types(self, course_types: list[CourseType]) -> list[Internship]:
        if not course_types:
            return []
        codes = [ct.to_sql() for ct in course_types]
        with self._connect() as conn:
            rows = conn.execute(
                _internships.select().where(_internships.c.course_type.in_(codes)).order_by(_internships.c.title)
            ).fetchall()
        return [_row_to_internship(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_university(self, name: str, login: str, password: str, mail: str) -> str:
        """Validate, hash the password and insert a university. Returns its id."""
        validate_password(password)
        validate_email(mail)
        self._ensure_login_free(login)
        university_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                _universities.insert().values(
                    id=university_id, login=login, password=hash_password(password), name=name, mail=mail
                )
            )
            conn.commit()
        logger.info("University created id=%s login=%s", university_id, login)
        return university_id

    def create_company(self, name: str, login: str, password: str, mail: str) -> str:
        """Validate, hash the password and insert a company. Returns its id."""
        validate_password(password)
        validate_email(mail)
        self._ensure_login_free(login)
        company_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                _companies.insert().values(
                    id=company_id, login=login, password=hash_password(password), name=name, mail=mail
                )
            )
            conn.commit()
        logger.info("Company created id=%s login=%s", company_id, login)
        return company_id

    def create_student(
        self,
        first_name: str,
        last_name: str,
        mail: str,
        password: str,
        class_id: Optional[str] = None,
        login: Optional[str] = None,
    ) -> tuple[str, str]:
        """Insert a student. Returns (student_id, login).

        When login is None one is generated from the student's name.
        """
        validate_email(mail)
        if login is None:
            login = self.generate_login(first_name, last_name)
        else:
            self._ensure_login_free(login)
        student_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                _students.insert().values(
                    id=student_id,
                    login=login,
                    password=hash_password(password),
                    mail=mail,
                    first_name=first_name,
                    last_name=last_name,
                    class_id=class_id,
                )
            )
            conn.commit()
        return student_id, login

    def create_class(self, school_class: SchoolClass) -> str:
        class_id = school_class.id or _new_id()
        with self._connect() as conn:
            conn.execute(
                _classes.insert().values(
                    id=class_id,
                    name=school_class.name,
                    course_type=school_class.course_type.to_sql(),
                    university_id=school_class.university_id,
                    date_internship_start=school_class.date_internship_start,
                    date_internship_end=school_class.date_internship_end,
                    minimum_internship_length=school_class.minimum_internship_length,
                    maximum_internship_length=school_class.maximum_internship_length,
                )
            )
            conn.commit()
        return class_id

    def create_internship(self, internship: Internship) -> str:
        internship_id = internship.id or _new_id()
        with self._connect() as conn:
            conn.execute(
                _internships.insert().values(
                    id=internship_id,
                    company_id=internship.company_id,
                    course_type=internship.course_type.to_sql(),
                    title=internship.title,
                    description=internship.description,
                )
            )
            conn.commit()
        return internship_id

    def _ensure_login_free(self, login: str) -> None:
        if not login:
            raise ValidationFailure("Login must not be empty.")
        if self.is_login_taken(login):
            raise ValidationFailure(f"Login {login!r} is already taken.")

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _course_type(value: int) -> CourseType:
    try:
        return CourseType.from_sql(value)
    except ValueError as exc:
        raise InfrastructureFailure(f"Malformed row in user database: {exc}") from exc


def _row_to_class(row) -> SchoolClass:
    return SchoolClass(
        id=row.id,
        name=row.name,
        course_type=_course_type(row.course_type),
        university_id=row.university_id,
        date_internship_start=row.date_internship_start,
        date_internship_end=row.date_internship_end,
        minimum_internship_length=row.minimum_internship_length,
        maximum_internship_length=row.maximum_internship_length,
    )


def _row_to_internship(row) -> Internship:
    return Internship(
        id=row.id,
        company_id=row.company_id,
        course_type=_course_type(row.course_type),
        title=row.title,
        description=row.description or "",
    )


def _row_to_university(row, classes: list[SchoolClass]) -> University:
    return University(id=row.id, login=row.login, name=row.name, mail=row.mail, classes=classes)


def _row_to_student(row) -> Student:
    return Student(
        id=row.id,
        login=row.login,
        mail=row.mail,
        first_name=row.first_name,
        last_name=row.last_name,
        class_id=row.class_id,
    )


def _row_to_company(row, internships: list[Internship]) -> Company:
    return Company(id=row.id, login=row.login, name=row.name, mail=row.mail, internships=internships)
