"""
Student records: creation with server-generated codes, duplicate warnings, edits and
the student credential lifecycle.
"""

import io
import logging
import uuid
from typing import List, Set
from uuid import UUID

from fastapi import status
from openpyxl import Workbook
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.student_credentials import (
    reset_student_password as reset_credential,
    set_student_password,
    verify_student_credential,
)
from app.core.access import Actor, can_manage_roster, can_view_school, ensure_can_edit
from app.core.codes import (
    build_duplicate_key,
    default_student_password,
    generate_student_code_candidate,
    get_student_by_code,
)
from app.core.config import settings
from app.core.enums import Feature, ResourceKind, UserRole
from app.core.exceptions import (
    DuplicateWarning,
    FeatureLocked,
    InvalidCode,
    PermissionDenied,
    RoleMismatchError,
    ServiceError,
)
from app.core.gating import school_is_covered
from app.core.models import School, SchoolClass, Student

from .schemas import (
    ChangeStudentPasswordRequest,
    DefaultPasswordReport,
    DefaultPasswordStudent,
    NAME_FIELDS,
    StudentCreate,
    StudentUpdate,
)

logger = logging.getLogger(__name__)


async def _get_school(db: AsyncSession, school_id: UUID) -> School:
    school = await db.get(School, school_id)
    if school is None:
        raise ServiceError("School not found", status.HTTP_404_NOT_FOUND)
    return school


async def get_student(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if student is None:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    return student


async def find_student_by_code(db: AsyncSession, code: str) -> Student:
    student = await get_student_by_code(db, code)
    if student is None:
        raise InvalidCode("Invalid student code. Please check and try again.")
    return student


async def find_probable_duplicate(db: AsyncSession, school_id: UUID, duplicate_key: str):
    """Existing student in the same school with the same duplicate key, if any. Other schools are never consulted."""
    result = await db.execute(
        select(Student)
        .where(Student.school_id == school_id, Student.duplicate_key == duplicate_key)
        .order_by(Student.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def class_teacher_ids_for_student(db: AsyncSession, student: Student) -> Set[UUID]:
    """Union of teacher_ids over the classes the student is enrolled in."""
    result = await db.execute(select(SchoolClass).where(SchoolClass.school_id == student.school_id))
    teacher_ids: Set[UUID] = set()
    student_key = str(student.id)
    for school_class in result.scalars().all():
        if student_key in (school_class.student_ids or []):
            teacher_ids.update(UUID(str(tid)) for tid in school_class.teacher_ids or [])
    return teacher_ids


async def create_student(db: AsyncSession, actor: Actor, payload: StudentCreate) -> Student:
    """
    Create a student with a fresh 8-character code.

    Raises DuplicateWarning when a same-school student has the same name and date of
    birth, unless payload.confirm_duplicate is set. The code is generated here and
    uniqueness is decided by the insert; a collision rolls back and regenerates.
    """
    school_id = payload.school_id
    if not can_manage_roster(actor, school_id):
        raise PermissionDenied("You cannot add students to this school")
    school = await _get_school(db, school_id)
    if not await school_is_covered(db, school):
        raise FeatureLocked(Feature.ROSTER.value, settings.billing_redirect_path)

    first_name, middle_name, last_name = payload.first_name, payload.middle_name, payload.last_name
    duplicate_key = build_duplicate_key(first_name, middle_name, last_name, payload.date_of_birth)

    if not payload.confirm_duplicate:
        existing = await find_probable_duplicate(db, school_id, duplicate_key)
        if existing is not None:
            logger.warning(
                "Probable duplicate student in school %s: key=%s existing=%s",
                school_id,
                duplicate_key,
                existing.id,
            )
            raise DuplicateWarning(existing.id, existing.student_code)

    for attempt in range(1, settings.student_code_max_attempts + 1):
        code = generate_student_code_candidate()
        try:
            # Counter and cap are checked in one statement so concurrent creates cannot overshoot
            reserved = await db.execute(
                update(School)
                .where(School.id == school_id, School.student_count < School.student_cap)
                .values(student_count=School.student_count + 1)
                .execution_options(synchronize_session=False)
            )
            if reserved.rowcount == 0:
                raise ServiceError(
                    "This school has reached its student limit. Upgrade the plan to add more students.",
                    status.HTTP_409_CONFLICT,
                )
            student = Student(
                id=uuid.uuid4(),
                first_name=first_name,
                middle_name=middle_name,
                last_name=last_name,
                school_id=school_id,
                student_code=code,
                grade_level=payload.grade_level,
                date_of_birth=payload.date_of_birth,
                notes=payload.notes,
                parent_ids=[],
                duplicate_key=duplicate_key,
                password_hash=None,
                password_changed_at=None,
            )
            db.add(student)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Student code collision on attempt %d for school %s", attempt, school_id)
            continue
        except Exception:
            await db.rollback()
            raise
        logger.info("Student %s created in school %s with code %s", student.id, school_id, code)
        return student

    raise ServiceError(
        "Could not generate a unique student code. Please try again.",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )


async def list_school_students(db: AsyncSession, actor: Actor, school_id: UUID) -> List[Student]:
    if not can_view_school(actor, school_id):
        raise PermissionDenied("You cannot view this school's roster")
    result = await db.execute(
        select(Student)
        .where(Student.school_id == school_id)
        .order_by(Student.last_name, Student.first_name)
    )
    return list(result.scalars().all())


async def update_student(db: AsyncSession, actor: Actor, student_id: UUID, payload: StudentUpdate) -> Student:
    student = await get_student(db, student_id)
    teacher_ids = await class_teacher_ids_for_student(db, student)
    ensure_can_edit(actor, student.school_id, ResourceKind.STUDENT, teacher_ids)

    data = payload.model_dump(exclude_unset=True)
    for name in NAME_FIELDS:
        if data.get(name) is not None:
            setattr(student, name, data[name])
    if data.get("grade_level") is not None:
        student.grade_level = data["grade_level"]
    if "date_of_birth" in data:
        student.date_of_birth = data["date_of_birth"]
    if data.get("notes") is not None:
        student.notes = data["notes"]
    student.duplicate_key = build_duplicate_key(
        student.first_name, student.middle_name, student.last_name, student.date_of_birth
    )

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return student


async def change_student_password(db: AsyncSession, user: User, payload: ChangeStudentPasswordRequest) -> Student:
    """A signed-in student replaces their credential; the default stops working."""
    if UserRole(user.role) is not UserRole.STUDENT or user.student_id is None:
        raise RoleMismatchError("Only students can change a student password")
    if payload.new_password != payload.confirm_password:
        raise ServiceError("new_password and confirm_password do not match", status.HTTP_400_BAD_REQUEST)

    student = await get_student(db, user.student_id)
    if not verify_student_credential(student, payload.current_password):
        raise ServiceError("Current password is incorrect", status.HTTP_400_BAD_REQUEST)
    if payload.new_password == default_student_password(student.student_code):
        raise ServiceError("Choose a password different from the default", status.HTTP_400_BAD_REQUEST)

    set_student_password(student, payload.new_password)
    await db.commit()
    logger.info("Student %s changed their password", student.id)
    return student


async def reset_student_password(db: AsyncSession, actor: Actor, student_id: UUID) -> Student:
    """Staff reset: the default credential (code + '!') applies again."""
    student = await get_student(db, student_id)
    teacher_ids = await class_teacher_ids_for_student(db, student)
    ensure_can_edit(actor, student.school_id, ResourceKind.STUDENT, teacher_ids)
    reset_credential(student)
    await db.commit()
    logger.info("Password reset for student %s by user %s", student.id, actor.user_id)
    return student


async def list_default_password_students(db: AsyncSession, actor: Actor, school_id: UUID) -> DefaultPasswordReport:
    """Students of a school still signing in with the default credential."""
    if not can_view_school(actor, school_id):
        raise PermissionDenied("You cannot view this school's reports")
    result = await db.execute(
        select(Student)
        .where(Student.school_id == school_id, Student.password_changed_at.is_(None))
        .order_by(Student.grade_level, Student.last_name, Student.first_name)
    )
    students = [
        DefaultPasswordStudent(
            id=s.id,
            full_name=s.full_name,
            student_code=s.student_code,
            grade_level=s.grade_level,
            default_password=default_student_password(s.student_code),
        )
        for s in result.scalars().all()
    ]
    return DefaultPasswordReport(school_id=school_id, total=len(students), students=students)


def build_default_password_workbook(report: DefaultPasswordReport) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Default passwords"
    ws.append(["full_name", "student_code", "grade_level", "default_password"])
    for row in report.students:
        ws.append([row.full_name, row.student_code, row.grade_level, row.default_password])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
