import logging
from typing import List
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.access import Actor, can_view_school, ensure_can_edit
from app.core.config import settings
from app.core.enums import Feature, ResourceKind, UserRole
from app.core.exceptions import FeatureLocked, PermissionDenied, ServiceError
from app.core.gating import school_is_covered
from app.core.membership import append_unique, has_organization
from app.core.models import School, SchoolClass, Student

from .schemas import ClassCreate, ClassEnrollmentRequest

logger = logging.getLogger(__name__)


async def _validate_teachers(db: AsyncSession, school_id: UUID, teacher_ids: List[UUID]) -> None:
    for teacher_id in teacher_ids:
        user = await db.get(User, teacher_id)
        if user is None or user.role != UserRole.TEACHER.value:
            raise ServiceError(f"User {teacher_id} is not a teacher", status.HTTP_400_BAD_REQUEST)
        if not has_organization(user.joined_organizations, school_id):
            raise ServiceError(f"Teacher {teacher_id} has not joined this school", status.HTTP_400_BAD_REQUEST)


async def create_class(db: AsyncSession, actor: Actor, payload: ClassCreate) -> SchoolClass:
    """Classes are school-wide configuration: only the school owner or its district may create them."""
    ensure_can_edit(actor, payload.school_id, ResourceKind.SCHOOL)
    school = await db.get(School, payload.school_id)
    if school is None:
        raise ServiceError("School not found", status.HTTP_404_NOT_FOUND)
    if not await school_is_covered(db, school):
        raise FeatureLocked(Feature.CLASSES.value, settings.billing_redirect_path)
    await _validate_teachers(db, school.id, payload.teacher_ids)

    obj = SchoolClass(
        school_id=school.id,
        name=payload.name.strip(),
        grade=payload.grade,
        class_type=payload.class_type.value,
        teacher_ids=[str(tid) for tid in dict.fromkeys(payload.teacher_ids)],
        student_ids=[],
    )
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    logger.info("Class %s created in school %s", obj.id, school.id)
    return obj


async def list_classes(db: AsyncSession, actor: Actor, school_id: UUID) -> List[SchoolClass]:
    if not can_view_school(actor, school_id):
        raise PermissionDenied("You cannot view this school's classes")
    result = await db.execute(
        select(SchoolClass)
        .where(SchoolClass.school_id == school_id)
        .order_by(SchoolClass.grade, SchoolClass.name)
    )
    return list(result.scalars().all())


async def enroll_students(
    db: AsyncSession,
    actor: Actor,
    class_id: UUID,
    payload: ClassEnrollmentRequest,
) -> SchoolClass:
    """Add students of the class's school to the class. Teachers may do this only for their own classes."""
    obj = await db.get(SchoolClass, class_id)
    if obj is None:
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)
    teacher_ids = [UUID(str(tid)) for tid in obj.teacher_ids or []]
    ensure_can_edit(actor, obj.school_id, ResourceKind.CLASS, teacher_ids)

    student_ids = list(obj.student_ids or [])
    for student_id in payload.student_ids:
        student = await db.get(Student, student_id)
        if student is None or student.school_id != obj.school_id:
            raise ServiceError(f"Student {student_id} does not belong to this school", status.HTTP_400_BAD_REQUEST)
        student_ids = append_unique(student_ids, student.id)
    obj.student_ids = student_ids
    await db.commit()
    await db.refresh(obj)
    return obj
