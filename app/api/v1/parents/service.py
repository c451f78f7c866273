"""
Parent-student linking.

A link touches four records: the link row, Student.parent_ids, Parent.children_ids and
Parent.school_ids (plus the parent User's joined organizations). All of them are written
in one transaction; either every side shows the link or none does.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.service import class_teacher_ids_for_student, find_student_by_code, get_student
from app.auth.models import User
from app.core.access import Actor, ensure_can_edit
from app.core.enums import ParentRelationship, ResourceKind, UserRole
from app.core.exceptions import RoleMismatchError, ServiceError
from app.core.membership import add_organization, append_unique, organization_entry
from app.core.models import Parent, ParentStudentLink, School, Student
from app.db.retry import run_with_retry

from .schemas import ChildResponse, LinkChildByCodeRequest, StaffLinkRequest

logger = logging.getLogger(__name__)


async def get_parent_profile(db: AsyncSession, parent_user_id: UUID) -> Optional[Parent]:
    result = await db.execute(select(Parent).where(Parent.user_id == parent_user_id).limit(1))
    return result.scalar_one_or_none()


async def link_parent_to_student(
    db: AsyncSession,
    parent_user_id: UUID,
    student_id: UUID,
    school_id: UUID,
    relationship: ParentRelationship,
    is_primary_contact: bool = False,
    can_pickup: bool = False,
    emergency_contact: bool = False,
) -> ParentStudentLink:
    """
    Create (or update) the guardian link and mirror it on the student and parent records.

    Re-linking an existing (parent, student) pair updates the flags of the existing link.
    """

    async def _link() -> ParentStudentLink:
        user = await db.get(User, parent_user_id)
        if user is None:
            raise ServiceError("Parent account not found", status.HTTP_404_NOT_FOUND)
        if UserRole(user.role) is not UserRole.PARENT:
            raise RoleMismatchError("Only parent accounts can be linked to students")
        parent = await get_parent_profile(db, parent_user_id)
        if parent is None:
            raise ServiceError("Parent profile not found", status.HTTP_404_NOT_FOUND)
        student = await db.get(Student, student_id)
        if student is None:
            raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
        if student.school_id != school_id:
            raise ServiceError("Student does not belong to this school", status.HTTP_400_BAD_REQUEST)
        school = await db.get(School, school_id)
        if school is None:
            raise ServiceError("School not found", status.HTTP_404_NOT_FOUND)

        result = await db.execute(
            select(ParentStudentLink).where(
                ParentStudentLink.parent_user_id == parent_user_id,
                ParentStudentLink.student_id == student_id,
            )
        )
        link = result.scalar_one_or_none()
        if link is None:
            link = ParentStudentLink(
                parent_user_id=parent_user_id,
                student_id=student_id,
                school_id=school_id,
            )
            db.add(link)
        link.relationship = relationship.value
        link.is_primary_contact = is_primary_contact
        link.can_pickup = can_pickup
        link.emergency_contact = emergency_contact

        student.parent_ids = append_unique(student.parent_ids, parent_user_id)
        parent.children_ids = append_unique(parent.children_ids, student_id)
        parent.school_ids = append_unique(parent.school_ids, school_id)
        user.joined_organizations = add_organization(user.joined_organizations, organization_entry(school))
        user.active_organization_id = school_id

        await db.commit()
        await db.refresh(link)
        logger.info("Parent %s linked to student %s (%s)", parent_user_id, student_id, relationship.value)
        return link

    return await run_with_retry(db, _link, label=f"link parent {parent_user_id} to student {student_id}")


async def link_child_by_code(db: AsyncSession, user: User, payload: LinkChildByCodeRequest) -> ParentStudentLink:
    if UserRole(user.role) is not UserRole.PARENT:
        raise RoleMismatchError("Only parent accounts can link children")
    student = await find_student_by_code(db, payload.student_code)
    return await link_parent_to_student(
        db,
        user.id,
        student.id,
        student.school_id,
        payload.relationship,
        is_primary_contact=payload.is_primary_contact,
        can_pickup=payload.can_pickup,
        emergency_contact=payload.emergency_contact,
    )


async def staff_link_parent(db: AsyncSession, actor: Actor, payload: StaffLinkRequest) -> ParentStudentLink:
    """School staff link a parent account to a student they are allowed to edit."""
    student = await get_student(db, payload.student_id)
    teacher_ids = await class_teacher_ids_for_student(db, student)
    ensure_can_edit(actor, student.school_id, ResourceKind.STUDENT, teacher_ids)
    return await link_parent_to_student(
        db,
        payload.parent_user_id,
        payload.student_id,
        payload.school_id,
        payload.relationship,
        is_primary_contact=payload.is_primary_contact,
        can_pickup=payload.can_pickup,
        emergency_contact=payload.emergency_contact,
    )


async def get_parent_children(db: AsyncSession, parent_user_id: UUID) -> List[ChildResponse]:
    """Children of a parent, in link order, with the link flags."""
    parent = await get_parent_profile(db, parent_user_id)
    if parent is None:
        return []
    child_ids = [UUID(str(cid)) for cid in parent.children_ids or []]
    if not child_ids:
        return []

    students = (await db.execute(select(Student).where(Student.id.in_(child_ids)))).scalars().all()
    by_id = {s.id: s for s in students}
    links = (
        await db.execute(select(ParentStudentLink).where(ParentStudentLink.parent_user_id == parent_user_id))
    ).scalars().all()
    link_by_student = {link.student_id: link for link in links}

    children: List[ChildResponse] = []
    for cid in child_ids:
        student = by_id.get(cid)
        if student is None:
            continue
        link = link_by_student.get(cid)
        children.append(
            ChildResponse(
                student_id=student.id,
                first_name=student.first_name,
                last_name=student.last_name,
                full_name=student.full_name,
                school_id=student.school_id,
                student_code=student.student_code,
                grade_level=student.grade_level,
                date_of_birth=student.date_of_birth,
                relationship=link.relationship if link else None,
                is_primary_contact=link.is_primary_contact if link else False,
                can_pickup=link.can_pickup if link else False,
                emergency_contact=link.emergency_contact if link else False,
            )
        )
    return children
