"""
Join-by-code protocol and school membership.

join/leave/switch are read-modify-write on the User record. Each runs as one unit of
work under run_with_retry: the User row is version-checked, the staff profile upsert is
keyed by the unique user_id, and the whole unit commits once.
"""

import logging
import uuid
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import String, cast, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.access import Actor, ensure_can_edit
from app.core.codes import generate_school_code, get_school_by_code, normalize_code
from app.core.config import settings
from app.core.enums import STAFF_ROLES, ResourceKind, UserRole
from app.core.exceptions import (
    InvalidCode,
    PermissionDenied,
    RoleMismatchError,
    SchoolNotSubscribed,
    ServiceError,
)
from app.core.gating import school_is_covered
from app.core.membership import (
    add_organization,
    append_unique,
    has_organization,
    organization_entry,
    remove_organization,
    remove_value,
)
from app.core.models import District, Parent, School, SchoolClass, Student, Sub, Teacher
from app.db.retry import run_with_retry

from .schemas import DistrictSchoolCreate

logger = logging.getLogger(__name__)


async def resolve_school(db: AsyncSession, code: str) -> Optional[School]:
    """Look up a school by join code. None if the code matches nothing."""
    return await get_school_by_code(db, code)


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    return user


async def get_staff_profile(db: AsyncSession, user: User):
    """Teacher or Sub profile for a staff user, found by user_id. None for other roles or if missing."""
    role = UserRole(user.role)
    if role not in STAFF_ROLES:
        return None
    model = Teacher if role is UserRole.TEACHER else Sub
    result = await db.execute(select(model).where(model.user_id == user.id).limit(1))
    return result.scalar_one_or_none()


async def upsert_staff_profile(db: AsyncSession, user: User, school_id: Optional[UUID]) -> None:
    """Point the staff profile at school_id, creating the profile if it does not exist yet."""
    profile = await get_staff_profile(db, user)
    if profile is not None:
        profile.school_id = school_id
        return

    first_name = user.first_name or ""
    last_name = user.last_name or ""
    if UserRole(user.role) is UserRole.TEACHER:
        profile = Teacher(
            user_id=user.id,
            school_id=school_id,
            first_name=first_name,
            last_name=last_name,
            display_name=user.full_name or f"{first_name} {last_name}".strip(),
            grades=[],
        )
    else:
        profile = Sub(
            user_id=user.id,
            school_id=school_id,
            first_name=first_name,
            last_name=last_name,
        )
    db.add(profile)


async def join_school_by_code(db: AsyncSession, user_id: UUID, code: str) -> User:
    """
    Attach the user to the school identified by code and make it their active organization.

    Idempotent: rejoining leaves joined_organizations unchanged.
    Raises InvalidCode, SchoolNotSubscribed (non-owner roles only), RoleMismatchError (students).
    """
    normalized = normalize_code(code)

    async def _join() -> User:
        user = await _get_user(db, user_id)
        role = UserRole(user.role)
        if role is UserRole.STUDENT:
            raise RoleMismatchError("Student accounts are enrolled by their school and cannot join by code")

        school = await get_school_by_code(db, normalized)
        if school is None:
            raise InvalidCode("Invalid school code. Please check and try again.")

        # School admins own the record already; everyone else needs a subscribed school
        if role is not UserRole.SCHOOL and not await school_is_covered(db, school):
            raise SchoolNotSubscribed(school.id)

        user.joined_organizations = add_organization(user.joined_organizations, organization_entry(school))
        user.active_organization_id = school.id
        if role in STAFF_ROLES:
            await upsert_staff_profile(db, user, school.id)

        await db.commit()
        logger.info("User %s (%s) joined school %s", user.id, role.value, school.id)
        return user

    return await run_with_retry(db, _join, label=f"join school for user {user_id}")


def _drop_organization(user: User, school_id: UUID) -> None:
    """Remove a school from the user's organizations; an active pointer at it fails over to the next one."""
    remaining = remove_organization(user.joined_organizations, school_id)
    user.joined_organizations = remaining
    if user.active_organization_id == school_id:
        user.active_organization_id = UUID(remaining[0]["id"]) if remaining else None


async def leave_school(db: AsyncSession, user_id: UUID, school_id: UUID) -> User:
    """
    Remove the school from the user's organizations.

    If it was active, the next joined organization becomes active (or none). The staff
    profile moves with it only when it pointed at the school being left.
    Leaving a school the user never joined is a no-op.
    """

    async def _leave() -> User:
        user = await _get_user(db, user_id)
        if not has_organization(user.joined_organizations, school_id):
            return user

        _drop_organization(user, school_id)

        profile = await get_staff_profile(db, user)
        if profile is not None and profile.school_id == school_id:
            profile.school_id = user.active_organization_id

        await db.commit()
        logger.info("User %s left school %s", user.id, school_id)
        return user

    return await run_with_retry(db, _leave, label=f"leave school for user {user_id}")


async def switch_active_organization(db: AsyncSession, user_id: UUID, organization_id: UUID) -> User:
    """Make an already-joined organization the active one."""

    async def _switch() -> User:
        user = await _get_user(db, user_id)
        if UserRole(user.role) is UserRole.STUDENT:
            raise RoleMismatchError("Student accounts cannot switch schools")
        if not has_organization(user.joined_organizations, organization_id):
            raise ServiceError("You have not joined this school", status.HTTP_400_BAD_REQUEST)
        user.active_organization_id = organization_id
        profile = await get_staff_profile(db, user)
        if profile is not None:
            profile.school_id = organization_id
        await db.commit()
        return user

    return await run_with_retry(db, _switch, label=f"switch organization for user {user_id}")


# ----- District -----


async def get_owned_district(db: AsyncSession, user: User) -> District:
    if UserRole(user.role) is not UserRole.DISTRICT or user.district_id is None:
        raise PermissionDenied("Only district administrators can manage district schools")
    district = await db.get(District, user.district_id)
    if district is None or district.owner_user_id != user.id:
        raise PermissionDenied("Only district administrators can manage district schools")
    return district


async def list_district_schools(db: AsyncSession, user: User) -> tuple[District, List[School]]:
    district = await get_owned_district(db, user)
    ids = [UUID(str(sid)) for sid in district.school_ids or []]
    if not ids:
        return district, []
    result = await db.execute(select(School).where(School.id.in_(ids)))
    by_id = {school.id: school for school in result.scalars().all()}
    return district, [by_id[sid] for sid in ids if sid in by_id]


async def add_school_to_district(db: AsyncSession, user_id: UUID, code: str) -> School:
    """Link an existing school (found by its code) to the caller's district."""
    normalized = normalize_code(code)

    async def _link() -> School:
        user = await _get_user(db, user_id)
        district = await get_owned_district(db, user)
        school = await get_school_by_code(db, normalized)
        if school is None:
            raise InvalidCode("Invalid school code. Please check and try again.")
        if school.district_id is not None and school.district_id != district.id:
            raise ServiceError("This school already belongs to another district", status.HTTP_409_CONFLICT)

        school.district_id = district.id
        district.school_ids = append_unique(district.school_ids, school.id)
        await db.commit()
        logger.info("School %s linked to district %s", school.id, district.id)
        return school

    return await run_with_retry(db, _link, label=f"link school to district for user {user_id}")


async def create_school_for_district(db: AsyncSession, user_id: UUID, payload: DistrictSchoolCreate) -> School:
    """Create an owner-less school inside the caller's district with a generated join code."""

    async def _create() -> School:
        user = await _get_user(db, user_id)
        district = await get_owned_district(db, user)
        code = await generate_school_code(db, settings.school_code_max_attempts)
        if code is None:
            raise ServiceError("Could not generate unique school code", status.HTTP_500_INTERNAL_SERVER_ERROR)

        school = School(
            id=uuid.uuid4(),
            name=payload.name.strip(),
            address=payload.address,
            city=payload.city,
            state=payload.state,
            zip=payload.zip,
            school_code=code,
            owner_user_id=None,
            district_id=district.id,
            grades=list(range(payload.grades_from, payload.grades_to + 1)),
            subscription_active=False,
            student_count=0,
            student_cap=settings.default_student_cap,
        )
        db.add(school)
        district.school_ids = append_unique(district.school_ids, school.id)
        # Unique index on school_code is the real guard; a collision rolls back and regenerates
        await db.commit()
        logger.info("District %s created school %s (%s)", district.id, school.id, code)
        return school

    return await run_with_retry(
        db,
        _create,
        label=f"create district school for user {user_id}",
        attempts=settings.school_code_max_attempts,
    )


# ----- Deletion -----


async def ensure_school_empty(db: AsyncSession, school_id: UUID) -> None:
    """Deny-if-nonempty: a school with students or staff profiles cannot be deleted."""
    students = await db.scalar(select(func.count(Student.id)).where(Student.school_id == school_id))
    teachers = await db.scalar(select(func.count(Teacher.id)).where(Teacher.school_id == school_id))
    subs = await db.scalar(select(func.count(Sub.id)).where(Sub.school_id == school_id))
    if (students or 0) + (teachers or 0) + (subs or 0) > 0:
        raise ServiceError(
            "This school still has students or staff. Remove them before deleting the school.",
            status.HTTP_409_CONFLICT,
        )


async def delete_school_records(db: AsyncSession, school: School, skip_user_id: Optional[UUID] = None) -> None:
    """
    Delete an empty school with its classes and detach it from its district and members.

    Every User that joined the school loses the membership (active pointer fails over) and
    parent profiles drop it from school_ids. skip_user_id is a user deleted in the same
    transaction. Does not commit.
    """
    await db.execute(delete(SchoolClass).where(SchoolClass.school_id == school.id))
    if school.district_id is not None:
        district = await db.get(District, school.district_id)
        if district is not None:
            district.school_ids = remove_value(district.school_ids, school.id)
    # Text match on the JSON narrows the scan; the exact check is done per row
    pattern = f"%{school.id}%"
    members = await db.execute(select(User).where(cast(User.joined_organizations, String).like(pattern)))
    for member in members.scalars().all():
        if member.id != skip_user_id and has_organization(member.joined_organizations, school.id):
            _drop_organization(member, school.id)
    parents = await db.execute(select(Parent).where(cast(Parent.school_ids, String).like(pattern)))
    for parent in parents.scalars().all():
        parent.school_ids = remove_value(parent.school_ids, school.id)
    await db.delete(school)


async def delete_school(db: AsyncSession, actor: Actor, school_id: UUID) -> None:
    school = await db.get(School, school_id)
    if school is None:
        raise ServiceError("School not found", status.HTTP_404_NOT_FOUND)
    ensure_can_edit(actor, school.id, ResourceKind.SCHOOL)
    await ensure_school_empty(db, school.id)
    try:
        await delete_school_records(db, school)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("School %s deleted by user %s", school_id, actor.user_id)
