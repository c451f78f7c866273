"""
Account creation, sign-in and account deletion.

Account creation order: validate -> create principal (committed, irrevocable) -> write
User + profile in one transaction. If that transaction fails the principal is orphaned;
this is surfaced as PartialAccountError carrying the principal id so recovery tooling
(app/scripts/reconcile_partial_accounts.py) can finish or roll it back.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, TypeVar
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schools.service import delete_school_records, ensure_school_empty
from app.auth.models import Principal, User
from app.auth.provider import AuthProvider
from app.auth.schemas import (
    DistrictSignupRequest,
    LoginRequest,
    LoginResponse,
    ParentSignupRequest,
    SchoolSignupRequest,
    SignupResponse,
    StaffSignupRequest,
    StudentLoginRequest,
    UserResponse,
)
from app.auth.security import create_access_token
from app.auth.student_credentials import verify_student_credential
from app.core.codes import (
    generate_school_code,
    get_student_by_code,
    is_valid_school_code,
    normalize_code,
    school_code_in_use,
)
from app.core.config import settings
from app.core.enums import STAFF_ROLES, UserRole
from app.core.exceptions import AuthError, PartialAccountError, RoleMismatchError, ServiceError
from app.core.membership import organization_entry, remove_value
from app.core.models import (
    District,
    Parent,
    ParentStudentLink,
    School,
    SchoolClass,
    Student,
    Sub,
    Teacher,
)
from app.core.pricing import calculate_district_price
from app.db.retry import run_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _ensure_email_available(provider: AuthProvider, email: str) -> None:
    if await provider.principal_exists(email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)


async def _write_directory_records(
    db: AsyncSession,
    principal_id: UUID,
    write: Callable[[], Awaitable[T]],
) -> T:
    """Run the post-principal writes as one transaction; any failure becomes PartialAccountError."""
    try:
        result = await write()
        await db.commit()
        return result
    except Exception as e:
        await db.rollback()
        logger.error(
            "Principal %s created but directory records were not written: %s",
            principal_id,
            e,
        )
        raise PartialAccountError(principal_id) from e


def _full_name(first_name: str, last_name: str) -> str:
    return f"{first_name.strip()} {last_name.strip()}".strip()


async def create_school_account(
    db: AsyncSession, provider: AuthProvider, payload: SchoolSignupRequest
) -> SignupResponse:
    """School admin account + School record. The school starts unsubscribed (locked until billing is set up)."""
    await _ensure_email_available(provider, payload.email)

    if payload.school_code:
        school_code = normalize_code(payload.school_code)
        if not is_valid_school_code(school_code):
            raise ServiceError("School code must be 6 letters or digits", status.HTTP_400_BAD_REQUEST)
        if await school_code_in_use(db, school_code):
            raise ServiceError("School code is already in use", status.HTTP_409_CONFLICT)
    else:
        school_code = await generate_school_code(db, settings.school_code_max_attempts)
        if school_code is None:
            raise ServiceError("Could not generate unique school code", status.HTTP_500_INTERNAL_SERVER_ERROR)

    principal_id = await provider.create_principal(payload.email, payload.password)

    async def _write() -> tuple[User, School]:
        school = School(
            id=uuid.uuid4(),
            name=payload.name.strip(),
            address=payload.address.strip(),
            city=payload.city.strip(),
            state=payload.state.strip(),
            zip=payload.zip.strip(),
            school_code=school_code,
            owner_user_id=principal_id,
            grades=list(range(payload.grades_from, payload.grades_to + 1)),
            subscription_active=False,
            subscription_end_date=None,
            student_count=0,
            student_cap=settings.default_student_cap,
        )
        db.add(school)
        user = User(
            id=principal_id,
            email=payload.email.lower(),
            role=UserRole.SCHOOL.value,
            full_name=school.name,
            active_organization_id=school.id,
            joined_organizations=[organization_entry(school)],
        )
        db.add(user)
        await db.flush()
        return user, school

    user, school = await _write_directory_records(db, principal_id, _write)
    logger.info("School account created: user=%s school=%s code=%s", user.id, school.id, school.school_code)
    return SignupResponse(
        user=UserResponse.model_validate(user),
        school_id=school.id,
        school_code=school.school_code,
    )


async def create_district_account(
    db: AsyncSession, provider: AuthProvider, payload: DistrictSignupRequest
) -> SignupResponse:
    """District admin account + District record with a pricing snapshot for the requested school count."""
    await _ensure_email_available(provider, payload.email)
    pricing = calculate_district_price(payload.number_of_schools)

    principal_id = await provider.create_principal(payload.email, payload.password)

    async def _write() -> tuple[User, District]:
        district = District(
            id=uuid.uuid4(),
            name=payload.district_name.strip(),
            owner_user_id=principal_id,
            admin_first_name=payload.first_name.strip(),
            admin_last_name=payload.last_name.strip(),
            admin_email=payload.email.lower(),
            admin_phone=payload.phone,
            school_count=payload.number_of_schools,
            school_ids=[],
            subscription_tier=pricing.tier.value,
            price_per_school=pricing.price_per_school,
            monthly_price=pricing.total,
            subscription_active=False,
        )
        db.add(district)
        user = User(
            id=principal_id,
            email=payload.email.lower(),
            role=UserRole.DISTRICT.value,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            full_name=_full_name(payload.first_name, payload.last_name),
            phone=payload.phone,
            district_id=district.id,
            joined_organizations=[],
        )
        db.add(user)
        await db.flush()
        return user, district

    user, district = await _write_directory_records(db, principal_id, _write)
    logger.info("District account created: user=%s district=%s tier=%s", user.id, district.id, district.subscription_tier)
    return SignupResponse(
        user=UserResponse.model_validate(user),
        district_id=district.id,
        subscription_tier=district.subscription_tier,
        price_per_school=pricing.price_per_school,
        monthly_price=pricing.total,
    )


async def create_staff_account(
    db: AsyncSession, provider: AuthProvider, payload: StaffSignupRequest
) -> SignupResponse:
    """Teacher or sub account. The profile has no school yet; membership comes from joining by code."""
    try:
        role = UserRole(payload.role.strip().lower())
    except ValueError:
        role = None
    if role not in STAFF_ROLES:
        raise RoleMismatchError(f"Invalid staff role '{payload.role}'. Use 'teacher' or 'sub'.")

    await _ensure_email_available(provider, payload.email)
    principal_id = await provider.create_principal(payload.email, payload.password)

    first_name = payload.first_name.strip()
    last_name = payload.last_name.strip()
    full_name = _full_name(first_name, last_name)

    async def _write() -> User:
        user = User(
            id=principal_id,
            email=payload.email.lower(),
            role=role.value,
            first_name=first_name,
            last_name=last_name,
            full_name=full_name,
            active_organization_id=None,
            joined_organizations=[],
        )
        db.add(user)
        if role is UserRole.TEACHER:
            db.add(
                Teacher(
                    user_id=principal_id,
                    school_id=None,
                    first_name=first_name,
                    last_name=last_name,
                    display_name=full_name,
                    grades=[],
                )
            )
        else:
            db.add(Sub(user_id=principal_id, school_id=None, first_name=first_name, last_name=last_name))
        await db.flush()
        return user

    user = await _write_directory_records(db, principal_id, _write)
    logger.info("Staff account created: user=%s role=%s", user.id, role.value)
    return SignupResponse(user=UserResponse.model_validate(user))


async def create_parent_account(
    db: AsyncSession, provider: AuthProvider, payload: ParentSignupRequest
) -> SignupResponse:
    await _ensure_email_available(provider, payload.email)
    principal_id = await provider.create_principal(payload.email, payload.password)

    first_name = payload.first_name.strip()
    last_name = payload.last_name.strip()

    async def _write() -> User:
        user = User(
            id=principal_id,
            email=payload.email.lower(),
            role=UserRole.PARENT.value,
            first_name=first_name,
            last_name=last_name,
            full_name=_full_name(first_name, last_name),
            phone=payload.phone,
            active_organization_id=None,
            joined_organizations=[],
        )
        db.add(user)
        db.add(
            Parent(
                user_id=principal_id,
                first_name=first_name,
                last_name=last_name,
                email=payload.email.lower(),
                phone=payload.phone,
                children_ids=[],
                school_ids=[],
            )
        )
        await db.flush()
        return user

    user = await _write_directory_records(db, principal_id, _write)
    logger.info("Parent account created: user=%s", user.id)
    return SignupResponse(user=UserResponse.model_validate(user))


def _issue_token(user: User) -> LoginResponse:
    issued_at = datetime.now(timezone.utc)
    access_token = create_access_token(
        subject={
            "sub": str(user.id),
            "role": user.role,
            "iat": int(issued_at.timestamp()),
        }
    )
    return LoginResponse(
        access_token=access_token,
        user=UserResponse.model_validate(user),
        issued_at=issued_at,
    )


async def login_user(db: AsyncSession, provider: AuthProvider, payload: LoginRequest) -> LoginResponse:
    principal_id = await provider.authenticate(payload.email, payload.password)
    if principal_id is None:
        raise AuthError("Invalid credentials")

    user = await db.get(User, principal_id)
    if user is None:
        # Principal without directory records: an interrupted signup
        raise PartialAccountError(principal_id, "Your account setup was not finished. Contact support to complete it.")
    return _issue_token(user)


async def login_student(db: AsyncSession, payload: StudentLoginRequest) -> LoginResponse:
    """Sign in with student code + password; creates the student-role User on first sign-in."""
    code = normalize_code(payload.student_code)
    student = await get_student_by_code(db, code)
    if student is None or not verify_student_credential(student, payload.password):
        raise AuthError("Invalid student code or password")
    student_id = student.id

    async def _upsert() -> User:
        student_row = await db.get(Student, student_id)
        result = await db.execute(select(User).where(User.student_id == student_id))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                id=uuid.uuid4(),
                role=UserRole.STUDENT.value,
                first_name=student_row.first_name,
                last_name=student_row.last_name,
                full_name=student_row.full_name,
                student_id=student_id,
                joined_organizations=[],
            )
            db.add(user)
        # Students do not join schools; their active organization is always their own school
        if user.active_organization_id != student_row.school_id:
            user.active_organization_id = student_row.school_id
        await db.commit()
        return user

    user = await run_with_retry(db, _upsert, label=f"student sign-in {student_id}")
    return _issue_token(user)


# ----- Account deletion (elevated trust) -----


async def _delete_parent_records(db: AsyncSession, user: User) -> None:
    links = (
        await db.execute(select(ParentStudentLink).where(ParentStudentLink.parent_user_id == user.id))
    ).scalars().all()
    for link in links:
        student = await db.get(Student, link.student_id)
        if student is not None:
            student.parent_ids = remove_value(student.parent_ids, user.id)
        await db.delete(link)
    await db.execute(delete(Parent).where(Parent.user_id == user.id))


async def _delete_staff_records(db: AsyncSession, user: User) -> None:
    school_ids = user.joined_organization_ids
    if school_ids:
        classes = (
            await db.execute(select(SchoolClass).where(SchoolClass.school_id.in_(school_ids)))
        ).scalars().all()
        for school_class in classes:
            if str(user.id) in (school_class.teacher_ids or []):
                school_class.teacher_ids = remove_value(school_class.teacher_ids, user.id)
    await db.execute(delete(Teacher).where(Teacher.user_id == user.id))
    await db.execute(delete(Sub).where(Sub.user_id == user.id))


async def _delete_school_admin_records(db: AsyncSession, user: User) -> None:
    schools = (await db.execute(select(School).where(School.owner_user_id == user.id))).scalars().all()
    for school in schools:
        await ensure_school_empty(db, school.id)
    for school in schools:
        school.owner_user_id = None
        await delete_school_records(db, school, skip_user_id=user.id)


async def _delete_district_records(db: AsyncSession, user: User) -> None:
    if user.district_id is None:
        return
    district = await db.get(District, user.district_id)
    if district is None:
        return
    for school_id in district.school_ids or []:
        school = await db.get(School, UUID(str(school_id)))
        if school is not None and school.district_id == district.id:
            school.district_id = None
    await db.delete(district)


async def delete_account(db: AsyncSession, provider: AuthProvider, user: User) -> None:
    """
    Delete the caller's account and the directory records it owns, then its principal.

    School admins are refused while their school still has students or staff.
    Student accounts are managed by the school and cannot be deleted here.
    """
    role = UserRole(user.role)
    if role is UserRole.STUDENT:
        raise RoleMismatchError("Student accounts are managed by the school")
    user_id = user.id

    try:
        if role is UserRole.PARENT:
            await _delete_parent_records(db, user)
        elif role in STAFF_ROLES:
            await _delete_staff_records(db, user)
        elif role is UserRole.SCHOOL:
            await _delete_school_admin_records(db, user)
        elif role is UserRole.DISTRICT:
            await _delete_district_records(db, user)
        await db.delete(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await provider.delete_principal(user_id)
    logger.info("Account deleted: user=%s role=%s", user_id, role.value)


# ----- Recovery tooling -----


async def find_orphaned_principals(db: AsyncSession) -> List[Principal]:
    """Principals with no User record (interrupted signups)."""
    stmt = select(Principal).where(~exists().where(User.id == Principal.id)).order_by(Principal.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def rollback_partial_account(db: AsyncSession, provider: AuthProvider, principal_id: UUID) -> bool:
    """Delete an orphaned principal. Returns False if the principal has a User (not partial)."""
    if await db.get(User, principal_id) is not None:
        return False
    await provider.delete_principal(principal_id)
    logger.info("Rolled back partial account principal=%s", principal_id)
    return True
