"""
Role-based access resolution.

can_edit is pure: given an Actor (resolved once per request) and the resource's owning
school, it decides whether mutation is allowed. Every mutating endpoint re-checks it on
the server; a client-side check is only a UX hint.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import ResourceKind, UserRole
from app.core.exceptions import PermissionDenied
from app.core.models import District, School


@dataclass(frozen=True)
class Actor:
    """Caller identity with its organization scope, threaded explicitly into every check."""

    user_id: UUID
    role: UserRole
    active_organization_id: Optional[UUID] = None
    joined_school_ids: FrozenSet[UUID] = field(default_factory=frozenset)
    owned_school_ids: FrozenSet[UUID] = field(default_factory=frozenset)
    district_school_ids: FrozenSet[UUID] = field(default_factory=frozenset)


_EditRule = Callable[[Actor, UUID, ResourceKind, FrozenSet[UUID]], bool]


def _school_rule(actor: Actor, owner_school_id: UUID, resource: ResourceKind, class_teacher_ids: FrozenSet[UUID]) -> bool:
    return owner_school_id in actor.owned_school_ids


def _district_rule(actor: Actor, owner_school_id: UUID, resource: ResourceKind, class_teacher_ids: FrozenSet[UUID]) -> bool:
    return owner_school_id in actor.district_school_ids


def _teacher_rule(actor: Actor, owner_school_id: UUID, resource: ResourceKind, class_teacher_ids: FrozenSet[UUID]) -> bool:
    # School-wide resources are read-only for teachers
    if resource is ResourceKind.SCHOOL:
        return False
    return actor.user_id in class_teacher_ids


def _read_only_rule(actor: Actor, owner_school_id: UUID, resource: ResourceKind, class_teacher_ids: FrozenSet[UUID]) -> bool:
    return False


EDIT_RULES: Dict[UserRole, _EditRule] = {
    UserRole.SCHOOL: _school_rule,
    UserRole.DISTRICT: _district_rule,
    UserRole.TEACHER: _teacher_rule,
    UserRole.SUB: _read_only_rule,
    UserRole.PARENT: _read_only_rule,
    UserRole.STUDENT: _read_only_rule,
}

# Adding a role without an edit rule must fail at import, not at request time
if set(EDIT_RULES) != set(UserRole):
    raise RuntimeError("EDIT_RULES must cover every UserRole")


def can_edit(
    actor: Actor,
    owner_school_id: UUID,
    resource: ResourceKind,
    class_teacher_ids: Iterable[UUID] = (),
) -> bool:
    """
    Whether actor may mutate a resource owned by owner_school_id.

    class_teacher_ids: for CLASS, the class's teacher_ids; for STUDENT, the union of
    teacher_ids of the classes the student is enrolled in.
    """
    return EDIT_RULES[actor.role](actor, owner_school_id, resource, frozenset(class_teacher_ids))


def ensure_can_edit(
    actor: Actor,
    owner_school_id: UUID,
    resource: ResourceKind,
    class_teacher_ids: Iterable[UUID] = (),
) -> None:
    if not can_edit(actor, owner_school_id, resource, class_teacher_ids):
        raise PermissionDenied()


def can_manage_roster(actor: Actor, school_id: UUID) -> bool:
    """Who may add students to a school: its owner, its district, or a teacher who joined it."""
    if actor.role is UserRole.TEACHER:
        return school_id in actor.joined_school_ids
    return can_edit(actor, school_id, ResourceKind.SCHOOL)


def can_view_school(actor: Actor, school_id: UUID) -> bool:
    """Staff-level read access to school-internal reports."""
    if actor.role in (UserRole.TEACHER, UserRole.SUB):
        return school_id in actor.joined_school_ids
    return can_edit(actor, school_id, ResourceKind.SCHOOL)


async def resolve_actor(db: AsyncSession, user: User) -> Actor:
    """Load the organization scope needed by the access predicates, once per request."""
    role = UserRole(user.role)
    owned: FrozenSet[UUID] = frozenset()
    district_schools: FrozenSet[UUID] = frozenset()

    if role is UserRole.SCHOOL:
        result = await db.execute(select(School.id).where(School.owner_user_id == user.id))
        owned = frozenset(result.scalars().all())
    elif role is UserRole.DISTRICT and user.district_id is not None:
        district = await db.get(District, user.district_id)
        if district is not None and district.owner_user_id == user.id:
            district_schools = frozenset(UUID(str(sid)) for sid in district.school_ids or [])

    return Actor(
        user_id=user.id,
        role=role,
        active_organization_id=user.active_organization_id,
        joined_school_ids=frozenset(user.joined_organization_ids),
        owned_school_ids=owned,
        district_school_ids=district_schools,
    )
