"""
Subscription gating.

Features outside ALWAYS_AVAILABLE_FEATURES require the caller's effective organization to
have an active subscription. This module only reads subscription state; the billing
webhook (app/api/v1/billing) is the single writer.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.config import settings
from app.core.enums import Feature, UserRole
from app.core.models import District, School


ALWAYS_AVAILABLE_FEATURES = frozenset(
    {Feature.ACCOUNT_SETTINGS, Feature.BILLING, Feature.FAMILY_PORTAL}
)


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    organization_id: Optional[UUID] = None
    redirect_to: Optional[str] = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _period_is_current(active: bool, end_date: Optional[datetime], now: datetime) -> bool:
    if not active:
        return False
    return end_date is None or _as_utc(end_date) > now


def school_subscription_active(school: School, now: Optional[datetime] = None) -> bool:
    """The school's own flag (ignores district coverage)."""
    return _period_is_current(school.subscription_active, school.subscription_end_date, now or datetime.now(timezone.utc))


def district_subscription_active(district: District, now: Optional[datetime] = None) -> bool:
    return _period_is_current(district.subscription_active, district.subscription_end_date, now or datetime.now(timezone.utc))


async def school_is_covered(db: AsyncSession, school: School) -> bool:
    """Direct subscription, or coverage by an active district that lists the school."""
    now = datetime.now(timezone.utc)
    if school_subscription_active(school, now):
        return True
    if school.district_id is None:
        return False
    district = await db.get(District, school.district_id)
    if district is None or str(school.id) not in (district.school_ids or []):
        return False
    return district_subscription_active(district, now)


async def is_subscription_active(db: AsyncSession, organization_id: UUID) -> bool:
    """isSubscriptionActive for a school or district id. Unknown ids are inactive."""
    school = await db.get(School, organization_id)
    if school is not None:
        return await school_is_covered(db, school)
    district = await db.get(District, organization_id)
    if district is not None:
        return district_subscription_active(district)
    return False


async def effective_organization_id(db: AsyncSession, user: User) -> Optional[UUID]:
    """Active organization, or for district users the first school of their district."""
    if user.active_organization_id is not None:
        return user.active_organization_id
    if UserRole(user.role) is UserRole.DISTRICT and user.district_id is not None:
        district = await db.get(District, user.district_id)
        if district is not None and district.school_ids:
            return UUID(str(district.school_ids[0]))
    return None


async def check_feature(db: AsyncSession, user: User, feature: Feature) -> GateDecision:
    org_id = await effective_organization_id(db, user)
    if feature in ALWAYS_AVAILABLE_FEATURES:
        return GateDecision(allowed=True, organization_id=org_id)
    if org_id is not None and await is_subscription_active(db, org_id):
        return GateDecision(allowed=True, organization_id=org_id)
    return GateDecision(allowed=False, organization_id=org_id, redirect_to=settings.billing_redirect_path)
