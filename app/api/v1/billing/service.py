"""
Billing webhook handling. The only writer of subscription fields on School and District.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import BillingEventType
from app.core.exceptions import AuthError, ServiceError
from app.core.gating import is_subscription_active
from app.core.models import District, School

from .schemas import BillingEvent, SubscriptionStatusResponse

logger = logging.getLogger(__name__)


def verify_webhook_secret(provided: Optional[str]) -> None:
    expected = settings.billing_webhook_secret
    if not expected:
        raise ServiceError("Billing webhook is not configured", status.HTTP_503_SERVICE_UNAVAILABLE)
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise AuthError("Invalid billing webhook secret")


async def _get_organization(db: AsyncSession, organization_id: UUID) -> Union[School, District]:
    school = await db.get(School, organization_id)
    if school is not None:
        return school
    district = await db.get(District, organization_id)
    if district is not None:
        return district
    raise ServiceError("Organization not found", status.HTTP_404_NOT_FOUND)


async def apply_billing_event(db: AsyncSession, event: BillingEvent) -> SubscriptionStatusResponse:
    org = await _get_organization(db, event.organization_id)

    if event.event in (BillingEventType.ACTIVATED, BillingEventType.RENEWED):
        org.subscription_active = True
        org.subscription_end_date = event.current_period_end
    else:
        org.subscription_active = False
        org.subscription_end_date = event.current_period_end or datetime.now(timezone.utc)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info(
        "Billing event %s applied to %s %s",
        event.event.value,
        type(org).__name__.lower(),
        event.organization_id,
    )
    return await get_subscription_status(db, event.organization_id)


async def get_subscription_status(db: AsyncSession, organization_id: UUID) -> SubscriptionStatusResponse:
    org = await _get_organization(db, organization_id)
    return SubscriptionStatusResponse(
        organization_id=org.id,
        organization_type="school" if isinstance(org, School) else "district",
        subscription_active=org.subscription_active,
        subscription_end_date=org.subscription_end_date,
        is_active=await is_subscription_active(db, org.id),
    )
