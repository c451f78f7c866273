from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import BillingEventType


class BillingEvent(BaseModel):
    """Event posted by the payment provider once a checkout or renewal settles."""

    event: BillingEventType
    organization_id: UUID
    current_period_end: Optional[datetime] = None


class SubscriptionStatusResponse(BaseModel):
    organization_id: UUID
    organization_type: str  # school | district
    subscription_active: bool
    subscription_end_date: Optional[datetime] = None
    # Effective state (includes district coverage for schools)
    is_active: bool


class FeatureGateResponse(BaseModel):
    feature: str
    allowed: bool
    organization_id: Optional[UUID] = None
    redirect_to: Optional[str] = None
