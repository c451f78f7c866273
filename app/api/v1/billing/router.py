from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.core.enums import Feature
from app.core.exceptions import ServiceError
from app.core.gating import check_feature
from app.db.session import get_db

from .schemas import BillingEvent, FeatureGateResponse, SubscriptionStatusResponse
from . import service

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.post("/webhook", response_model=SubscriptionStatusResponse)
async def billing_webhook(
    payload: BillingEvent,
    x_billing_secret: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> SubscriptionStatusResponse:
    """Subscription state updates from the payment provider. Authenticated by the X-Billing-Secret header."""
    try:
        service.verify_webhook_secret(x_billing_secret)
        return await service.apply_billing_event(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/subscription/{organization_id}", response_model=SubscriptionStatusResponse)
async def subscription_status(
    organization_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SubscriptionStatusResponse:
    try:
        return await service.get_subscription_status(db, organization_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/features/{feature}", response_model=FeatureGateResponse)
async def feature_gate(
    feature: Feature,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FeatureGateResponse:
    """Whether the caller's organization may use a feature; locked features carry the billing redirect."""
    decision = await check_feature(db, current_user, feature)
    return FeatureGateResponse(
        feature=feature.value,
        allowed=decision.allowed,
        organization_id=decision.organization_id,
        redirect_to=decision.redirect_to,
    )
