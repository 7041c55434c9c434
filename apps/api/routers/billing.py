"""Billing and credits router."""

from __future__ import annotations

import hmac
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.billing import apply_payment_completed, apply_subscription_status
from services.credits import get_credit_summary

router = APIRouter()
logger = logging.getLogger(__name__)


class BillingEvent(BaseModel):
    """Confirmed event relayed by the payment provider integration."""

    event_type: Literal["payment_completed", "subscription_updated", "subscription_canceled"]
    account_id: str
    plan_key: Optional[str] = None
    billing_reference: Optional[str] = Field(default=None, max_length=255)
    customer_email: Optional[str] = None
    subscription_status: Optional[str] = None


def _verify_billing_secret(supplied: Optional[str]) -> None:
    expected = (settings.BILLING_WEBHOOK_SECRET or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="Billing events are not configured.")
    if not supplied or not hmac.compare_digest(supplied.strip(), expected):
        raise HTTPException(status_code=401, detail="Invalid billing secret.")


@router.get("/credits")
async def credits_summary(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_credit_summary(auth.account_id, db)


@router.post("/events")
async def billing_event(
    event: BillingEvent,
    x_billing_secret: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Apply a confirmed payment or subscription change."""
    _verify_billing_secret(x_billing_secret)
    logger.info("Billing event %s for %s", event.event_type, event.account_id)

    if event.event_type == "payment_completed":
        if not event.plan_key or not event.billing_reference:
            raise HTTPException(status_code=422, detail="plan_key and billing_reference are required")
        result = await apply_payment_completed(
            db,
            account_id=event.account_id,
            plan_key=event.plan_key,
            billing_reference=event.billing_reference,
            customer_email=event.customer_email,
        )
    else:
        status = event.subscription_status or ("canceled" if event.event_type == "subscription_canceled" else "active")
        result = await apply_subscription_status(
            db,
            account_id=event.account_id,
            status=status,
            plan_key=event.plan_key,
        )
    return {"ok": True, **result}
