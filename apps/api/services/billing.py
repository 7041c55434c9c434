"""Apply confirmed billing events to account balances."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.credit_ledger import CreditLedger
from services.accounts import get_account
from services.credits import add_credits, get_credit_balance
from services.errors import AccountNotFoundError, ValidationError

logger = logging.getLogger(__name__)


def plan_credits(plan_key: str) -> int:
    credits = settings.PLAN_CREDITS.get(plan_key)
    if credits is None:
        raise ValidationError(f"Unknown plan: {plan_key}")
    return int(credits)


async def apply_payment_completed(
    db: AsyncSession,
    *,
    account_id: str,
    plan_key: str,
    billing_reference: str,
    customer_email: Optional[str] = None,
    provider: str = "stripe",
) -> Dict[str, Any]:
    """
    Grant the credits of ``plan_key``. Replayed events with the same
    ``billing_reference`` are acknowledged without granting twice.
    """
    credits = plan_credits(plan_key)
    account = await get_account(db, account_id)
    if account is None:
        raise AccountNotFoundError(f"Account {account_id} not found.")
    if customer_email and customer_email.strip().lower() != (account.email or "").lower():
        raise ValidationError("Payment email does not match account email.")

    existing = await db.execute(
        select(CreditLedger.id).where(CreditLedger.billing_reference == billing_reference)
    )
    if existing.scalar_one_or_none():
        logger.info("Billing event %s already applied", billing_reference)
        return {
            "applied": False,
            "credits_added": 0,
            "balance_after": await get_credit_balance(account_id, db),
        }

    if plan_key != "credit-pack":
        account.subscription_tier = plan_key
        account.subscription_status = "active"

    balance_after = await add_credits(
        account_id,
        db,
        amount=credits,
        entry_type="purchase",
        reason=f"Payment for {plan_key}",
        billing_provider=provider,
        billing_reference=billing_reference,
    )
    return {"applied": True, "credits_added": credits, "balance_after": balance_after}


async def apply_subscription_status(
    db: AsyncSession,
    *,
    account_id: str,
    status: str,
    plan_key: Optional[str] = None,
) -> Dict[str, Any]:
    account = await get_account(db, account_id)
    if account is None:
        raise AccountNotFoundError(f"Account {account_id} not found.")
    account.subscription_status = status
    if plan_key:
        account.subscription_tier = plan_key
    await db.commit()
    return {"applied": True, "subscription_status": status}
