"""Credit ledger and usage accounting helpers."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
import uuid

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import generation_costs
from models.account import Account
from models.credit_ledger import CreditLedger
from services.errors import AccountNotFoundError, InsufficientCreditsError

logger = logging.getLogger(__name__)


async def get_credit_balance(account_id: str, db: AsyncSession) -> int:
    result = await db.execute(select(Account.credits).where(Account.id == account_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise AccountNotFoundError(f"Account {account_id} not found.")
    return int(balance)


async def check_sufficient_credits(account_id: str, db: AsyncSession, *, cost: int) -> bool:
    """Return whether the account can currently afford ``cost``."""
    balance = await get_credit_balance(account_id, db)
    return balance >= max(int(cost), 0)


def _journal_entry(
    account_id: str,
    *,
    entry_type: str,
    delta_credits: int,
    balance_after: int,
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    billing_provider: Optional[str] = None,
    billing_reference: Optional[str] = None,
) -> CreditLedger:
    return CreditLedger(
        id=str(uuid.uuid4()),
        account_id=account_id,
        entry_type=entry_type,
        delta_credits=int(delta_credits),
        balance_after=balance_after,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        billing_provider=billing_provider,
        billing_reference=billing_reference,
    )


async def deduct_credits(
    account_id: str,
    db: AsyncSession,
    *,
    cost: int,
    reason: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    commit: bool = True,
) -> int:
    """
    Atomically lower the balance by ``cost`` and journal the debit.

    The balance check happens inside the UPDATE itself, so two concurrent
    deductions can never take the balance below zero.
    """
    debit_cost = max(int(cost), 0)
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id, Account.credits >= debit_cost)
        .values(credits=Account.credits - debit_cost, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = await get_credit_balance(account_id, db)
        raise InsufficientCreditsError(required=debit_cost, available=available)

    balance_after = await get_credit_balance(account_id, db)
    db.add(
        _journal_entry(
            account_id,
            entry_type="debit",
            delta_credits=-debit_cost,
            balance_after=balance_after,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
        )
    )
    await db.flush()
    if commit:
        await db.commit()
    return balance_after


async def add_credits(
    account_id: str,
    db: AsyncSession,
    *,
    amount: int,
    entry_type: str = "grant",
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    billing_provider: Optional[str] = None,
    billing_reference: Optional[str] = None,
    commit: bool = True,
) -> int:
    """Atomically raise the balance; used for bonuses, renewals and purchases."""
    grant = int(amount)
    if grant <= 0:
        raise ValueError("amount must be greater than 0")

    result = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(credits=Account.credits + grant, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AccountNotFoundError(f"Account {account_id} not found.")

    balance_after = await get_credit_balance(account_id, db)
    db.add(
        _journal_entry(
            account_id,
            entry_type=entry_type,
            delta_credits=grant,
            balance_after=balance_after,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            billing_provider=billing_provider,
            billing_reference=billing_reference,
        )
    )
    await db.flush()
    if commit:
        await db.commit()
    logger.info("Granted %s credits to %s (%s)", grant, account_id, entry_type)
    return balance_after


async def get_credit_summary(account_id: str, db: AsyncSession) -> Dict[str, Any]:
    balance = await get_credit_balance(account_id, db)
    result = await db.execute(
        select(CreditLedger)
        .where(CreditLedger.account_id == account_id)
        .order_by(CreditLedger.created_at.desc())
        .limit(30)
    )
    entries = result.scalars().all()
    return {
        "balance": balance,
        "costs": generation_costs(),
        "recent_entries": [
            {
                "id": entry.id,
                "entry_type": entry.entry_type,
                "delta_credits": entry.delta_credits,
                "balance_after": entry.balance_after,
                "reason": entry.reason,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in entries
        ],
    }
