"""Account provisioning from identity-provider sessions."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.account import Account
from services.credits import add_credits

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_referral_code() -> str:
    return "REF" + "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(6))


def decode_identity_token(token: str) -> Dict[str, Any]:
    """Verify an identity-provider (Supabase) access token and return its claims."""
    secret = (settings.SUPABASE_JWT_SECRET or "").strip()
    if not secret:
        raise ValueError("Identity provider secret is not configured.")
    try:
        claims = jwt.decode(token, secret, algorithms=["HS256"], audience="authenticated")
    except JWTError as exc:
        raise ValueError("Invalid or expired identity token.") from exc

    if not str(claims.get("sub", "")).strip():
        raise ValueError("Identity token missing subject.")
    if not str(claims.get("email", "")).strip():
        raise ValueError("Identity token missing email.")
    return claims


async def get_account(db: AsyncSession, account_id: str) -> Optional[Account]:
    result = await db.execute(select(Account).where(Account.id == account_id))
    return result.scalar_one_or_none()


async def _unique_referral_code(db: AsyncSession) -> str:
    while True:
        code = generate_referral_code()
        existing = await db.execute(select(Account.id).where(Account.referral_code == code))
        if existing.scalar_one_or_none() is None:
            return code


async def _apply_referral(db: AsyncSession, account: Account, referral_code: str) -> None:
    result = await db.execute(select(Account).where(Account.referral_code == referral_code))
    referrer = result.scalar_one_or_none()
    if referrer is None or referrer.id == account.id:
        logger.info("Ignoring unknown referral code %s for %s", referral_code, account.id)
        return

    account.referred_by = referral_code
    bonus = max(int(settings.REFERRAL_BONUS_CREDITS), 0)
    if bonus:
        await add_credits(
            referrer.id,
            db,
            amount=bonus,
            entry_type="referral_bonus",
            reason="Referral bonus",
            reference_type="referral",
            reference_id=account.id,
            commit=False,
        )


async def sync_account(
    db: AsyncSession,
    claims: Dict[str, Any],
    referral_code: Optional[str] = None,
) -> tuple[Account, bool]:
    """Create the account on first authentication, otherwise refresh its profile fields.

    Returns the account and whether it was created.
    """
    user_metadata = claims.get("user_metadata") or {}
    account_id = str(claims["sub"])
    email = str(claims["email"])
    full_name = user_metadata.get("full_name") or user_metadata.get("name")
    avatar_url = user_metadata.get("avatar_url") or user_metadata.get("picture")

    account = await get_account(db, account_id)
    if account:
        account.email = email
        if full_name:
            account.full_name = full_name
        if avatar_url:
            account.avatar_url = avatar_url
        await db.commit()
        await db.refresh(account)
        return account, False

    account = Account(
        id=account_id,
        email=email,
        full_name=full_name,
        avatar_url=avatar_url,
        credits=0,
        referral_code=await _unique_referral_code(db),
    )
    db.add(account)
    await db.flush()

    bonus = max(int(settings.SIGNUP_BONUS_CREDITS), 0)
    if bonus:
        await add_credits(
            account.id,
            db,
            amount=bonus,
            entry_type="signup_bonus",
            reason="Welcome credits",
            reference_type="account",
            reference_id=account.id,
            commit=False,
        )
    if referral_code:
        await _apply_referral(db, account, referral_code.strip().upper())

    await db.commit()
    await db.refresh(account)
    logger.info("Created account %s", account.id)
    return account, True


def serialize_account(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "email": account.email,
        "full_name": account.full_name,
        "avatar_url": account.avatar_url,
        "credits": int(account.credits or 0),
        "referral_code": account.referral_code,
        "referred_by": account.referred_by,
        "subscription_tier": account.subscription_tier,
        "subscription_status": account.subscription_status,
        "created_at": account.created_at.isoformat() if account.created_at else None,
        "updated_at": account.updated_at.isoformat() if account.updated_at else None,
    }
