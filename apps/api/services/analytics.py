"""Admin analytics queries over accounts and generations."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import distinct, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.account import Account
from models.generation import Generation
from multimodal.models import GenerationKind
from services.errors import ValidationError


class DateFilter(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    PAST_WEEK = "past_week"
    PAST_MONTH = "past_month"
    CUSTOM = "custom"


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def _month_before(day: date) -> date:
    last_of_previous = day.replace(day=1) - timedelta(days=1)
    return last_of_previous.replace(day=min(day.day, last_of_previous.day))


def date_range(
    date_filter: DateFilter,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Inclusive UTC range for a dashboard date filter."""
    today = (now or datetime.now(timezone.utc)).date()
    end = _end_of_day(today)

    if date_filter == DateFilter.TODAY:
        start = _start_of_day(today)
    elif date_filter == DateFilter.YESTERDAY:
        yesterday = today - timedelta(days=1)
        start, end = _start_of_day(yesterday), _end_of_day(yesterday)
    elif date_filter == DateFilter.PAST_WEEK:
        start = _start_of_day(today - timedelta(days=7))
    elif date_filter == DateFilter.PAST_MONTH:
        start = _start_of_day(_month_before(today))
    else:
        start = _start_of_day(custom_start or _month_before(today))
        if custom_end:
            end = _end_of_day(custom_end)
    return start, end


def normalize_generation_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    normalized = value.strip().replace("-", "_")
    try:
        return GenerationKind(normalized).value
    except ValueError as exc:
        raise ValidationError(f"Unknown generation type: {value}") from exc


async def get_dashboard_stats(
    db: AsyncSession,
    date_filter: DateFilter = DateFilter.PAST_MONTH,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    current = now or datetime.now(timezone.utc)
    start, end = date_range(date_filter, custom_start, custom_end, now=current)

    total_users = (await db.execute(select(func.count(Account.id)))).scalar() or 0
    users_in_range = (
        await db.execute(select(func.count(Account.id)).where(Account.created_at.between(start, end)))
    ).scalar() or 0
    new_users = (
        await db.execute(
            select(func.count(Account.id)).where(Account.created_at >= current - timedelta(days=7))
        )
    ).scalar() or 0
    active_users = (
        await db.execute(
            select(func.count(distinct(Generation.account_id))).where(
                Generation.created_at >= current - timedelta(days=30)
            )
        )
    ).scalar() or 0

    by_type_rows = (
        await db.execute(
            select(
                Generation.generation_type,
                func.count(Generation.id),
                func.coalesce(func.sum(Generation.credit_cost), 0),
            )
            .where(Generation.created_at.between(start, end))
            .group_by(Generation.generation_type)
        )
    ).all()
    by_type = {kind.value: {"count": 0, "credits": 0} for kind in GenerationKind}
    for generation_type, count, credits in by_type_rows:
        by_type[generation_type] = {"count": int(count or 0), "credits": int(credits or 0)}

    return {
        "date_filter": date_filter.value,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "total_users": int(total_users),
        "users_in_range": int(users_in_range),
        "new_users_7d": int(new_users),
        "active_users_30d": int(active_users),
        "generations_in_range": sum(item["count"] for item in by_type.values()),
        "credits_spent_in_range": sum(item["credits"] for item in by_type.values()),
        "generations_by_type": by_type,
    }


async def list_generations(
    db: AsyncSession,
    *,
    account_id: Optional[str] = None,
    generation_type: Optional[str] = None,
    date_filter: Optional[DateFilter] = None,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    query = (
        select(Generation, Account.full_name, Account.email)
        .join(Account, Account.id == Generation.account_id)
        .order_by(Generation.created_at.desc(), Generation.id.desc())
    )
    if account_id:
        query = query.where(Generation.account_id == account_id)
    normalized_type = normalize_generation_type(generation_type)
    if normalized_type:
        query = query.where(Generation.generation_type == normalized_type)
    if date_filter:
        start, end = date_range(date_filter, custom_start, custom_end)
        query = query.where(Generation.created_at.between(start, end))

    rows = (await db.execute(query.limit(max(1, min(limit, 200))).offset(max(offset, 0)))).all()
    return [serialize_generation(generation, full_name, email) for generation, full_name, email in rows]


async def list_accounts(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
    generation_counts = (
        select(Generation.account_id, func.count(Generation.id).label("generation_count"))
        .group_by(Generation.account_id)
        .subquery()
    )
    rows = (
        await db.execute(
            select(Account, func.coalesce(generation_counts.c.generation_count, 0))
            .outerjoin(generation_counts, generation_counts.c.account_id == Account.id)
            .order_by(Account.created_at.desc(), Account.id)
            .limit(max(1, min(limit, 200)))
            .offset(max(offset, 0))
        )
    ).all()
    return [
        {
            "id": account.id,
            "email": account.email,
            "full_name": account.full_name,
            "credits": int(account.credits or 0),
            "subscription_tier": account.subscription_tier,
            "subscription_status": account.subscription_status,
            "generation_count": int(count or 0),
            "created_at": account.created_at.isoformat() if account.created_at else None,
        }
        for account, count in rows
    ]


def serialize_generation(
    generation: Generation,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": generation.id,
        "user_id": generation.account_id,
        "user_name": full_name or email,
        "generation_type": generation.generation_type,
        "output_image_url": generation.output_image_url,
        "credit_cost": generation.credit_cost,
        "prompt": generation.prompt,
        "input_image_url": generation.input_image_url,
        "metadata": generation.generation_metadata or {},
        "created_at": generation.created_at.isoformat() if generation.created_at else None,
    }
