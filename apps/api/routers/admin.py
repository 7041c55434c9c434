"""Admin analytics router."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, require_admin
from services.analytics import DateFilter, get_dashboard_stats, list_accounts, list_generations

router = APIRouter()


@router.get("/stats")
async def dashboard_stats(
    date_filter: DateFilter = Query(default=DateFilter.PAST_MONTH),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_dashboard_stats(db, date_filter, start_date, end_date)


@router.get("/generations")
async def all_generations(
    date_filter: Optional[DateFilter] = Query(default=None),
    generation_type: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items = await list_generations(
        db,
        generation_type=generation_type,
        date_filter=date_filter,
        custom_start=start_date,
        custom_end=end_date,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "limit": limit, "offset": offset}


@router.get("/users")
async def all_users(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"items": await list_accounts(db, limit=limit, offset=offset), "limit": limit, "offset": offset}
