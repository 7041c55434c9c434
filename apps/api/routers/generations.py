"""Read-only access to the caller's generated thumbnails."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.generation import Generation
from routers.auth_scope import AuthContext, get_auth_context
from services.analytics import list_generations, serialize_generation

router = APIRouter()


@router.get("/")
async def my_generations(
    generation_type: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's creations, newest first."""
    items = await list_generations(
        db,
        account_id=auth.account_id,
        generation_type=generation_type,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "limit": limit, "offset": offset}


@router.get("/{generation_id}")
async def get_generation(
    generation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Generation).where(
            Generation.id == generation_id,
            Generation.account_id == auth.account_id,
        )
    )
    generation = result.scalar_one_or_none()
    if not generation:
        raise HTTPException(status_code=404, detail="Generation not found")
    return serialize_generation(generation)
