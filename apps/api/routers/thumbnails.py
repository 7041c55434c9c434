"""Thumbnail generation router."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, ensure_account_scope, get_auth_context
from routers.rate_limit import rate_limit
from services.generation import (
    ThumbnailComponents,
    build_thumbnail_components,
    generate_thumbnail,
    validate_request,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class GenerateThumbnailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    generation_type: Optional[str] = Field(default=None, alias="generationType")
    title: Optional[str] = None
    image_text: Optional[str] = Field(default=None, alias="imageText")
    youtube_url: Optional[str] = Field(default=None, alias="youtubeUrl")
    video_title: Optional[str] = Field(default=None, alias="videoTitle")
    reference_image_url: Optional[str] = Field(default=None, alias="referenceImageUrl")
    aspect_ratio: str = Field(default="16:9", alias="aspectRatio")
    generation_option: Optional[str] = Field(default=None, alias="generationOption")


def _get_components() -> ThumbnailComponents:
    return build_thumbnail_components()


@router.post("/generate-thumbnail")
async def create_thumbnail(
    request: GenerateThumbnailRequest,
    _rate_limit: None = Depends(rate_limit("generate_thumbnail", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Generate one thumbnail, charging credits only when it succeeds."""
    account_id = ensure_account_scope(auth.account_id, request.user_id)
    generation_request = validate_request(
        account_id,
        request.generation_type,
        aspect_ratio=request.aspect_ratio,
        title=request.title,
        image_text=request.image_text,
        youtube_url=request.youtube_url,
        video_title=request.video_title,
        reference_image_url=request.reference_image_url,
        generation_option=request.generation_option,
    )

    result = await generate_thumbnail(db, generation_request, _get_components())
    return {
        "success": True,
        "images": result["images"],
        "metadata": result["metadata"],
        "generationId": result["generation_id"],
        "creditCost": result["credit_cost"],
        "creditsRemaining": result["credits_remaining"],
    }
