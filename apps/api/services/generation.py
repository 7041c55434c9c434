"""Credit-gated thumbnail generation orchestration."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import generation_costs, settings
from models.generation import Generation
from multimodal.image_generators import ImageGenerator, build_image_generator
from multimodal.llm import ImageAnalyzer, PromptEnhancer, get_llm_client
from multimodal.models import (
    AnalysisMode,
    GeneratedImage,
    GenerationKind,
    GenerationOption,
    ImageDimensions,
)
from services.artifact_store import SupabaseArtifactStore, build_artifact_store
from services.credits import check_sufficient_credits, deduct_credits, get_credit_balance
from services.errors import InsufficientCreditsError, ThumbnailServiceError, ValidationError
from services.youtube import extract_video_id, thumbnail_url

logger = logging.getLogger(__name__)

ASPECT_RATIO_DIMENSIONS: Dict[str, ImageDimensions] = {
    "16:9": ImageDimensions(1280, 720),
    "9:16": ImageDimensions(720, 1280),
    "1:1": ImageDimensions(1080, 1080),
    "4:5": ImageDimensions(1080, 1350),
}

TITLE_PROMPT_TEMPLATE = (
    'YouTube thumbnail for video titled "{title}", professional, high quality, engaging, '
    "4K resolution, vibrant colors"
)
YOUTUBE_PROMPT_TEMPLATE = '{analysis} Create a YouTube thumbnail for "{video_title}".'
YOUTUBE_PHOTO_PROMPT_TEMPLATE = (
    '{analysis} Create a professional YouTube thumbnail for "{video_title}" incorporating these '
    "style elements and the person from the reference image. Ensure high quality, engaging "
    "composition, and vibrant colors."
)

ARTIFACT_PREFIX = {
    GenerationKind.TEXT: "text_thumbnail",
    GenerationKind.IMAGE: "image_thumbnail",
    GenerationKind.YOUTUBE: "youtube_thumbnail",
}

MAX_TEXT_LENGTH = 2000


@dataclass(frozen=True)
class GenerationRequest:
    account_id: str
    kind: GenerationKind
    aspect_ratio: str
    title: Optional[str] = None
    image_text: Optional[str] = None
    reference_image_url: Optional[str] = None
    youtube_url: Optional[str] = None
    video_id: Optional[str] = None
    video_title: Optional[str] = None
    generation_option: GenerationOption = GenerationOption.STYLE

    @property
    def dimensions(self) -> ImageDimensions:
        return ASPECT_RATIO_DIMENSIONS[self.aspect_ratio]

    @property
    def cost(self) -> int:
        return generation_costs()[self.kind.value]


@dataclass
class PromptPlan:
    prompt: str
    reference_image_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ThumbnailComponents:
    enhancer: PromptEnhancer
    analyzer: ImageAnalyzer
    image_generator: ImageGenerator
    artifact_store: SupabaseArtifactStore


def build_thumbnail_components() -> ThumbnailComponents:
    client = get_llm_client()
    return ThumbnailComponents(
        enhancer=PromptEnhancer(client, settings.PROMPT_ENHANCER_MODEL),
        analyzer=ImageAnalyzer(client, settings.IMAGE_ANALYZER_MODEL),
        image_generator=build_image_generator(),
        artifact_store=build_artifact_store(),
    )


def _clean(value: Optional[str]) -> Optional[str]:
    cleaned = (value or "").strip()
    return cleaned or None


def _require(value: Optional[str], field_name: str) -> str:
    cleaned = _clean(value)
    if not cleaned:
        raise ValidationError(f"{field_name} is required for this generation type.")
    if len(cleaned) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{field_name} must be at most {MAX_TEXT_LENGTH} characters.")
    return cleaned


def _validate_image_url(value: Optional[str], field_name: str) -> Optional[str]:
    cleaned = _clean(value)
    if cleaned and not cleaned.startswith(("http://", "https://")):
        raise ValidationError(f"{field_name} must be an absolute http(s) URL.")
    return cleaned


def validate_request(
    account_id: str,
    generation_type: str,
    *,
    aspect_ratio: Optional[str] = "16:9",
    title: Optional[str] = None,
    image_text: Optional[str] = None,
    youtube_url: Optional[str] = None,
    video_title: Optional[str] = None,
    reference_image_url: Optional[str] = None,
    generation_option: Optional[str] = None,
) -> GenerationRequest:
    """Validate raw inputs; raises ValidationError before any cost is incurred."""
    try:
        kind = GenerationKind(generation_type)
    except ValueError as exc:
        raise ValidationError("Invalid generation type.") from exc

    ratio = aspect_ratio or "16:9"
    if ratio not in ASPECT_RATIO_DIMENSIONS:
        raise ValidationError(
            f"Unsupported aspect ratio {ratio}. Use one of: {', '.join(ASPECT_RATIO_DIMENSIONS)}."
        )

    try:
        option = GenerationOption(generation_option or GenerationOption.STYLE.value)
    except ValueError as exc:
        raise ValidationError("generationOption must be 'style' or 'recreate'.") from exc

    reference = _validate_image_url(reference_image_url, "referenceImageUrl")

    if kind is GenerationKind.TEXT:
        return GenerationRequest(
            account_id=account_id,
            kind=kind,
            aspect_ratio=ratio,
            title=_require(title, "title"),
        )

    if kind is GenerationKind.IMAGE:
        return GenerationRequest(
            account_id=account_id,
            kind=kind,
            aspect_ratio=ratio,
            image_text=_require(image_text, "imageText"),
            reference_image_url=reference,
        )

    url = _require(youtube_url, "youtubeUrl")
    return GenerationRequest(
        account_id=account_id,
        kind=kind,
        aspect_ratio=ratio,
        youtube_url=url,
        video_id=extract_video_id(url),
        video_title=_require(video_title, "videoTitle"),
        reference_image_url=reference,
        generation_option=option,
    )


def resolve_analysis_mode(request: GenerationRequest) -> AnalysisMode:
    if request.reference_image_url:
        return AnalysisMode.STYLE_ONLY
    return AnalysisMode.STYLE_OR_RECREATE


async def _plan_youtube(request: GenerationRequest, analyzer: ImageAnalyzer) -> PromptPlan:
    source_thumbnail = thumbnail_url(request.video_id)
    mode = resolve_analysis_mode(request)
    if mode is AnalysisMode.STYLE_ONLY:
        option = GenerationOption.STYLE
    else:
        option = request.generation_option

    if option is GenerationOption.RECREATE:
        analysis = await analyzer.analyze_for_recreation(source_thumbnail)
    else:
        analysis = await analyzer.analyze_style(source_thumbnail, request.video_title)

    template = YOUTUBE_PHOTO_PROMPT_TEMPLATE if request.reference_image_url else YOUTUBE_PROMPT_TEMPLATE
    return PromptPlan(
        prompt=template.format(analysis=analysis, video_title=request.video_title),
        reference_image_url=request.reference_image_url or source_thumbnail,
        metadata={
            "youtube_url": request.youtube_url,
            "video_id": request.video_id,
            "video_title": request.video_title,
            "source_thumbnail_url": source_thumbnail,
            "generation_option": option.value,
            "analysis_mode": mode.value,
        },
    )


async def build_prompt_plan(request: GenerationRequest, components: ThumbnailComponents) -> PromptPlan:
    """Assemble the generation prompt; only the title kind goes through the enhancer."""
    if request.kind is GenerationKind.TEXT:
        raw_prompt = TITLE_PROMPT_TEMPLATE.format(title=request.title)
        enhanced = await components.enhancer.enhance(raw_prompt)
        return PromptPlan(prompt=enhanced, metadata={"title": request.title})

    if request.kind is GenerationKind.IMAGE:
        return PromptPlan(
            prompt=request.image_text,
            reference_image_url=request.reference_image_url,
        )

    return await _plan_youtube(request, components.analyzer)


async def _record_and_charge(
    db: AsyncSession,
    request: GenerationRequest,
    plan: PromptPlan,
    output_image_url: str,
    metadata: Dict[str, Any],
) -> tuple[Generation, int]:
    """Insert the record and debit credits in one transaction; a failed debit drops the record."""
    generation = Generation(
        id=str(uuid.uuid4()),
        account_id=request.account_id,
        generation_type=request.kind.value,
        output_image_url=output_image_url,
        credit_cost=request.cost,
        prompt=plan.prompt,
        input_image_url=plan.reference_image_url,
        generation_metadata=metadata,
    )
    try:
        db.add(generation)
        await db.flush()
        balance_after = await deduct_credits(
            request.account_id,
            db,
            cost=request.cost,
            reason=f"{request.kind.value} generation",
            reference_type="generation",
            reference_id=generation.id,
            commit=False,
        )
        await db.commit()
    except ThumbnailServiceError as exc:
        await db.rollback()
        logger.warning(
            "Rolled back generation record for %s (%s); orphaned artifact %s",
            request.account_id,
            exc,
            output_image_url,
        )
        raise
    except Exception:
        await db.rollback()
        logger.exception(
            "Rolled back generation record for %s; orphaned artifact %s",
            request.account_id,
            output_image_url,
        )
        raise
    return generation, balance_after


async def generate_thumbnail(
    db: AsyncSession,
    request: GenerationRequest,
    components: ThumbnailComponents,
) -> Dict[str, Any]:
    """
    Run one generation end to end.

    Steps: credit gate, prompt assembly (analysis / enhancement per kind),
    primary-with-fallback image generation, durable upload, then the
    record-and-debit transaction. Any failure aborts without charging.
    """
    cost = request.cost
    if not await check_sufficient_credits(request.account_id, db, cost=cost):
        raise InsufficientCreditsError(
            required=cost,
            available=await get_credit_balance(request.account_id, db),
        )

    plan = await build_prompt_plan(request, components)
    dimensions = request.dimensions

    image: GeneratedImage = await components.image_generator.generate(
        plan.prompt,
        dimensions,
        plan.reference_image_url,
    )

    durable_url = await components.artifact_store.persist(
        image.url,
        request.account_id,
        ARTIFACT_PREFIX[request.kind],
    )

    metadata: Dict[str, Any] = {
        "aspect_ratio": request.aspect_ratio,
        "width": dimensions.width,
        "height": dimensions.height,
        "model": image.model,
        "provider": image.provider,
        "used_fallback": image.used_fallback,
        **plan.metadata,
    }
    generation, balance_after = await _record_and_charge(db, request, plan, durable_url, metadata)
    logger.info(
        "Generated %s %s for %s via %s (balance now %s)",
        request.kind.value,
        generation.id,
        request.account_id,
        image.provider,
        balance_after,
    )
    return {
        "generation_id": generation.id,
        "images": [durable_url],
        "metadata": metadata,
        "credit_cost": cost,
        "credits_remaining": balance_after,
    }
