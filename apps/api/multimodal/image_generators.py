"""Hosted diffusion-model image generators and the primary/fallback chain."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import replicate

from config import settings
from services.errors import ImageGenerationError

from .models import GeneratedImage, ImageDimensions

logger = logging.getLogger(__name__)


def aspect_ratio_label(dimensions: ImageDimensions) -> str:
    """Nearest ratio label the fallback provider accepts; squares map to landscape."""
    return "16:9" if dimensions.is_landscape else "9:16"


class ImageGenerator(ABC):
    """Capability shared by every image provider."""

    provider: str = "unknown"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str] = None,
    ) -> GeneratedImage:
        raise NotImplementedError


class NebiusImageGenerator(ImageGenerator):
    """Primary generator: OpenAI-style ``/images/generations`` endpoint with pixel dimensions."""

    provider = "nebius"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        inference_steps: int = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.inference_steps = inference_steps
        self.transport = transport

    def _payload(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "width": dimensions.width,
            "height": dimensions.height,
            "response_extension": "png",
            "num_inference_steps": self.inference_steps,
        }
        if reference_image_url:
            payload["image"] = reference_image_url
        return payload

    async def generate(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str] = None,
    ) -> GeneratedImage:
        if not self.api_key:
            raise ImageGenerationError("Primary image provider is not configured.")

        logger.info("Generating image with %s (%sx%s)", self.model, dimensions.width, dimensions.height)
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(
                f"{self.base_url}/images/generations",
                json=self._payload(prompt, dimensions, reference_image_url),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=None,
            )

        if response.status_code >= 300:
            raise ImageGenerationError(
                f"Primary image provider error: {response.status_code} {response.text[:300]}"
            )

        try:
            url = response.json()["data"][0]["url"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ImageGenerationError("Primary image provider returned a malformed payload.") from exc
        if not url:
            raise ImageGenerationError("Primary image provider returned no image URL.")

        return GeneratedImage(url=str(url), provider=self.provider, model=self.model)


class ReplicateImageGenerator(ImageGenerator):
    """Fallback generator: Replicate model that takes aspect-ratio labels, not pixels."""

    provider = "replicate"

    def __init__(self, client: Optional[replicate.Client], model: str):
        self.client = client
        self.model = model

    def _input(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str],
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "prompt": prompt,
            "aspect_ratio": aspect_ratio_label(dimensions),
            "num_outputs": 1,
            "output_format": "png",
        }
        if reference_image_url:
            data["image_prompt"] = reference_image_url
        return data

    @staticmethod
    def _first_url(output: Any) -> Optional[str]:
        # Output can be URL or list, of strings or file objects
        if isinstance(output, (list, tuple)):
            output = output[0] if output else None
        if output is None:
            return None
        url = getattr(output, "url", output)
        return str(url) if url else None

    async def generate(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str] = None,
    ) -> GeneratedImage:
        if self.client is None:
            raise ImageGenerationError("Fallback image provider is not configured.")

        logger.info("Generating image with Replicate (%s)", self.model)
        try:
            output = await self.client.async_run(
                self.model,
                input=self._input(prompt, dimensions, reference_image_url),
            )
        except Exception as exc:
            raise ImageGenerationError(f"Fallback image provider error: {exc}") from exc

        url = self._first_url(output)
        if not url:
            raise ImageGenerationError("Fallback image provider returned no images.")
        return GeneratedImage(url=url, provider=self.provider, model=self.model)


class FallbackImageGenerator(ImageGenerator):
    """
    Runs the primary generator under a timeout and, only if it times out or
    fails, the fallback generator once with the same inputs.
    """

    def __init__(self, primary: ImageGenerator, fallback: ImageGenerator, timeout_seconds: float):
        self.primary = primary
        self.fallback = fallback
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        prompt: str,
        dimensions: ImageDimensions,
        reference_image_url: Optional[str] = None,
    ) -> GeneratedImage:
        try:
            return await asyncio.wait_for(
                self.primary.generate(prompt, dimensions, reference_image_url),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            primary_error = f"timed out after {self.timeout_seconds:g}s"
        except Exception as exc:
            primary_error = str(exc) or exc.__class__.__name__
        logger.warning("Primary image generator failed (%s); using fallback", primary_error)

        try:
            image = await self.fallback.generate(prompt, dimensions, reference_image_url)
        except Exception as exc:
            logger.error("Fallback image generator failed: %s", exc)
            raise ImageGenerationError(
                f"All image providers failed. Primary: {primary_error}. Fallback: {exc}"
            ) from exc

        return GeneratedImage(
            url=image.url,
            provider=image.provider,
            model=image.model,
            used_fallback=True,
            primary_error=primary_error,
        )


def build_image_generator() -> FallbackImageGenerator:
    primary = NebiusImageGenerator(
        api_key=settings.NEBIUS_API_KEY,
        base_url=settings.NEBIUS_BASE_URL,
        model=settings.NEBIUS_IMAGE_MODEL,
        inference_steps=settings.NEBIUS_INFERENCE_STEPS,
    )
    replicate_client = replicate.Client(api_token=settings.REPLICATE_API_TOKEN) if settings.REPLICATE_API_TOKEN else None
    fallback = ReplicateImageGenerator(replicate_client, settings.REPLICATE_FALLBACK_MODEL)
    return FallbackImageGenerator(
        primary,
        fallback,
        timeout_seconds=float(settings.PRIMARY_GENERATOR_TIMEOUT_SECONDS),
    )
