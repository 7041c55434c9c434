import logging
from typing import Optional

from openai import AsyncOpenAI

from config import settings
from services.errors import ImageAnalysisError, PromptEnhancementError

logger = logging.getLogger(__name__)

MAX_ENHANCED_PROMPT_CHARS = 6000

ENHANCER_SYSTEM_PROMPT = f"""
You are a creative art director and expert prompt engineer for YouTube thumbnails.
You receive a rough description of a video. Rewrite it as one vivid image-generation prompt.

The prompt must describe:
- The video title rendered as large, bold, easy-to-read text, at the top or center.
- One strong central figure or subject that carries the emotion of the video.
- A vibrant gradient background with high contrast against the subject.
- A font treatment that fits the genre (gaming, tech, vlog, education, finance...).
- Lighting, color palette, mood and composition.

Reply with the prompt only, no preamble or explanations.
The prompt must not exceed {MAX_ENHANCED_PROMPT_CHARS} characters.
"""

STYLE_ANALYSIS_PROMPT = (
    "Analyze this YouTube thumbnail and describe its visual style, composition, and key elements. "
    "What are the dominant colors, textures, and overall aesthetic? How are the elements arranged "
    "and positioned? Describe it so a new thumbnail for the video titled \"{video_title}\" "
    "can replicate this style."
)

RECREATE_ANALYSIS_PROMPT = (
    "Analyze this YouTube thumbnail and describe it precisely enough to recreate it: subjects, "
    "poses, expressions, text, colors, lighting, background and composition, from left to right."
)


def get_llm_client(api_key: Optional[str] = None, base_url: Optional[str] = None) -> Optional[AsyncOpenAI]:
    """Get an OpenAI-compatible client for the hosted LLM, or None when unconfigured."""
    key = api_key if api_key is not None else settings.GROQ_API_KEY
    if not key or "your_" in key:
        return None
    return AsyncOpenAI(api_key=key, base_url=base_url or settings.GROQ_BASE_URL)


def _first_message_content(response) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return (content or "").strip()


class PromptEnhancer:
    """Turns a raw title prompt into a richer image-generation prompt."""

    def __init__(self, client: Optional[AsyncOpenAI], model: str):
        self.client = client
        self.model = model

    async def enhance(self, raw_title: str) -> str:
        if self.client is None:
            raise PromptEnhancementError("Prompt enhancement provider is not configured.")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ENHANCER_SYSTEM_PROMPT},
                    {"role": "user", "content": raw_title},
                ],
                temperature=1,
                max_tokens=1024,
                top_p=1,
            )
        except Exception as exc:
            logger.error(f"Error enhancing prompt: {exc}")
            raise PromptEnhancementError(f"Prompt enhancement failed: {exc}") from exc

        content = _first_message_content(response)
        if not content:
            raise PromptEnhancementError("Prompt enhancement returned an empty prompt.")
        return content


class ImageAnalyzer:
    """Describes a reference thumbnail with a vision-capable model."""

    def __init__(self, client: Optional[AsyncOpenAI], model: str):
        self.client = client
        self.model = model

    async def analyze_style(self, reference_image_url: str, video_title: str) -> str:
        instruction = STYLE_ANALYSIS_PROMPT.format(video_title=video_title)
        return await self._describe(reference_image_url, instruction)

    async def analyze_for_recreation(self, reference_image_url: str) -> str:
        return await self._describe(reference_image_url, RECREATE_ANALYSIS_PROMPT)

    async def _describe(self, image_url: str, instruction: str) -> str:
        if self.client is None:
            raise ImageAnalysisError("Image analysis provider is not configured.")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": instruction},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    }
                ],
                temperature=1,
                max_tokens=1024,
                top_p=1,
            )
        except Exception as exc:
            logger.error(f"Error analyzing image {image_url}: {exc}")
            raise ImageAnalysisError(f"Image analysis failed: {exc}") from exc

        content = _first_message_content(response)
        if not content:
            raise ImageAnalysisError("Image analysis returned an empty description.")
        return content
