from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GenerationKind(str, Enum):
    TEXT = "text_to_thumbnail"
    IMAGE = "image_to_thumbnail"
    YOUTUBE = "youtube_to_thumbnail"


class GenerationOption(str, Enum):
    STYLE = "style"
    RECREATE = "recreate"


class AnalysisMode(str, Enum):
    """How a YouTube reference thumbnail is analyzed.

    STYLE_ONLY is forced whenever the caller supplies their own photo;
    STYLE_OR_RECREATE lets ``GenerationOption`` decide.
    """

    STYLE_ONLY = "style_only"
    STYLE_OR_RECREATE = "style_or_recreate"


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int

    @property
    def is_landscape(self) -> bool:
        return self.width >= self.height


@dataclass(frozen=True)
class GeneratedImage:
    url: str
    provider: str
    model: str
    used_fallback: bool = False
    primary_error: Optional[str] = None
