"""YouTube URL parsing helpers."""

import re

from services.errors import ValidationError

YOUTUBE_URL_PATTERNS = [
    r"youtu\.be/([\w-]{11})(?:[?&/#]|$)",  # Short link
    r"youtube\.com/watch\?(?:[^#]*&)?v=([\w-]{11})(?:[&#]|$)",  # Watch URL
    r"youtube\.com/(?:embed|v|shorts)/([\w-]{11})(?:[?&/#]|$)",  # Embed / legacy / shorts
]


def extract_video_id(url: str) -> str:
    """Return the 11-character video id or raise ValidationError."""
    candidate = (url or "").strip()
    if candidate and not re.match(r"^https?://", candidate):
        candidate = f"https://{candidate}"
    if re.match(r"^https?://(?:[\w-]+\.)*(?:youtube\.com|youtu\.be)/", candidate):
        for pattern in YOUTUBE_URL_PATTERNS:
            match = re.search(pattern, candidate)
            if match:
                return match.group(1)
    raise ValidationError("Invalid YouTube URL.")


def thumbnail_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
