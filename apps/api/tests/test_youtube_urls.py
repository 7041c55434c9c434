import pytest

from services.errors import ValidationError
from services.youtube import extract_video_id, thumbnail_url


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://youtube.com/shorts/dQw4w9WgXcQ?feature=share",
        "youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    ],
)
def test_extracts_video_id_from_supported_forms(url):
    assert extract_video_id(url) == "dQw4w9WgXcQ"


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com",
        "https://example.com/watch?v=dQw4w9WgXcQ",
        "https://www.youtube.com/watch?v=short",
        "",
    ],
)
def test_rejects_non_youtube_urls(url):
    with pytest.raises(ValidationError):
        extract_video_id(url)


def test_thumbnail_url_uses_max_resolution_still():
    assert thumbnail_url("dQw4w9WgXcQ") == "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"
