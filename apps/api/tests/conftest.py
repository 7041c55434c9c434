import asyncio
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from multimodal.image_generators import FallbackImageGenerator, ImageGenerator
from multimodal.models import GeneratedImage, ImageDimensions
from routers import rate_limit
from services.generation import ThumbnailComponents
from services.session_token import create_session_token

STORE_PUBLIC_PREFIX = "https://store.supabase.co/storage/v1/object/public/thumbnails/"


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "thumbnails.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


def auth_header(account_id: str, email: Optional[str] = None) -> dict:
    return {"Authorization": f"Bearer {create_session_token(account_id, email)['token']}"}


class FakeEnhancer:
    def __init__(self, error: Optional[Exception] = None):
        self.calls: List[str] = []
        self.error = error

    async def enhance(self, raw_title: str) -> str:
        self.calls.append(raw_title)
        if self.error:
            raise self.error
        return f"Enhanced: {raw_title}"


class FakeAnalyzer:
    def __init__(self):
        self.style_calls: List[Tuple[str, str]] = []
        self.recreate_calls: List[str] = []

    async def analyze_style(self, reference_image_url: str, video_title: str) -> str:
        self.style_calls.append((reference_image_url, video_title))
        return "Bold red text over a dark gradient."

    async def analyze_for_recreation(self, reference_image_url: str) -> str:
        self.recreate_calls.append(reference_image_url)
        return "A man pointing at a glowing laptop."


class FakeGenerator(ImageGenerator):
    def __init__(self, provider: str, url: Optional[str] = None, error: Optional[Exception] = None, delay: float = 0):
        self.provider = provider
        self.url = url
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[str, ImageDimensions, Optional[str]]] = []

    async def generate(self, prompt, dimensions, reference_image_url=None):
        self.calls.append((prompt, dimensions, reference_image_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return GeneratedImage(url=self.url, provider=self.provider, model=f"{self.provider}-model")


class FakeArtifactStore:
    def __init__(self, error: Optional[Exception] = None):
        self.calls: List[Tuple[str, str, str]] = []
        self.error = error

    def is_durable_url(self, url: Optional[str]) -> bool:
        return bool(url) and url.startswith(STORE_PUBLIC_PREFIX)

    async def persist(self, source_url: str, owner_id: str, prefix: str = "thumbnail") -> str:
        self.calls.append((source_url, owner_id, prefix))
        if self.error:
            raise self.error
        return f"{STORE_PUBLIC_PREFIX}{owner_id}/{prefix}_{len(self.calls)}.png"


def build_fake_components(
    *,
    enhancer_error: Optional[Exception] = None,
    primary_error: Optional[Exception] = None,
    fallback_error: Optional[Exception] = None,
    store_error: Optional[Exception] = None,
) -> ThumbnailComponents:
    primary = FakeGenerator("nebius", url="https://provider.example/primary.png", error=primary_error)
    fallback = FakeGenerator("replicate", url="https://replicate.delivery/fallback.png", error=fallback_error)
    return ThumbnailComponents(
        enhancer=FakeEnhancer(error=enhancer_error),
        analyzer=FakeAnalyzer(),
        image_generator=FallbackImageGenerator(primary, fallback, timeout_seconds=1),
        artifact_store=FakeArtifactStore(error=store_error),
    )

