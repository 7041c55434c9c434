from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from conftest import auth_header
from config import settings
from models.account import Account
from models.generation import Generation
from services.analytics import DateFilter, date_range, normalize_generation_type
from services.errors import ValidationError

ADMIN_EMAIL = "admin@example.com"


def test_date_range_filters():
    now = datetime(2026, 3, 31, 15, 30, tzinfo=timezone.utc)

    start, end = date_range(DateFilter.TODAY, now=now)
    assert (start.date(), end.date()) == (date(2026, 3, 31), date(2026, 3, 31))

    start, end = date_range(DateFilter.YESTERDAY, now=now)
    assert (start.date(), end.date()) == (date(2026, 3, 30), date(2026, 3, 30))

    start, _ = date_range(DateFilter.PAST_WEEK, now=now)
    assert start.date() == date(2026, 3, 24)

    start, _ = date_range(DateFilter.PAST_MONTH, now=now)
    assert start.date() == date(2026, 2, 28)

    start, end = date_range(DateFilter.CUSTOM, date(2026, 1, 1), date(2026, 1, 15), now=now)
    assert (start.date(), end.date()) == (date(2026, 1, 1), date(2026, 1, 15))


def test_generation_type_filter_accepts_hyphens():
    assert normalize_generation_type("youtube-to-thumbnail") == "youtube_to_thumbnail"
    assert normalize_generation_type(None) is None
    with pytest.raises(ValidationError):
        normalize_generation_type("unknown")


async def _seed(session_maker):
    old = datetime.now(timezone.utc) - timedelta(days=60)
    async with session_maker() as db:
        db.add_all(
            [
                Account(id="admin", email=ADMIN_EMAIL, credits=0),
                Account(id="creator", email="creator@example.com", full_name="Creator", credits=100),
            ]
        )
        await db.flush()
        db.add_all(
            [
                Generation(
                    id="gen-text",
                    account_id="creator",
                    generation_type="text_to_thumbnail",
                    output_image_url="https://store.example/a.png",
                    credit_cost=10,
                ),
                Generation(
                    id="gen-youtube",
                    account_id="creator",
                    generation_type="youtube_to_thumbnail",
                    output_image_url="https://store.example/b.png",
                    credit_cost=20,
                ),
                Generation(
                    id="gen-old",
                    account_id="creator",
                    generation_type="text_to_thumbnail",
                    output_image_url="https://store.example/c.png",
                    credit_cost=10,
                    created_at=old,
                ),
            ]
        )
        await db.commit()


@pytest.mark.asyncio
async def test_admin_stats_counts_generations_in_range(api_client, session_maker):
    await _seed(session_maker)

    with patch.object(settings, "ADMIN_EMAILS", [ADMIN_EMAIL]):
        response = await api_client.get(
            "/admin/stats",
            params={"date_filter": "today"},
            headers=auth_header("admin", ADMIN_EMAIL),
        )

    assert response.status_code == 200
    stats = response.json()
    assert stats["total_users"] == 2
    assert stats["generations_in_range"] == 2
    assert stats["credits_spent_in_range"] == 30
    assert stats["generations_by_type"]["text_to_thumbnail"] == {"count": 1, "credits": 10}
    assert stats["generations_by_type"]["image_to_thumbnail"] == {"count": 0, "credits": 0}
    assert stats["active_users_30d"] == 1


@pytest.mark.asyncio
async def test_admin_generation_list_filters_by_type(api_client, session_maker):
    await _seed(session_maker)

    with patch.object(settings, "ADMIN_EMAILS", [ADMIN_EMAIL]):
        response = await api_client.get(
            "/admin/generations",
            params={"generation_type": "youtube-to-thumbnail"},
            headers=auth_header("admin", ADMIN_EMAIL),
        )
        users = await api_client.get("/admin/users", headers=auth_header("admin", ADMIN_EMAIL))

    items = response.json()["items"]
    assert [item["id"] for item in items] == ["gen-youtube"]
    assert items[0]["user_name"] == "Creator"

    counts = {item["id"]: item["generation_count"] for item in users.json()["items"]}
    assert counts == {"admin": 0, "creator": 3}


@pytest.mark.asyncio
async def test_non_admin_is_forbidden(api_client, session_maker):
    await _seed(session_maker)

    with patch.object(settings, "ADMIN_EMAILS", [ADMIN_EMAIL]):
        response = await api_client.get("/admin/stats", headers=auth_header("creator", "creator@example.com"))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_generation_type_filter_is_rejected(api_client, session_maker):
    await _seed(session_maker)

    with patch.object(settings, "ADMIN_EMAILS", [ADMIN_EMAIL]):
        admin = await api_client.get(
            "/admin/generations",
            params={"generation_type": "sketch"},
            headers=auth_header("admin", ADMIN_EMAIL),
        )
    own = await api_client.get(
        "/generations/",
        params={"generation_type": "sketch"},
        headers=auth_header("creator", "creator@example.com"),
    )

    assert admin.status_code == 400
    assert admin.json()["error"] == "Unknown generation type: sketch"
    assert own.status_code == 400
