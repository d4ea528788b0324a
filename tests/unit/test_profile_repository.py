from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.features.profile_engagement.domain.exceptions import ProfileNotFoundError
from app.features.profile_engagement.repository import ProfileRepository
from app.features.profile_engagement.repository.profile_repository import (
    _coerce_list,
    _coerce_mapping,
)

MODULE = "app.features.profile_engagement.repository.profile_repository"


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, []),
        ("", []),
        ("design, research ,", ["design", "research"]),
        ('["a", "b"]', ["a", "b"]),
        ("[not json", ["[not json"]),
        (("x",), ["x"]),
    ],
)
def test_coerce_list(value, expected):
    assert _coerce_list(value) == expected


def test_coerce_mapping_decodes_json_objects_only():
    assert _coerce_mapping('{"status": "eligible"}') == {"status": "eligible"}
    assert _coerce_mapping("[1, 2]") is None
    assert _coerce_mapping("oops") is None


def test_row_to_profile_normalises_types():
    profile = ProfileRepository._row_to_profile(
        {
            "id": 3,
            "user_id": 9,
            "skills": "rigging, audio",
            "trust_score": Decimal("61.25"),
            "available_hours_per_week": Decimal("12"),
            "likes_count": None,
        }
    )

    assert profile.skills == ["rigging", "audio"]
    assert profile.trust_score == 61.25
    assert profile.available_hours_per_week == 12.0
    assert profile.likes_count == 0
    assert profile.status_flags == []


@pytest.mark.asyncio
async def test_load_for_update_raises_for_missing_profile(monkeypatch):
    fetch_one_mock = AsyncMock(return_value=None)
    monkeypatch.setattr(f"{MODULE}.fetch_one", fetch_one_mock)

    with pytest.raises(ProfileNotFoundError):
        await ProfileRepository.load_for_update(77, connection=object())

    query, params = fetch_one_mock.await_args.args
    assert "FOR UPDATE" in query
    assert params == (77,)


@pytest.mark.asyncio
async def test_lock_profile_raises_for_missing_profile(monkeypatch):
    monkeypatch.setattr(f"{MODULE}.fetch_val", AsyncMock(return_value=None))

    with pytest.raises(ProfileNotFoundError):
        await ProfileRepository.lock_profile(77, connection=object())


@pytest.mark.asyncio
async def test_connections_for_profile_without_user(monkeypatch):
    fetch_val_mock = AsyncMock()
    monkeypatch.setattr(f"{MODULE}.fetch_val", fetch_val_mock)

    assert await ProfileRepository.count_connections(None) == 0
    fetch_val_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_references_default_missing_weight(monkeypatch):
    rows = [
        {"is_verified": True, "weight": Decimal("0.8"), "last_interacted_at": None},
        {"is_verified": None, "weight": None, "last_interacted_at": None},
    ]
    monkeypatch.setattr(f"{MODULE}.fetch_all", AsyncMock(return_value=rows))

    references = await ProfileRepository.fetch_references(3)

    assert references[0].is_verified is True
    assert references[0].weight == 0.8
    assert references[1].is_verified is False
    assert references[1].weight is None
