"""
Persistence for profile rows read and written by the recompute pipeline.

Derived columns (counts, trust score, completion) are only ever written
here, and only after a recompute has fully succeeded.
"""

import json
from datetime import datetime
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one, fetch_val
from app.features.profile_engagement.domain import (
    ProfileNotFoundError,
    ProfileRecord,
    ProfileReference,
    TrustScoreResult,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

LIST_COLUMNS = (
    "skills",
    "areas_of_focus",
    "qualifications",
    "experience_entries",
    "portfolio_links",
    "preferred_engagements",
    "collaboration_roster",
    "impact_highlights",
    "pipeline_insights",
    "status_flags",
    "volunteer_badges",
)


def _coerce_list(value: Any) -> list:
    """Accept JSON arrays, JSON-encoded strings, or comma separated text."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, list):
                return decoded
        return [part.strip() for part in text.split(",") if part.strip()]
    return [value]


def _coerce_mapping(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


class ProfileRepository:
    """Profile reads and derived-field writes for the engagement pipeline."""

    PROFILE_SELECT_COLUMNS = """
        id, user_id, headline, bio, mission_statement, education, location,
        skills, areas_of_focus, qualifications, experience_entries,
        portfolio_links, preferred_engagements, collaboration_roster,
        impact_highlights, pipeline_insights, status_flags, volunteer_badges,
        launchpad_eligibility, availability_status, available_hours_per_week,
        availability_updated_at, updated_at, likes_count, followers_count,
        engagement_refreshed_at, trust_score, trust_score_level,
        profile_completion
    """

    @classmethod
    def _row_to_profile(cls, row: dict | None) -> ProfileRecord | None:
        if not row:
            return None

        lists = {column: _coerce_list(row.get(column)) for column in LIST_COLUMNS}
        trust_score = row.get("trust_score")
        completion = row.get("profile_completion")
        hours = row.get("available_hours_per_week")

        return ProfileRecord(
            id=row["id"],
            user_id=row.get("user_id"),
            headline=row.get("headline"),
            bio=row.get("bio"),
            mission_statement=row.get("mission_statement"),
            education=row.get("education"),
            location=row.get("location"),
            launchpad_eligibility=_coerce_mapping(row.get("launchpad_eligibility")),
            availability_status=row.get("availability_status"),
            available_hours_per_week=float(hours) if hours is not None else None,
            availability_updated_at=row.get("availability_updated_at"),
            updated_at=row.get("updated_at"),
            likes_count=row.get("likes_count") or 0,
            followers_count=row.get("followers_count") or 0,
            engagement_refreshed_at=row.get("engagement_refreshed_at"),
            trust_score=float(trust_score) if trust_score is not None else None,
            trust_score_level=row.get("trust_score_level"),
            profile_completion=float(completion) if completion is not None else None,
            **lists,
        )

    @classmethod
    async def load_for_update(
        cls, profile_id: int, *, connection: psycopg.AsyncConnection
    ) -> ProfileRecord:
        """
        Load the profile row and hold its lock until the transaction ends.

        Raises:
            ProfileNotFoundError: if the profile does not exist
        """
        query = f"SELECT {cls.PROFILE_SELECT_COLUMNS} FROM profiles WHERE id = %s FOR UPDATE"
        row = await fetch_one(query, (profile_id,), connection=connection)
        if not row:
            raise ProfileNotFoundError(profile_id)
        return cls._row_to_profile(row)

    @classmethod
    async def lock_profile(cls, profile_id: int, *, connection: psycopg.AsyncConnection) -> None:
        """Take the profile row lock without loading the full record."""
        found = await fetch_val(
            "SELECT id FROM profiles WHERE id = %s FOR UPDATE", (profile_id,), connection=connection
        )
        if found is None:
            raise ProfileNotFoundError(profile_id)

    @classmethod
    async def fetch_references(
        cls, profile_id: int, *, connection: psycopg.AsyncConnection | None = None
    ) -> list[ProfileReference]:
        query = """
            SELECT is_verified, weight, last_interacted_at
            FROM profile_references
            WHERE profile_id = %s
        """

        rows = await fetch_all(query, (profile_id,), connection=connection)
        return [
            ProfileReference(
                is_verified=bool(row.get("is_verified")),
                weight=float(row["weight"]) if row.get("weight") is not None else None,
                last_interacted_at=row.get("last_interacted_at"),
            )
            for row in rows
        ]

    @classmethod
    async def count_connections(
        cls, user_id: int | None, *, connection: psycopg.AsyncConnection | None = None
    ) -> int:
        if user_id is None:
            return 0

        query = """
            SELECT COUNT(*) AS total
            FROM connections
            WHERE status = 'accepted'
              AND (requester_id = %s OR addressee_id = %s)
        """

        total = await fetch_val(query, (user_id, user_id), connection=connection)
        return int(total or 0)

    @classmethod
    async def update_derived_fields(
        cls,
        profile_id: int,
        *,
        likes_count: int,
        followers_count: int,
        profile_completion: float,
        trust: TrustScoreResult,
        refreshed_at: datetime,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        query = """
            UPDATE profiles
            SET likes_count = %s,
                followers_count = %s,
                profile_completion = %s,
                trust_score = %s,
                trust_score_level = %s,
                trust_score_breakdown = %s,
                trust_score_review_at = %s,
                engagement_refreshed_at = %s
            WHERE id = %s
        """

        await execute_query(
            query,
            (
                likes_count,
                followers_count,
                profile_completion,
                trust.score,
                trust.level,
                Jsonb([component.to_dict() for component in trust.breakdown]),
                trust.recommended_review_at,
                refreshed_at,
                profile_id,
            ),
            connection=connection,
        )

        logger.debug(
            "Profile derived fields updated",
            profile_id=profile_id,
            likes_count=likes_count,
            followers_count=followers_count,
            trust_score=trust.score,
        )
