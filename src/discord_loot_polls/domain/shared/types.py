"""Reusable Pydantic Annotated types for domain-wide validation.

Every constrained type used across the polls context is defined here once,
so models can simply annotate their fields::

    from discord_loot_polls.domain.shared.types import DiscordSnowflake, NonEmptyStr

    class MyModel(BaseModel):
        guild_id: DiscordSnowflake
        name: NonEmptyStr
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

# ── Numeric constraints ─────────────────────────────────────────────

DiscordSnowflake = Annotated[int, Field(gt=0, lt=2**64)]
"""Positive integer that fits a Discord snowflake (1 … 2^64-1)."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

PositiveInt = Annotated[int, Field(gt=0)]
"""Integer > 0."""

RowId = Annotated[int, Field(gt=0)]
"""Store-assigned identifier for ballots and entries."""


# ── String constraints ──────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

BallotNameStr = Annotated[str, Field(min_length=1, max_length=100)]
"""Ballot name: 1-100 characters."""

EntryNameStr = Annotated[str, Field(min_length=1, max_length=200)]
"""Entry (item) name: 1-200 characters."""

DisplayNameStr = Annotated[str, Field(max_length=100)]
"""Member display name captured when the vote was cast; may be empty."""


# ── Settings-specific constraints ──────────────────────────────────

BusyTimeoutMs = Annotated[int, Field(ge=1000, le=30000)]
"""Database busy timeout in milliseconds: 1 000 … 30 000."""

ConnectionTimeoutS = Annotated[int, Field(ge=1, le=60)]
"""Database connection timeout in seconds: 1 … 60."""

SweepIntervalS = Annotated[int, Field(ge=5, le=3600)]
"""Expiry sweep interval in seconds: 5 … 3 600."""


# ── Datetime constraints ────────────────────────────────────────────

def _ensure_utc(v: datetime) -> datetime:
    """Validate that a datetime is timezone-aware and normalise to UTC."""
    if v.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    return v.astimezone(UTC)


UtcDatetimeField = Annotated[datetime, BeforeValidator(_ensure_utc)]
"""Timezone-aware datetime, normalised to UTC on input."""
