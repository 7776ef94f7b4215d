"""Core entities for the polls bounded context."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from discord_loot_polls.domain.polls.value_objects import (
    BallotType,
    ItemCategory,
    VoteKey,
    VotingContext,
    normalize_name_key,
    normalize_slot,
)
from discord_loot_polls.domain.shared.datetime_utils import utcnow
from discord_loot_polls.domain.shared.types import (
    BallotNameStr,
    DiscordSnowflake,
    DisplayNameStr,
    EntryNameStr,
    RowId,
    UtcDatetimeField,
)


class Ballot(BaseModel):
    """One poll instance. Once closed it is never reopened."""

    model_config = ConfigDict(frozen=True)

    id: RowId
    guild_id: DiscordSnowflake
    name: BallotNameStr
    is_open: bool = True
    expires_at: UtcDatetimeField | None = None
    ballot_type: BallotType = BallotType.WORLD_BOSS
    voting_context: VotingContext | None = None
    created_at: UtcDatetimeField = Field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at


class Entry(BaseModel):
    """A votable item within exactly one ballot.

    ``name_key`` and ``slot`` are normalized on construction so every consumer
    (bucket classifier, uniqueness checks) sees the canonical form.
    """

    model_config = ConfigDict(frozen=True)

    id: RowId
    ballot_id: RowId
    name: EntryNameStr
    name_key: str = ""
    category: ItemCategory
    slot: str = ""

    @field_validator("slot", mode="before")
    @classmethod
    def _normalize_slot(cls, v: str | None) -> str:
        return normalize_slot(v)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _fill_name_key(self) -> Entry:
        if not self.name_key:
            object.__setattr__(self, "name_key", normalize_name_key(self.name))
        return self


class Vote(BaseModel):
    """One user's claim on one entry under one voting context."""

    model_config = ConfigDict(frozen=True)

    ballot_id: RowId
    entry_id: RowId
    user_id: DiscordSnowflake
    user_display_name: DisplayNameStr = ""
    voting_context: VotingContext
    cast_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def key(self) -> VoteKey:
        return VoteKey(
            ballot_id=self.ballot_id,
            entry_id=self.entry_id,
            user_id=self.user_id,
            voting_context=self.voting_context,
        )

    def __hash__(self) -> int:
        return hash(self.key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vote):
            return NotImplemented
        return self.key == other.key


class HeldVote(BaseModel):
    """A vote joined with its entry and ballot, as seen in eligibility snapshots."""

    model_config = ConfigDict(frozen=True)

    vote: Vote
    entry: Entry
    ballot_name: str = ""
    ballot_is_open: bool = True

    @property
    def key(self) -> VoteKey:
        return self.vote.key

    @property
    def label(self) -> str:
        """Human-readable "<ballot>: <entry>" label for replacement choices."""
        if self.ballot_name:
            return f"{self.ballot_name}: {self.entry.name}"
        return self.entry.name
