"""
Polls Domain Value Objects

Enumerations and small immutable values for the polls bounded context.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from discord_loot_polls.domain.shared.exceptions import ValidationError
from discord_loot_polls.domain.shared.messages import ErrorMessages
from discord_loot_polls.domain.shared.types import DiscordSnowflake, RowId


class VotingContext(StrEnum):
    """What a vote is for. Caps are computed per context, across ballots."""

    MAIN_PVP = "main_pvp"  # primary, competitive build
    MAIN_PVE = "main_pve"  # primary, cooperative build
    OFFSPEC = "offspec"  # secondary build

    @property
    def label(self) -> str:
        return {
            VotingContext.MAIN_PVP: "Main PvP",
            VotingContext.MAIN_PVE: "Main PvE",
            VotingContext.OFFSPEC: "Off-spec",
        }[self]


class ItemCategory(StrEnum):
    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"


class BallotType(StrEnum):
    """Which kind of boss a ballot was opened for."""

    WORLD_BOSS = "world_boss"
    ARCHBOSS = "archboss"
    MIXED = "mixed"


# Historical spellings collapse to one canonical slot code.
SLOT_SYNONYMS: dict[str, str] = {
    "head": "helmet",
    "cape": "cloak",
    "neck": "necklace",
}

WEAPON_TYPES: frozenset[str] = frozenset(
    {"gs", "lb", "xb", "sns", "dagger", "spear", "staff", "wand", "orb"}
)
ARMOR_SLOTS: frozenset[str] = frozenset({"helmet", "chest", "cloak", "gloves", "pants", "boots"})
ACCESSORY_SLOTS: frozenset[str] = frozenset({"ring", "necklace", "earring", "bracelet", "belt"})


def normalize_slot(slot: str | None) -> str:
    """Lower-case, trim and resolve synonyms. Empty input stays empty."""
    value = (slot or "").strip().lower()
    return SLOT_SYNONYMS.get(value, value)


def normalize_name_key(name: str | None) -> str:
    """Key under which entry names are unique within a ballot."""
    return (name or "").strip().lower()


class VoteKey(BaseModel):
    """Identity of a vote: one user, one entry, one ballot, one context."""

    model_config = ConfigDict(frozen=True)

    ballot_id: RowId
    entry_id: RowId
    user_id: DiscordSnowflake
    voting_context: VotingContext

    def __str__(self) -> str:
        return f"{self.ballot_id}:{self.entry_id}:{self.user_id}:{self.voting_context.value}"

    @classmethod
    def parse(cls, value: str) -> VoteKey:
        """Inverse of ``str(key)``; used to round-trip keys through UI component values."""
        ballot_id, entry_id, user_id, context = value.split(":")
        return cls(
            ballot_id=int(ballot_id),
            entry_id=int(entry_id),
            user_id=int(user_id),
            voting_context=VotingContext(context),
        )


def parse_category(value: ItemCategory | str) -> ItemCategory:
    """Coerce user input to a category, raising a domain ValidationError."""
    try:
        return ItemCategory(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            ErrorMessages.UNKNOWN_CATEGORY.format(choices=", ".join(c.value for c in ItemCategory)),
            field="category",
        ) from None


def parse_voting_context(value: VotingContext | str) -> VotingContext:
    """Coerce user input to a voting context, raising a domain ValidationError."""
    try:
        return VotingContext(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            ErrorMessages.UNKNOWN_VOTING_CONTEXT.format(
                choices=", ".join(c.value for c in VotingContext)
            ),
            field="context",
        ) from None
