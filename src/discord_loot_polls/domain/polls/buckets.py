"""
Bucket Classifier

Maps an entry's ``(category, slot)`` to the capacity-limited bucket a vote
counts against. The rules live in a declarative table so rule revisions are
data, not code.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from discord_loot_polls.domain.polls.value_objects import (
    ACCESSORY_SLOTS,
    ARMOR_SLOTS,
    WEAPON_TYPES,
    ItemCategory,
    normalize_slot,
)
from discord_loot_polls.domain.shared.types import NonEmptyStr, PositiveInt

WEAPONS_BUCKET = "weapons"


class RuleRevision(StrEnum):
    """Historical vote-limit revisions. They differ in which accessory slot pairs."""

    CURRENT = "current"  # two earrings
    ALTERNATE = "alternate"  # two rings


class Bucket(BaseModel):
    """A capacity-limited grouping of votes."""

    model_config = ConfigDict(frozen=True)

    key: NonEmptyStr
    capacity: PositiveInt


class BucketRule(BaseModel):
    """One row of the rule table.

    ``slot`` is ``None`` for a category-wide rule (weapons); otherwise the rule
    applies to exactly that normalized slot. ``bucket_key`` defaults to the slot.
    """

    model_config = ConfigDict(frozen=True)

    category: ItemCategory
    slot: str | None = None
    bucket_key: str | None = None
    capacity: PositiveInt = 1

    def matches(self, category: ItemCategory, slot: str) -> bool:
        return self.category == category and (self.slot is None or self.slot == slot)

    def to_bucket(self, slot: str) -> Bucket:
        return Bucket(key=self.bucket_key or self.slot or slot, capacity=self.capacity)


class BucketRuleSet(BaseModel):
    """Ordered rule table plus the fail-safe default for unknown slots."""

    model_config = ConfigDict(frozen=True)

    revision: RuleRevision = RuleRevision.CURRENT
    rules: tuple[BucketRule, ...] = Field(default_factory=tuple)
    strict_weapon_types: bool = False
    weapon_type_capacity: PositiveInt = 1

    @classmethod
    def for_revision(
        cls, revision: RuleRevision = RuleRevision.CURRENT, *, strict_weapon_types: bool = False
    ) -> BucketRuleSet:
        paired_slot = "earring" if revision == RuleRevision.CURRENT else "ring"
        rules: list[BucketRule] = [
            BucketRule(category=ItemCategory.WEAPON, bucket_key=WEAPONS_BUCKET, capacity=2),
        ]
        rules += [
            BucketRule(category=ItemCategory.ARMOR, slot=slot, capacity=1)
            for slot in sorted(ARMOR_SLOTS)
        ]
        rules += [
            BucketRule(
                category=ItemCategory.ACCESSORY,
                slot=slot,
                capacity=2 if slot == paired_slot else 1,
            )
            for slot in sorted(ACCESSORY_SLOTS)
        ]
        return cls(
            revision=revision, rules=tuple(rules), strict_weapon_types=strict_weapon_types
        )

    def classify(self, category: ItemCategory | str, slot: str | None) -> Bucket:
        """Return the bucket for an entry. Total: every entry gets one bucket."""
        category = ItemCategory(category)
        slot = normalize_slot(slot)

        for rule in self.rules:
            if rule.matches(category, slot):
                return rule.to_bucket(slot)

        # Unknown slots never become unlimited.
        return Bucket(key=f"{category.value}:{slot or 'unslotted'}", capacity=1)

    def weapon_type_bucket(self, category: ItemCategory | str, slot: str | None) -> Bucket | None:
        """Secondary per-sub-type bucket enforced by the strict weapon rule."""
        if not self.strict_weapon_types or ItemCategory(category) != ItemCategory.WEAPON:
            return None
        slot = normalize_slot(slot)
        if slot not in WEAPON_TYPES:
            return None
        return Bucket(key=f"{WEAPONS_BUCKET}:{slot}", capacity=self.weapon_type_capacity)


DEFAULT_RULES = BucketRuleSet.for_revision()


def classify(category: ItemCategory | str, slot: str | None) -> Bucket:
    """Classify with the default rule table."""
    return DEFAULT_RULES.classify(category, slot)
