"""
Eligibility Evaluator

Decides whether a candidate vote fits the user's buckets, given a read-only
snapshot of the votes that user already holds.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict

from discord_loot_polls.domain.polls.buckets import DEFAULT_RULES, Bucket, BucketRuleSet
from discord_loot_polls.domain.polls.entities import Entry, HeldVote
from discord_loot_polls.domain.polls.value_objects import VotingContext
from discord_loot_polls.domain.shared.exceptions import CapacityExceededError


class Allowed(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: Literal[True] = True
    bucket: Bucket


class Denied(BaseModel):
    """The candidate's bucket is full; ``occupants`` are the votes filling it."""

    model_config = ConfigDict(frozen=True)

    allowed: Literal[False] = False
    bucket: Bucket
    occupants: tuple[HeldVote, ...]

    @property
    def bucket_key(self) -> str:
        return self.bucket.key

    @property
    def capacity(self) -> int:
        return self.bucket.capacity

    def to_error(self) -> CapacityExceededError:
        return CapacityExceededError(self.bucket, self.occupants)


Eligibility = Allowed | Denied


class EligibilityEvaluator:
    """Pure bucket-occupancy check.

    The snapshot is expected to be pre-filtered by the store to one guild, one
    voting context and open ballots only. Votes that slip through with another
    context or a closed ballot are ignored rather than counted.
    """

    def __init__(self, rules: BucketRuleSet | None = None) -> None:
        self._rules = rules or DEFAULT_RULES

    @property
    def rules(self) -> BucketRuleSet:
        return self._rules

    def bucket_for(self, entry: Entry) -> Bucket:
        return self._rules.classify(entry.category, entry.slot)

    def bucket_keys_for(self, entry: Entry) -> list[str]:
        """Keys of every bucket a vote for ``entry`` counts against."""
        keys = [self.bucket_for(entry).key]
        type_bucket = self._rules.weapon_type_bucket(entry.category, entry.slot)
        if type_bucket is not None:
            keys.append(type_bucket.key)
        return keys

    def occupants(
        self, existing_votes: Iterable[HeldVote], bucket: Bucket, context: VotingContext
    ) -> tuple[HeldVote, ...]:
        """Votes in ``existing_votes`` that count against ``bucket``."""
        return tuple(
            held
            for held in existing_votes
            if held.vote.voting_context == context
            and held.ballot_is_open
            and self._counts_against(held.entry, bucket)
        )

    def evaluate(
        self,
        existing_votes: Iterable[HeldVote],
        candidate: Entry,
        context: VotingContext,
    ) -> Eligibility:
        """Return Allowed, or Denied with the occupants of the full bucket.

        Re-submitting an already-held vote is not special-cased here; callers
        filter exact duplicates before evaluating.
        """
        snapshot = tuple(existing_votes)

        # Type bucket first; its occupants are a subset of the main bucket.
        type_bucket = self._rules.weapon_type_bucket(candidate.category, candidate.slot)
        if type_bucket is not None:
            same_type = self.occupants(snapshot, type_bucket, context)
            if len(same_type) >= type_bucket.capacity:
                return Denied(bucket=type_bucket, occupants=same_type)

        bucket = self.bucket_for(candidate)
        occupants = self.occupants(snapshot, bucket, context)
        if len(occupants) >= bucket.capacity:
            return Denied(bucket=bucket, occupants=occupants)

        return Allowed(bucket=bucket)

    def ensure_allowed(
        self,
        existing_votes: Iterable[HeldVote],
        candidate: Entry,
        context: VotingContext,
    ) -> Bucket:
        """Like :meth:`evaluate` but raises :class:`CapacityExceededError` on denial."""
        result = self.evaluate(existing_votes, candidate, context)
        if isinstance(result, Denied):
            raise result.to_error()
        return result.bucket

    def _counts_against(self, entry: Entry, bucket: Bucket) -> bool:
        if self.bucket_for(entry).key == bucket.key:
            return True
        type_bucket = self._rules.weapon_type_bucket(entry.category, entry.slot)
        return type_bucket is not None and type_bucket.key == bucket.key
