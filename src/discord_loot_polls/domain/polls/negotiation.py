"""
Replacement Negotiation

Short-lived state machine offered to a user whose candidate vote was denied:
they either pick one of the bucket's occupants to evict, or cancel. The
machine holds no I/O; the application layer drives the store calls between
``begin_swap`` and ``complete_swap``.
"""

from __future__ import annotations

from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from discord_loot_polls.domain.polls.buckets import Bucket
from discord_loot_polls.domain.polls.eligibility import Allowed, Denied, Eligibility
from discord_loot_polls.domain.polls.entities import Entry, HeldVote
from discord_loot_polls.domain.polls.value_objects import VoteKey, VotingContext
from discord_loot_polls.domain.shared.datetime_utils import utcnow
from discord_loot_polls.domain.shared.exceptions import InvalidOperationError, ValidationError
from discord_loot_polls.domain.shared.messages import ErrorMessages
from discord_loot_polls.domain.shared.types import (
    DiscordSnowflake,
    DisplayNameStr,
    NonEmptyStr,
    RowId,
    UtcDatetimeField,
)


class NegotiationState(StrEnum):
    OFFERED = "offered"
    SWAPPING = "swapping"  # eviction in flight; not user-visible
    SWAPPED = "swapped"
    SWAP_FAILED = "swap_failed"
    WITHDRAWN = "withdrawn"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {
            NegotiationState.SWAPPED,
            NegotiationState.SWAP_FAILED,
            NegotiationState.WITHDRAWN,
            NegotiationState.CANCELLED,
        }


class SwapOutcome(StrEnum):
    SWAPPED = "swapped"
    RACE_LOST = "race_lost"
    CANDIDATE_UNAVAILABLE = "candidate_unavailable"
    CANCELLED = "cancelled"


class SwapResult(BaseModel):
    """Terminal result of a negotiation, handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    outcome: SwapOutcome
    reason: str | None = None
    evicted: HeldVote | None = None
    candidate: Entry | None = None


class ReplacementNegotiation(BaseModel):
    """One user's pending choice after a denied vote."""

    id: NonEmptyStr = Field(default_factory=lambda: uuid4().hex)
    guild_id: DiscordSnowflake
    user_id: DiscordSnowflake
    user_name: DisplayNameStr = ""
    ballot_id: RowId
    candidate: Entry
    context: VotingContext
    bucket: Bucket
    occupants: tuple[HeldVote, ...]
    opened_at: UtcDatetimeField = Field(default_factory=utcnow)

    _state: NegotiationState = PrivateAttr(default=NegotiationState.OFFERED)
    _evicted: HeldVote | None = PrivateAttr(default=None)
    _result: SwapResult | None = PrivateAttr(default=None)

    @classmethod
    def offer(
        cls,
        denial: Denied,
        *,
        guild_id: int,
        user_id: int,
        user_name: str,
        ballot_id: int,
        candidate: Entry,
        context: VotingContext,
    ) -> ReplacementNegotiation:
        return cls(
            guild_id=guild_id,
            user_id=user_id,
            user_name=user_name,
            ballot_id=ballot_id,
            candidate=candidate,
            context=context,
            bucket=denial.bucket,
            occupants=denial.occupants,
        )

    @property
    def state(self) -> NegotiationState:
        return self._state

    @property
    def result(self) -> SwapResult | None:
        return self._result

    @property
    def is_resolved(self) -> bool:
        return self._state.is_terminal

    @property
    def candidate_key(self) -> VoteKey:
        return VoteKey(
            ballot_id=self.ballot_id,
            entry_id=self.candidate.id,
            user_id=self.user_id,
            voting_context=self.context,
        )

    def find_occupant(self, key: VoteKey) -> HeldVote | None:
        return next((held for held in self.occupants if held.key == key), None)

    def begin_swap(self, key: VoteKey) -> HeldVote:
        """Move to SWAPPING and return the occupant the user chose to evict."""
        self._require_state(NegotiationState.OFFERED, "swap")
        occupant = self.find_occupant(key)
        if occupant is None:
            raise ValidationError(ErrorMessages.NOT_AN_OFFERED_OCCUPANT, field="chosen")
        self._state = NegotiationState.SWAPPING
        self._evicted = occupant
        return occupant

    def abort_swap(self) -> None:
        """Return to OFFERED when the eviction never reached the store."""
        self._require_state(NegotiationState.SWAPPING, "abort_swap")
        self._state = NegotiationState.OFFERED
        self._evicted = None

    def complete_swap(self, recheck: Eligibility) -> SwapResult:
        """Finish a swap given the post-eviction re-check of the candidate."""
        self._require_state(NegotiationState.SWAPPING, "complete_swap")
        if isinstance(recheck, Allowed):
            return self._finish(
                NegotiationState.SWAPPED,
                SwapResult(
                    ok=True,
                    outcome=SwapOutcome.SWAPPED,
                    evicted=self._evicted,
                    candidate=self.candidate,
                ),
            )
        return self.fail_swap(
            ErrorMessages.BUCKET_FULL_AGAIN.format(
                bucket=recheck.bucket.key,
                count=len(recheck.occupants),
                capacity=recheck.bucket.capacity,
            )
        )

    def fail_swap(
        self, reason: str, outcome: SwapOutcome = SwapOutcome.RACE_LOST
    ) -> SwapResult:
        """The eviction happened but the candidate could not be placed."""
        self._require_state(NegotiationState.SWAPPING, "fail_swap")
        return self._finish(
            NegotiationState.SWAP_FAILED,
            SwapResult(
                ok=False,
                outcome=outcome,
                reason=reason,
                evicted=self._evicted,
                candidate=self.candidate,
            ),
        )

    def withdraw(self, reason: str) -> SwapResult:
        """End the offer before eviction because the candidate can no longer be voted on."""
        self._require_state(NegotiationState.SWAPPING, "withdraw")
        self._evicted = None
        return self._finish(
            NegotiationState.WITHDRAWN,
            SwapResult(
                ok=False,
                outcome=SwapOutcome.CANDIDATE_UNAVAILABLE,
                reason=reason,
                candidate=self.candidate,
            ),
        )

    def cancel(self) -> SwapResult:
        self._require_state(NegotiationState.OFFERED, "cancel")
        return self._finish(
            NegotiationState.CANCELLED,
            SwapResult(ok=False, outcome=SwapOutcome.CANCELLED, candidate=self.candidate),
        )

    def _finish(self, state: NegotiationState, result: SwapResult) -> SwapResult:
        self._state = state
        self._result = result
        return result

    def _require_state(self, expected: NegotiationState, operation: str) -> None:
        if self._state != expected:
            raise InvalidOperationError(operation, self._state.value)
