"""Command and handler for the user's answer to a replacement offer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from discord_loot_polls.domain.polls.eligibility import Allowed, Denied
from discord_loot_polls.domain.polls.entities import Vote
from discord_loot_polls.domain.polls.negotiation import SwapOutcome, SwapResult
from discord_loot_polls.domain.polls.value_objects import VoteKey
from discord_loot_polls.domain.shared.exceptions import (
    EntityNotFoundError,
    RaceLostError,
    StoreUnavailableError,
    ValidationError,
)
from discord_loot_polls.domain.shared.messages import ErrorMessages, LogTemplates
from discord_loot_polls.domain.shared.types import DiscordSnowflake, NonEmptyStr

from ..services.vote_commit import SwapVotes

if TYPE_CHECKING:
    from ...domain.polls.eligibility import EligibilityEvaluator
    from ...domain.polls.negotiation import ReplacementNegotiation
    from ...domain.polls.repository import BallotStore
    from ..services.bucket_locks import BucketLockRegistry
    from ..services.negotiation_registry import NegotiationRegistry
    from ..services.vote_commit import VoteCommitService

logger = logging.getLogger(__name__)


class ResolveReplacementCommand(BaseModel):
    """``chosen`` is the occupant to evict; ``None`` cancels the offer."""

    model_config = ConfigDict(frozen=True)

    negotiation_id: NonEmptyStr
    user_id: DiscordSnowflake
    chosen: VoteKey | None = None


class ResolveReplacementHandler:
    def __init__(
        self,
        *,
        store: BallotStore,
        evaluator: EligibilityEvaluator,
        commit: VoteCommitService,
        locks: BucketLockRegistry,
        negotiations: NegotiationRegistry,
    ) -> None:
        self._store = store
        self._evaluator = evaluator
        self._commit = commit
        self._locks = locks
        self._negotiations = negotiations

    async def handle(self, command: ResolveReplacementCommand) -> SwapResult:
        negotiation = self._negotiations.get(command.negotiation_id)
        if negotiation.user_id != command.user_id:
            raise ValidationError(ErrorMessages.NEGOTIATION_NOT_OWNED, field="user_id")

        if command.chosen is None:
            result = negotiation.cancel()
            self._negotiations.release(negotiation.id)
            logger.info(LogTemplates.NEGOTIATION_CANCELLED, negotiation.id)
            return result

        occupant = negotiation.begin_swap(command.chosen)
        keys = [
            *self._evaluator.bucket_keys_for(negotiation.candidate),
            *self._evaluator.bucket_keys_for(occupant.entry),
        ]
        evicted = False
        unavailable: str | None = None

        async def recheck() -> None:
            nonlocal evicted
            evicted = True
            reason = await self._candidate_unavailable(negotiation)
            if reason is not None:
                raise EntityNotFoundError("Entry", negotiation.candidate.id, reason)
            snapshot = await self._store.list_open_votes_for_user(
                negotiation.guild_id, negotiation.user_id, negotiation.context
            )
            eligibility = self._evaluator.evaluate(
                snapshot, negotiation.candidate, negotiation.context
            )
            if isinstance(eligibility, Denied):
                raise RaceLostError(eligibility.bucket, eligibility.occupants)

        try:
            async with self._locks.hold(negotiation.guild_id, negotiation.context, keys):
                unavailable = await self._candidate_unavailable(negotiation)
                if unavailable is None:
                    await self._commit.apply(
                        SwapVotes(remove=occupant.key, add=self._candidate_vote(negotiation)),
                        before_add=recheck,
                    )
        except RaceLostError as e:
            result = negotiation.fail_swap(e.message)
            self._negotiations.release(negotiation.id)
            logger.warning(
                LogTemplates.NEGOTIATION_RACE_LOST, negotiation.id, e.bucket.key, occupant.key
            )
            return result
        except EntityNotFoundError as e:
            if evicted:
                result = negotiation.fail_swap(
                    e.message, outcome=SwapOutcome.CANDIDATE_UNAVAILABLE
                )
            else:
                result = negotiation.withdraw(e.message)
            self._negotiations.release(negotiation.id)
            logger.info(LogTemplates.NEGOTIATION_WITHDRAWN, negotiation.id, e.message)
            return result
        except StoreUnavailableError as e:
            if evicted:
                negotiation.fail_swap(e.message)
                self._negotiations.release(negotiation.id)
            else:
                negotiation.abort_swap()
            raise

        if unavailable is not None:
            result = negotiation.withdraw(unavailable)
            self._negotiations.release(negotiation.id)
            logger.info(LogTemplates.NEGOTIATION_WITHDRAWN, negotiation.id, unavailable)
            return result

        result = negotiation.complete_swap(Allowed(bucket=negotiation.bucket))
        self._negotiations.release(negotiation.id)
        logger.info(
            LogTemplates.NEGOTIATION_SWAPPED,
            negotiation.id,
            occupant.key,
            negotiation.candidate.id,
        )
        return result

    async def _candidate_unavailable(self, negotiation: ReplacementNegotiation) -> str | None:
        """Why the candidate can no longer be voted on, or ``None`` if it still can."""
        ballot = await self._store.get_ballot(negotiation.ballot_id)
        if ballot is not None and (not ballot.is_open or ballot.is_expired()):
            return ErrorMessages.CANDIDATE_BALLOT_CLOSED.format(ballot_id=ballot.id)

        entry = await self._store.get_entry(negotiation.candidate.id)
        if ballot is None or entry is None or entry.ballot_id != ballot.id:
            return ErrorMessages.CANDIDATE_UNAVAILABLE.format(
                entry_id=negotiation.candidate.id, ballot_id=negotiation.ballot_id
            )
        return None

    @staticmethod
    def _candidate_vote(negotiation: ReplacementNegotiation) -> Vote:
        return Vote(
            ballot_id=negotiation.ballot_id,
            entry_id=negotiation.candidate.id,
            user_id=negotiation.user_id,
            user_display_name=negotiation.user_name,
            voting_context=negotiation.context,
        )
