"""Command and handler for withdrawing a vote."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from discord_loot_polls.domain.polls.value_objects import VoteKey, VotingContext
from discord_loot_polls.domain.shared.exceptions import EntityNotFoundError
from discord_loot_polls.domain.shared.messages import ErrorMessages
from discord_loot_polls.domain.shared.types import DiscordSnowflake, NonNegativeInt, RowId

from ..services.vote_commit import RemoveVote

if TYPE_CHECKING:
    from ...domain.polls.eligibility import EligibilityEvaluator
    from ...domain.polls.repository import BallotStore
    from ..services.bucket_locks import BucketLockRegistry
    from ..services.vote_commit import VoteCommitService


class UnvoteOutcome(Enum):
    REMOVED = "removed"
    NOT_HELD = "not_held"


class RequestUnvoteCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    guild_id: DiscordSnowflake
    user_id: DiscordSnowflake
    ballot_id: RowId
    entry_id: RowId
    context: VotingContext

    @property
    def key(self) -> VoteKey:
        return VoteKey(
            ballot_id=self.ballot_id,
            entry_id=self.entry_id,
            user_id=self.user_id,
            voting_context=self.context,
        )


class RequestUnvoteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: UnvoteOutcome
    removed: NonNegativeInt = 0


class RequestUnvoteHandler:
    """Removes exactly the vote identified by the command; other contexts are untouched."""

    def __init__(
        self,
        *,
        store: BallotStore,
        evaluator: EligibilityEvaluator,
        commit: VoteCommitService,
        locks: BucketLockRegistry,
    ) -> None:
        self._store = store
        self._evaluator = evaluator
        self._commit = commit
        self._locks = locks

    async def handle(self, command: RequestUnvoteCommand) -> RequestUnvoteResult:
        ballot = await self._store.get_ballot(command.ballot_id)
        if ballot is None or ballot.guild_id != command.guild_id:
            raise EntityNotFoundError(
                "Ballot",
                command.ballot_id,
                ErrorMessages.BALLOT_NOT_IN_GUILD.format(
                    ballot_id=command.ballot_id, guild_id=command.guild_id
                )
                if ballot
                else None,
            )

        entry = await self._store.get_entry(command.entry_id)
        if entry is None or entry.ballot_id != ballot.id:
            raise EntityNotFoundError(
                "Entry",
                command.entry_id,
                ErrorMessages.ENTRY_NOT_IN_BALLOT.format(
                    entry_id=command.entry_id, ballot_id=ballot.id
                ),
            )

        keys = self._evaluator.bucket_keys_for(entry)
        async with self._locks.hold(command.guild_id, command.context, keys):
            committed = await self._commit.apply(RemoveVote(key=command.key))

        if not committed.removed:
            return RequestUnvoteResult(outcome=UnvoteOutcome.NOT_HELD)
        return RequestUnvoteResult(outcome=UnvoteOutcome.REMOVED, removed=committed.removed)
