"""Command and handler for casting a vote on a ballot entry."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from discord_loot_polls.domain.polls.eligibility import Denied
from discord_loot_polls.domain.polls.entities import Ballot, Entry, Vote
from discord_loot_polls.domain.polls.negotiation import ReplacementNegotiation
from discord_loot_polls.domain.polls.value_objects import VotingContext
from discord_loot_polls.domain.shared.exceptions import CapacityExceededError, EntityNotFoundError
from discord_loot_polls.domain.shared.messages import ErrorMessages, LogTemplates
from discord_loot_polls.domain.shared.types import DiscordSnowflake, DisplayNameStr, RowId

from ..services.vote_commit import AddVote, CommitStatus

if TYPE_CHECKING:
    from ...domain.polls.eligibility import EligibilityEvaluator
    from ...domain.polls.repository import BallotStore
    from ..services.bucket_locks import BucketLockRegistry
    from ..services.negotiation_registry import NegotiationRegistry
    from ..services.vote_commit import VoteCommitService

logger = logging.getLogger(__name__)


class VoteOutcome(Enum):
    RECORDED = "recorded"
    ALREADY_VOTED = "already_voted"
    BALLOT_CLOSED = "ballot_closed"
    REPLACEMENT_OFFERED = "replacement_offered"


class RequestVoteCommand(BaseModel):
    """A member's request to vote for one entry under one voting context."""

    model_config = ConfigDict(frozen=True)

    guild_id: DiscordSnowflake
    user_id: DiscordSnowflake
    user_name: DisplayNameStr = ""
    ballot_id: RowId
    entry_id: RowId
    context: VotingContext


class RequestVoteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: VoteOutcome
    entry: Entry | None = None
    vote: Vote | None = None
    denial: Denied | None = None
    negotiation: ReplacementNegotiation | None = None

    @property
    def negotiation_id(self) -> str | None:
        return self.negotiation.id if self.negotiation else None

    @property
    def is_recorded(self) -> bool:
        return self.outcome is VoteOutcome.RECORDED


class RequestVoteHandler:
    """Checks a vote request against the user's buckets and records it or opens a negotiation.

    Lookup failures raise :class:`EntityNotFoundError`; every other outcome,
    including a full bucket, is returned in the result.
    """

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

    async def handle(self, command: RequestVoteCommand) -> RequestVoteResult:
        ballot = await self._load_ballot(command)
        if not ballot.is_open or ballot.is_expired():
            return RequestVoteResult(outcome=VoteOutcome.BALLOT_CLOSED)

        entry = await self._store.get_entry(command.entry_id)
        if entry is None or entry.ballot_id != ballot.id:
            raise EntityNotFoundError(
                "Entry",
                command.entry_id,
                ErrorMessages.ENTRY_NOT_IN_BALLOT.format(
                    entry_id=command.entry_id, ballot_id=ballot.id
                ),
            )

        vote = Vote(
            ballot_id=ballot.id,
            entry_id=entry.id,
            user_id=command.user_id,
            user_display_name=command.user_name,
            voting_context=command.context,
        )
        if await self._store.vote_exists(vote.key):
            return RequestVoteResult(outcome=VoteOutcome.ALREADY_VOTED, entry=entry)

        keys = self._evaluator.bucket_keys_for(entry)
        async with self._locks.hold(command.guild_id, command.context, keys):
            snapshot = await self._store.list_open_votes_for_user(
                command.guild_id, command.user_id, command.context
            )
            try:
                self._evaluator.ensure_allowed(snapshot, entry, command.context)
            except CapacityExceededError as e:
                return self._offer_replacement(command, entry, e)

            committed = await self._commit.apply(AddVote(vote=vote))

        if committed.status is CommitStatus.DUPLICATE:
            return RequestVoteResult(outcome=VoteOutcome.ALREADY_VOTED, entry=entry)
        return RequestVoteResult(outcome=VoteOutcome.RECORDED, entry=entry, vote=vote)

    async def _load_ballot(self, command: RequestVoteCommand) -> Ballot:
        ballot = await self._store.get_ballot(command.ballot_id)
        if ballot is None:
            raise EntityNotFoundError("Ballot", command.ballot_id)
        if ballot.guild_id != command.guild_id:
            raise EntityNotFoundError(
                "Ballot",
                command.ballot_id,
                ErrorMessages.BALLOT_NOT_IN_GUILD.format(
                    ballot_id=command.ballot_id, guild_id=command.guild_id
                ),
            )
        return ballot

    def _offer_replacement(
        self, command: RequestVoteCommand, entry: Entry, error: CapacityExceededError
    ) -> RequestVoteResult:
        denial = Denied(bucket=error.bucket, occupants=error.occupants)
        logger.info(
            LogTemplates.VOTE_DENIED,
            command.user_id,
            denial.bucket_key,
            len(denial.occupants),
            denial.capacity,
        )
        negotiation = self._negotiations.register(
            ReplacementNegotiation.offer(
                denial,
                guild_id=command.guild_id,
                user_id=command.user_id,
                user_name=command.user_name,
                ballot_id=command.ballot_id,
                candidate=entry,
                context=command.context,
            )
        )
        return RequestVoteResult(
            outcome=VoteOutcome.REPLACEMENT_OFFERED,
            entry=entry,
            denial=denial,
            negotiation=negotiation,
        )
