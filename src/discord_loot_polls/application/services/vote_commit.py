"""Vote Commit - applies add / remove / swap decisions to the ballot store."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ...domain.polls.entities import Vote
from ...domain.polls.value_objects import VoteKey
from ...domain.shared.messages import LogTemplates
from ...domain.shared.types import NonNegativeInt

if TYPE_CHECKING:
    from ...domain.polls.repository import BallotStore

logger = logging.getLogger(__name__)


class AddVote(BaseModel):
    model_config = ConfigDict(frozen=True)

    vote: Vote


class RemoveVote(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: VoteKey


class SwapVotes(BaseModel):
    """Evict ``remove`` then place ``add``; the removal is durable first."""

    model_config = ConfigDict(frozen=True)

    remove: VoteKey
    add: Vote


VoteDecision = AddVote | RemoveVote | SwapVotes


class CommitStatus(StrEnum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    SWAPPED = "swapped"


class CommitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: CommitStatus
    added: NonNegativeInt = 0
    removed: NonNegativeInt = 0

    @property
    def ok(self) -> bool:
        return self.status in {CommitStatus.ADDED, CommitStatus.REMOVED, CommitStatus.SWAPPED}


class VoteCommitService:
    """Applies one decision as one logical operation.

    The store is not assumed to be transactional across calls, so a swap
    favors "slot vacated, new vote absent" over "both votes held".
    """

    def __init__(self, store: BallotStore) -> None:
        self._store = store

    async def apply(
        self,
        decision: VoteDecision,
        *,
        before_add: Callable[[], Awaitable[None]] | None = None,
    ) -> CommitResult:
        """Apply ``decision``.

        For a swap, ``before_add`` runs after the removal is durable and before
        the add; anything it raises propagates with the removal already applied.
        """
        match decision:
            case AddVote(vote=vote):
                return await self._add(vote)
            case RemoveVote(key=key):
                return await self._remove(key)
            case SwapVotes(remove=key, add=vote):
                return await self._swap(key, vote, before_add)
        raise TypeError(f"Unsupported vote decision: {type(decision).__name__}")

    async def _add(self, vote: Vote) -> CommitResult:
        if not await self._store.add_vote(vote):
            logger.debug(
                LogTemplates.VOTE_DUPLICATE,
                vote.user_id,
                vote.voting_context.value,
                vote.entry_id,
                vote.ballot_id,
            )
            return CommitResult(status=CommitStatus.DUPLICATE)
        return CommitResult(status=CommitStatus.ADDED, added=1)

    async def _remove(self, key: VoteKey) -> CommitResult:
        removed = await self._store.remove_vote(key)
        if not removed:
            return CommitResult(status=CommitStatus.NOT_FOUND)
        return CommitResult(status=CommitStatus.REMOVED, removed=removed)

    async def _swap(
        self,
        key: VoteKey,
        vote: Vote,
        before_add: Callable[[], Awaitable[None]] | None,
    ) -> CommitResult:
        removed = await self._store.remove_vote(key)
        if before_add is not None:
            await before_add()
        added = 1 if await self._store.add_vote(vote) else 0
        return CommitResult(status=CommitStatus.SWAPPED, added=added, removed=removed)
