"""
Polls Domain Repository Interfaces

Abstract base class defining the contract for ballot, entry and vote storage.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from discord_loot_polls.domain.polls.entities import Ballot, Entry, HeldVote, Vote
from discord_loot_polls.domain.polls.value_objects import (
    BallotType,
    ItemCategory,
    VoteKey,
    VotingContext,
)


class BallotStore(ABC):
    """Abstract store for ballots, entries and votes.

    Reads and writes are plain read-modify-write calls with no row locking;
    callers that need to keep buckets within capacity serialize their writes
    (see ``BucketLockRegistry``).
    """

    # === Engine-facing operations ===

    @abstractmethod
    async def list_open_votes_for_user(
        self, guild_id: int, user_id: int, context: VotingContext
    ) -> list[HeldVote]:
        """Return the user's votes in ``context`` across every open ballot of the guild.

        Each vote is joined with its entry and ballot name, ordered by cast time.
        """
        ...

    @abstractmethod
    async def vote_exists(self, key: VoteKey) -> bool:
        """Check whether a vote with exactly this identity exists."""
        ...

    @abstractmethod
    async def add_vote(self, vote: Vote) -> bool:
        """Insert a vote.

        Returns:
            False if a vote with the same identity already exists (nothing is
            written), True otherwise.
        """
        ...

    @abstractmethod
    async def remove_vote(self, key: VoteKey) -> int:
        """Delete the vote with this identity.

        Returns:
            Number of votes removed (0 or 1).
        """
        ...

    # === Minimal ballot lifecycle ===

    @abstractmethod
    async def create_ballot(
        self,
        *,
        guild_id: int,
        name: str,
        ballot_type: BallotType = BallotType.WORLD_BOSS,
        voting_context: VotingContext | None = None,
        expires_at: datetime | None = None,
    ) -> Ballot:
        """Create an open ballot and return it with its assigned id."""
        ...

    @abstractmethod
    async def get_ballot(self, ballot_id: int) -> Ballot | None:
        ...

    @abstractmethod
    async def get_entry(self, entry_id: int) -> Entry | None:
        ...

    @abstractmethod
    async def list_entries(self, ballot_id: int) -> list[Entry]:
        """Entries of a ballot sorted by name."""
        ...

    @abstractmethod
    async def upsert_entry(
        self, ballot_id: int, name: str, category: ItemCategory | str, slot: str = ""
    ) -> Entry:
        """Add an entry, or update category/slot in place if the name key exists."""
        ...

    @abstractmethod
    async def list_votes_for_entry(self, ballot_id: int, entry_id: int) -> list[Vote]:
        ...

    @abstractmethod
    async def close_ballot(self, ballot_id: int) -> bool:
        """Mark a ballot closed.

        Returns:
            True if an open ballot was closed.
        """
        ...

    @abstractmethod
    async def delete_ballot(self, ballot_id: int) -> bool:
        """Delete a ballot together with its entries and their votes."""
        ...

    @abstractmethod
    async def close_expired(self, now: datetime) -> list[int]:
        """Close every open ballot whose expiry is before ``now``.

        Returns:
            Ids of the ballots closed.
        """
        ...
