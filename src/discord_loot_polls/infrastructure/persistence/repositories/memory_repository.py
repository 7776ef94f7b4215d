"""In-memory implementation of the ballot store.

Mirrors the SQLite store's semantics (cascade deletes, duplicate-free votes,
upsert by name key) without persistence. Used for tests and ephemeral
deployments.
"""

from __future__ import annotations

import logging
from datetime import datetime
from itertools import count

from discord_loot_polls.domain.polls.entities import Ballot, Entry, HeldVote, Vote
from discord_loot_polls.domain.polls.repository import BallotStore
from discord_loot_polls.domain.polls.value_objects import (
    BallotType,
    ItemCategory,
    VoteKey,
    VotingContext,
    normalize_name_key,
    normalize_slot,
    parse_category,
)
from discord_loot_polls.domain.shared.exceptions import EntityNotFoundError, ValidationError
from discord_loot_polls.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)


class InMemoryBallotStore(BallotStore):
    def __init__(self) -> None:
        self._ballots: dict[int, Ballot] = {}
        self._entries: dict[int, Entry] = {}
        # Insertion order doubles as cast order.
        self._votes: dict[VoteKey, Vote] = {}
        self._ballot_ids = count(1)
        self._entry_ids = count(1)

    async def list_open_votes_for_user(
        self, guild_id: int, user_id: int, context: VotingContext
    ) -> list[HeldVote]:
        held: list[HeldVote] = []
        for key, vote in self._votes.items():
            if key.user_id != user_id or key.voting_context != context:
                continue
            ballot = self._ballots.get(key.ballot_id)
            entry = self._entries.get(key.entry_id)
            if ballot is None or entry is None:
                continue
            if ballot.guild_id != guild_id or not ballot.is_open:
                continue
            held.append(HeldVote(vote=vote, entry=entry, ballot_name=ballot.name))
        return held

    async def vote_exists(self, key: VoteKey) -> bool:
        return key in self._votes

    async def add_vote(self, vote: Vote) -> bool:
        entry = self._entries.get(vote.entry_id)
        if (
            entry is None
            or entry.ballot_id != vote.ballot_id
            or vote.ballot_id not in self._ballots
        ):
            raise EntityNotFoundError(
                "Entry",
                vote.entry_id,
                ErrorMessages.ENTRY_NOT_IN_BALLOT.format(
                    entry_id=vote.entry_id, ballot_id=vote.ballot_id
                ),
            )
        if vote.key in self._votes:
            return False
        self._votes[vote.key] = vote
        logger.debug(
            LogTemplates.VOTE_ADDED,
            vote.user_id,
            vote.entry_id,
            vote.ballot_id,
            vote.voting_context.value,
        )
        return True

    async def remove_vote(self, key: VoteKey) -> int:
        removed = 1 if self._votes.pop(key, None) is not None else 0
        logger.debug(
            LogTemplates.VOTE_REMOVED,
            removed,
            key.user_id,
            key.entry_id,
            key.ballot_id,
            key.voting_context.value,
        )
        return removed

    async def create_ballot(
        self,
        *,
        guild_id: int,
        name: str,
        ballot_type: BallotType = BallotType.WORLD_BOSS,
        voting_context: VotingContext | None = None,
        expires_at: datetime | None = None,
    ) -> Ballot:
        ballot = Ballot(
            id=next(self._ballot_ids),
            guild_id=guild_id,
            name=name,
            expires_at=expires_at,
            ballot_type=ballot_type,
            voting_context=voting_context,
        )
        self._ballots[ballot.id] = ballot
        logger.info(LogTemplates.BALLOT_CREATED, ballot.id, ballot.name, guild_id)
        return ballot

    async def get_ballot(self, ballot_id: int) -> Ballot | None:
        return self._ballots.get(ballot_id)

    async def get_entry(self, entry_id: int) -> Entry | None:
        return self._entries.get(entry_id)

    async def list_entries(self, ballot_id: int) -> list[Entry]:
        entries = [e for e in self._entries.values() if e.ballot_id == ballot_id]
        return sorted(entries, key=lambda e: e.name_key)

    async def upsert_entry(
        self, ballot_id: int, name: str, category: ItemCategory | str, slot: str = ""
    ) -> Entry:
        name = (name or "").strip()
        if not name:
            raise ValidationError(ErrorMessages.EMPTY_ENTRY_NAME, field="name")
        if ballot_id not in self._ballots:
            raise EntityNotFoundError("Ballot", ballot_id)

        name_key = normalize_name_key(name)
        existing = next(
            (
                e
                for e in self._entries.values()
                if e.ballot_id == ballot_id and e.name_key == name_key
            ),
            None,
        )
        entry = Entry(
            id=existing.id if existing else next(self._entry_ids),
            ballot_id=ballot_id,
            name=name,
            name_key=name_key,
            category=parse_category(category),
            slot=normalize_slot(slot),
        )
        self._entries[entry.id] = entry
        logger.debug(LogTemplates.ENTRY_UPSERTED, entry.id, name, ballot_id)
        return entry

    async def list_votes_for_entry(self, ballot_id: int, entry_id: int) -> list[Vote]:
        return [
            vote
            for key, vote in self._votes.items()
            if key.ballot_id == ballot_id and key.entry_id == entry_id
        ]

    async def close_ballot(self, ballot_id: int) -> bool:
        ballot = self._ballots.get(ballot_id)
        if ballot is None or not ballot.is_open:
            return False
        self._ballots[ballot_id] = ballot.model_copy(update={"is_open": False})
        logger.info(LogTemplates.BALLOT_CLOSED, ballot_id)
        return True

    async def delete_ballot(self, ballot_id: int) -> bool:
        if self._ballots.pop(ballot_id, None) is None:
            return False

        entry_ids = {eid for eid, e in self._entries.items() if e.ballot_id == ballot_id}
        for eid in entry_ids:
            del self._entries[eid]

        doomed = [
            key
            for key in self._votes
            if key.ballot_id == ballot_id or key.entry_id in entry_ids
        ]
        for key in doomed:
            del self._votes[key]

        logger.info(LogTemplates.BALLOT_DELETED, ballot_id, len(entry_ids), len(doomed))
        return True

    async def close_expired(self, now: datetime) -> list[int]:
        expired = [
            ballot.id
            for ballot in self._ballots.values()
            if ballot.is_open and ballot.is_expired(now)
        ]
        for ballot_id in expired:
            self._ballots[ballot_id] = self._ballots[ballot_id].model_copy(
                update={"is_open": False}
            )
        return expired
