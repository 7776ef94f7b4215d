"""SQLite implementation of the ballot store."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

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
from discord_loot_polls.domain.shared.datetime_utils import UtcDateTime
from discord_loot_polls.domain.shared.exceptions import EntityNotFoundError, ValidationError
from discord_loot_polls.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)

_HELD_VOTE_SELECT = """
    SELECT v.ballot_id, v.entry_id, v.user_id, v.user_display_name, v.voting_context,
           v.cast_at, e.name AS entry_name, e.name_key, e.category, e.slot,
           b.name AS ballot_name, b.is_open
    FROM votes v
    JOIN entries e ON e.id = v.entry_id
    JOIN ballots b ON b.id = v.ballot_id
"""


def _ballot_from_row(row: dict[str, Any]) -> Ballot:
    return Ballot(
        id=row["id"],
        guild_id=row["guild_id"],
        name=row["name"],
        is_open=bool(row["is_open"]),
        expires_at=UtcDateTime.from_iso(row["expires_at"]).dt if row["expires_at"] else None,
        ballot_type=BallotType(row["ballot_type"]),
        voting_context=VotingContext(row["voting_context"]) if row["voting_context"] else None,
        created_at=UtcDateTime.from_iso(row["created_at"]).dt,
    )


def _entry_from_row(row: dict[str, Any]) -> Entry:
    return Entry(
        id=row["id"],
        ballot_id=row["ballot_id"],
        name=row["name"],
        name_key=row["name_key"],
        category=row["category"],
        slot=row["slot"],
    )


def _vote_from_row(row: dict[str, Any]) -> Vote:
    return Vote(
        ballot_id=row["ballot_id"],
        entry_id=row["entry_id"],
        user_id=row["user_id"],
        user_display_name=row["user_display_name"],
        voting_context=VotingContext(row["voting_context"]),
        cast_at=UtcDateTime.from_iso(row["cast_at"]).dt,
    )


def _held_vote_from_row(row: dict[str, Any]) -> HeldVote:
    entry = Entry(
        id=row["entry_id"],
        ballot_id=row["ballot_id"],
        name=row["entry_name"],
        name_key=row["name_key"],
        category=row["category"],
        slot=row["slot"],
    )
    return HeldVote(
        vote=_vote_from_row(row),
        entry=entry,
        ballot_name=row["ballot_name"],
        ballot_is_open=bool(row["is_open"]),
    )


class SQLiteBallotStore(BallotStore):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_open_votes_for_user(
        self, guild_id: int, user_id: int, context: VotingContext
    ) -> list[HeldVote]:
        rows = await self._db.fetch_all(
            _HELD_VOTE_SELECT
            + """
            WHERE b.guild_id = ? AND v.user_id = ? AND v.voting_context = ?
            AND b.is_open = 1
            ORDER BY v.cast_at, v.rowid
            """,
            (guild_id, user_id, context.value),
        )
        return [_held_vote_from_row(row) for row in rows]

    async def vote_exists(self, key: VoteKey) -> bool:
        row = await self._db.fetch_one(
            """
            SELECT 1 FROM votes
            WHERE ballot_id = ? AND entry_id = ? AND user_id = ? AND voting_context = ?
            """,
            (key.ballot_id, key.entry_id, key.user_id, key.voting_context.value),
        )
        return row is not None

    async def add_vote(self, vote: Vote) -> bool:
        async with self._db.transaction() as conn:
            # Checked in the insert's transaction; a deleted entry must not reach the FK.
            cursor = await conn.execute(
                "SELECT 1 FROM entries WHERE id = ? AND ballot_id = ?",
                (vote.entry_id, vote.ballot_id),
            )
            if await cursor.fetchone() is None:
                raise EntityNotFoundError(
                    "Entry",
                    vote.entry_id,
                    ErrorMessages.ENTRY_NOT_IN_BALLOT.format(
                        entry_id=vote.entry_id, ballot_id=vote.ballot_id
                    ),
                )

            cursor = await conn.execute(
                """
                INSERT OR IGNORE INTO votes
                    (ballot_id, entry_id, user_id, user_display_name, voting_context, cast_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    vote.ballot_id,
                    vote.entry_id,
                    vote.user_id,
                    vote.user_display_name,
                    vote.voting_context.value,
                    UtcDateTime(vote.cast_at).iso,
                ),
            )
            inserted = cursor.rowcount
        if inserted:
            logger.debug(
                LogTemplates.VOTE_ADDED,
                vote.user_id,
                vote.entry_id,
                vote.ballot_id,
                vote.voting_context.value,
            )
        return inserted > 0

    async def remove_vote(self, key: VoteKey) -> int:
        removed = await self._db.execute(
            """
            DELETE FROM votes
            WHERE ballot_id = ? AND entry_id = ? AND user_id = ? AND voting_context = ?
            """,
            (key.ballot_id, key.entry_id, key.user_id, key.voting_context.value),
        )
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
        now = UtcDateTime.now()
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO ballots
                    (guild_id, name, is_open, expires_at, ballot_type, voting_context, created_at)
                VALUES (?, ?, 1, ?, ?, ?, ?)
                """,
                (
                    guild_id,
                    name,
                    UtcDateTime(expires_at).iso if expires_at else None,
                    BallotType(ballot_type).value,
                    voting_context.value if voting_context else None,
                    now.iso,
                ),
            )
            ballot_id = cursor.lastrowid

        ballot = Ballot(
            id=ballot_id,
            guild_id=guild_id,
            name=name,
            expires_at=expires_at,
            ballot_type=ballot_type,
            voting_context=voting_context,
            created_at=now.dt,
        )
        logger.info(LogTemplates.BALLOT_CREATED, ballot.id, ballot.name, guild_id)
        return ballot

    async def get_ballot(self, ballot_id: int) -> Ballot | None:
        row = await self._db.fetch_one("SELECT * FROM ballots WHERE id = ?", (ballot_id,))
        return _ballot_from_row(row) if row else None

    async def get_entry(self, entry_id: int) -> Entry | None:
        row = await self._db.fetch_one("SELECT * FROM entries WHERE id = ?", (entry_id,))
        return _entry_from_row(row) if row else None

    async def list_entries(self, ballot_id: int) -> list[Entry]:
        rows = await self._db.fetch_all(
            "SELECT * FROM entries WHERE ballot_id = ? ORDER BY name COLLATE NOCASE",
            (ballot_id,),
        )
        return [_entry_from_row(row) for row in rows]

    async def upsert_entry(
        self, ballot_id: int, name: str, category: ItemCategory | str, slot: str = ""
    ) -> Entry:
        name = (name or "").strip()
        if not name:
            raise ValidationError(ErrorMessages.EMPTY_ENTRY_NAME, field="name")
        name_key = normalize_name_key(name)
        category_value = parse_category(category).value
        slot_value = normalize_slot(slot)

        async with self._db.transaction() as conn:
            cursor = await conn.execute("SELECT 1 FROM ballots WHERE id = ?", (ballot_id,))
            if await cursor.fetchone() is None:
                raise EntityNotFoundError("Ballot", ballot_id)

            cursor = await conn.execute(
                "SELECT id FROM entries WHERE ballot_id = ? AND name_key = ?",
                (ballot_id, name_key),
            )
            existing = await cursor.fetchone()
            if existing:
                entry_id = existing["id"]
                await conn.execute(
                    "UPDATE entries SET name = ?, category = ?, slot = ? WHERE id = ?",
                    (name, category_value, slot_value, entry_id),
                )
            else:
                cursor = await conn.execute(
                    """
                    INSERT INTO entries (ballot_id, name, name_key, category, slot)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (ballot_id, name, name_key, category_value, slot_value),
                )
                entry_id = cursor.lastrowid

        logger.debug(LogTemplates.ENTRY_UPSERTED, entry_id, name, ballot_id)
        return Entry(
            id=entry_id,
            ballot_id=ballot_id,
            name=name,
            name_key=name_key,
            category=category_value,
            slot=slot_value,
        )

    async def list_votes_for_entry(self, ballot_id: int, entry_id: int) -> list[Vote]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM votes WHERE ballot_id = ? AND entry_id = ?
            ORDER BY cast_at, rowid
            """,
            (ballot_id, entry_id),
        )
        return [_vote_from_row(row) for row in rows]

    async def close_ballot(self, ballot_id: int) -> bool:
        closed = await self._db.execute(
            "UPDATE ballots SET is_open = 0 WHERE id = ? AND is_open = 1",
            (ballot_id,),
        )
        if closed:
            logger.info(LogTemplates.BALLOT_CLOSED, ballot_id)
        return closed > 0

    async def delete_ballot(self, ballot_id: int) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) AS count FROM entries WHERE ballot_id = ?", (ballot_id,)
            )
            entry_count = (await cursor.fetchone())["count"]
            cursor = await conn.execute(
                "SELECT COUNT(*) AS count FROM votes WHERE ballot_id = ?", (ballot_id,)
            )
            vote_count = (await cursor.fetchone())["count"]

            # Entries and votes go with the ballot via ON DELETE CASCADE.
            cursor = await conn.execute("DELETE FROM ballots WHERE id = ?", (ballot_id,))
            deleted = cursor.rowcount

        if deleted:
            logger.info(LogTemplates.BALLOT_DELETED, ballot_id, entry_count, vote_count)
        return deleted > 0

    async def close_expired(self, now: datetime) -> list[int]:
        rows = await self._db.fetch_all(
            "SELECT id, expires_at FROM ballots WHERE is_open = 1 AND expires_at IS NOT NULL"
        )
        expired = [
            row["id"] for row in rows if UtcDateTime.from_iso(row["expires_at"]).dt < now
        ]
        if not expired:
            return []

        placeholders = ", ".join("?" for _ in expired)
        await self._db.execute(
            f"UPDATE ballots SET is_open = 0 WHERE id IN ({placeholders})",  # noqa: S608
            tuple(expired),
        )
        return expired
