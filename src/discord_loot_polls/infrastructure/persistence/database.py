"""SQLite database with per-operation connections and WAL mode."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from discord_loot_polls.domain.shared.constants import SQLPragmas
from discord_loot_polls.domain.shared.exceptions import StoreUnavailableError
from discord_loot_polls.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, url: str, settings: DatabaseSettings | None = None) -> None:
        if url.startswith("sqlite:///"):
            self._db_path = url[10:]  # Remove "sqlite:///"
        else:
            self._db_path = url

        self._initialized = False
        self._keepalive_conn: aiosqlite.Connection | None = None
        self._busy_timeout = settings.busy_timeout_ms if settings else 5000
        self._connection_timeout = settings.connection_timeout_s if settings else 10

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        if self._initialized:
            return

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        # Keep one connection alive for in-memory DBs; otherwise the shared
        # in-memory DB is destroyed once the last connection closes.
        if self._db_path == ":memory:" and self._keepalive_conn is None:
            self._keepalive_conn = await self._connect()

        conn = self._keepalive_conn
        if conn is None:
            async with self.transaction() as conn2:
                await self._ensure_schema(conn2)
        else:
            await self._ensure_schema(conn)
            await conn.commit()

        self._initialized = True
        logger.info(LogTemplates.DATABASE_INITIALIZED, self._db_path)

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS ballots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                is_open INTEGER NOT NULL DEFAULT 1,
                expires_at TEXT,
                ballot_type TEXT NOT NULL,
                voting_context TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ballots_guild_open ON ballots(guild_id, is_open)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ballots_open_expires ON ballots(is_open, expires_at)"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ballot_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                name_key TEXT NOT NULL,
                category TEXT NOT NULL,
                slot TEXT NOT NULL DEFAULT '',
                UNIQUE (ballot_id, name_key),
                FOREIGN KEY(ballot_id) REFERENCES ballots(id) ON DELETE CASCADE
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS votes (
                ballot_id INTEGER NOT NULL,
                entry_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                user_display_name TEXT NOT NULL DEFAULT '',
                voting_context TEXT NOT NULL,
                cast_at TEXT NOT NULL,
                PRIMARY KEY (ballot_id, entry_id, user_id, voting_context),
                FOREIGN KEY(ballot_id) REFERENCES ballots(id) ON DELETE CASCADE,
                FOREIGN KEY(entry_id) REFERENCES entries(id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_votes_user_context ON votes(user_id, voting_context)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_votes_entry ON votes(ballot_id, entry_id)"
        )

    async def _connect(self) -> aiosqlite.Connection:
        # SQLite ":memory:" is per-connection, so use a shared URI to allow
        # multiple connections to see the same in-memory database.
        if self._db_path == ":memory:":
            db_path = "file:discord-loot-polls?mode=memory&cache=shared"
            uri = True
        else:
            db_path = self._db_path
            uri = False

        try:
            conn = await aiosqlite.connect(
                db_path,
                # Timestamps are ISO 8601 text; no implicit conversion.
                detect_types=0,
                uri=uri,
                timeout=self._connection_timeout,
            )
        except aiosqlite.Error as e:
            raise StoreUnavailableError("connect", e) from e
        conn.row_factory = aiosqlite.Row

        try:
            await conn.execute(SQLPragmas.JOURNAL_MODE_WAL)
            await conn.execute(SQLPragmas.FOREIGN_KEYS_ON)
            await conn.execute(SQLPragmas.BUSY_TIMEOUT.format(timeout=self._busy_timeout))
        except aiosqlite.Error as e:
            with suppress(aiosqlite.Error):
                await conn.close()
            logger.error(LogTemplates.STORE_OPERATION_FAILED, "connect", e)
            raise StoreUnavailableError("connect", e) from e

        return conn

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Open a connection; driver errors surface as StoreUnavailableError."""
        conn = await self._connect()
        try:
            yield conn
        except aiosqlite.Error as e:
            with suppress(aiosqlite.Error):
                await conn.rollback()
            logger.error(LogTemplates.STORE_OPERATION_FAILED, "query", e)
            raise StoreUnavailableError("query", e) from e
        except Exception:
            with suppress(aiosqlite.Error):
                await conn.rollback()
            raise
        finally:
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get a transaction context manager with auto-commit/rollback."""
        async with self.connection() as conn:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def execute(self, sql: str, parameters: tuple[Any, ...] = ()) -> int:
        """Execute a single statement in its own transaction.

        Returns:
            The number of rows affected.
        """
        async with self.transaction() as conn:
            cursor = await conn.execute(sql, parameters)
            return cursor.rowcount

    async def fetch_one(
        self, sql: str, parameters: tuple[Any, ...] = ()
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        async with self.connection() as conn:
            cursor = await conn.execute(sql, parameters)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetch_all(
        self, sql: str, parameters: tuple[Any, ...] = ()
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        async with self.connection() as conn:
            cursor = await conn.execute(sql, parameters)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def close(self) -> None:
        """Close the database manager.

        For file-based DBs this is mostly a no-op. For in-memory DBs we also
        close the keepalive connection.
        """
        if self._keepalive_conn is not None:
            try:
                await self._keepalive_conn.close()
            finally:
                self._keepalive_conn = None
        self._initialized = False
        logger.info(LogTemplates.DATABASE_CLOSED)
