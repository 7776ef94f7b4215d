"""Periodic sweep that closes expired ballots and drops stale negotiations."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from discord_loot_polls.domain.shared.datetime_utils import utcnow
from discord_loot_polls.domain.shared.exceptions import StoreUnavailableError
from discord_loot_polls.domain.shared.messages import LogTemplates
from discord_loot_polls.domain.shared.types import NonNegativeInt

if TYPE_CHECKING:
    from ...application.services.negotiation_registry import NegotiationRegistry
    from ...config.settings import ExpirySettings
    from ...domain.polls.repository import BallotStore

logger = logging.getLogger(__name__)


class ExpirySweepJob:
    def __init__(
        self,
        *,
        store: BallotStore,
        settings: ExpirySettings,
        negotiations: NegotiationRegistry | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._negotiations = negotiations
        self._running = False
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._running:
            logger.warning(LogTemplates.EXPIRY_ALREADY_RUNNING)
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(LogTemplates.EXPIRY_STARTED)

    async def stop(self) -> None:
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.EXPIRY_STOPPED)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_sweep()
            except Exception:
                logger.exception("Error during expiry sweep")

            try:
                await asyncio.sleep(self._settings.sweep_interval_seconds)
            except asyncio.CancelledError:
                break

    async def run_sweep(self) -> SweepStats:
        stats = SweepStats()
        now = utcnow()

        try:
            stats.closed_ballot_ids = await self._store.close_expired(now)
        except StoreUnavailableError as e:
            logger.error(LogTemplates.EXPIRY_FAILED, e)

        if stats.closed_ballot_ids:
            logger.info(
                LogTemplates.EXPIRY_CLOSED_BALLOTS,
                len(stats.closed_ballot_ids),
                stats.closed_ballot_ids,
            )

        if self._negotiations is not None:
            cutoff = now - timedelta(seconds=self._settings.negotiation_ttl_seconds)
            stats.negotiations_discarded = self._negotiations.discard_older_than(cutoff)

        return stats

    @property
    def is_running(self) -> bool:
        return self._running


class SweepStats(BaseModel):
    closed_ballot_ids: list[int] = Field(default_factory=list)
    negotiations_discarded: NonNegativeInt = 0

    @property
    def ballots_closed(self) -> int:
        return len(self.closed_ballot_ids)
