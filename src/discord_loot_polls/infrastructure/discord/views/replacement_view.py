"""View offering a denied voter the occupants of the full bucket to replace."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from discord_loot_polls.application.commands.resolve_replacement import (
    ResolveReplacementCommand,
)
from discord_loot_polls.domain.polls.negotiation import SwapOutcome, SwapResult
from discord_loot_polls.domain.polls.value_objects import VoteKey
from discord_loot_polls.domain.shared.exceptions import (
    EntityNotFoundError,
    InvalidOperationError,
    StoreUnavailableError,
)
from discord_loot_polls.domain.shared.messages import DiscordUIMessages, LogTemplates
from discord_loot_polls.infrastructure.discord.views.base_view import BaseInteractiveView

if TYPE_CHECKING:
    from ....application.commands.resolve_replacement import ResolveReplacementHandler
    from ....domain.polls.negotiation import ReplacementNegotiation

logger = logging.getLogger(__name__)

_SELECT_LABEL_MAX = 100


class ReplacementView(BaseInteractiveView):
    """Select menu of occupants plus a Cancel button.

    Only the negotiating user may interact. Timing out only disables the
    components; the negotiation itself is left for the expiry sweep.
    """

    def __init__(
        self,
        *,
        negotiation: ReplacementNegotiation,
        handler: ResolveReplacementHandler,
        timeout: float = 180.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self._negotiation = negotiation
        self._handler = handler

        self.occupant_select: discord.ui.Select[ReplacementView] = discord.ui.Select(
            placeholder=DiscordUIMessages.REPLACEMENT_PLACEHOLDER,
            min_values=1,
            max_values=1,
            options=[
                discord.SelectOption(
                    label=held.label[:_SELECT_LABEL_MAX],
                    value=str(held.key),
                    description=held.entry.slot or None,
                )
                for held in negotiation.occupants
            ],
            row=0,
        )
        self.occupant_select.callback = self._on_select
        self.add_item(self.occupant_select)

    @property
    def prompt(self) -> str:
        return DiscordUIMessages.REPLACEMENT_PROMPT.format(
            bucket=self._negotiation.bucket.key,
            capacity=self._negotiation.bucket.capacity,
        )

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self._negotiation.user_id:
            return True
        await interaction.response.send_message(
            DiscordUIMessages.REPLACEMENT_FOREIGN_USER, ephemeral=True
        )
        return False

    async def _on_select(self, interaction: discord.Interaction) -> None:
        await self.choose(interaction, self.occupant_select.values[0])

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary, row=1)
    async def cancel_button(
        self, interaction: discord.Interaction, button: discord.ui.Button[ReplacementView]
    ) -> None:
        await self._resolve(interaction, None)

    async def choose(self, interaction: discord.Interaction, value: str) -> None:
        await self._resolve(interaction, VoteKey.parse(value))

    async def _resolve(self, interaction: discord.Interaction, chosen: VoteKey | None) -> None:
        command = ResolveReplacementCommand(
            negotiation_id=self._negotiation.id,
            user_id=interaction.user.id,
            chosen=chosen,
        )
        try:
            result = await self._handler.handle(command)
        except StoreUnavailableError as e:
            logger.error(LogTemplates.VIEW_STORE_UNAVAILABLE, interaction.user.id, e)
            if self._negotiation.is_resolved:
                await self._finish(interaction, DiscordUIMessages.STORE_UNAVAILABLE)
            else:
                await interaction.response.send_message(
                    DiscordUIMessages.STORE_UNAVAILABLE, ephemeral=True
                )
            return
        except (EntityNotFoundError, InvalidOperationError):
            await self._finish(interaction, DiscordUIMessages.REPLACEMENT_STALE)
            return

        await self._finish(interaction, self.describe(result))

    def describe(self, result: SwapResult) -> str:
        entry_name = self._negotiation.candidate.name
        if result.outcome is SwapOutcome.SWAPPED:
            return DiscordUIMessages.REPLACEMENT_SWAPPED.format(entry_name=entry_name)
        if result.outcome is SwapOutcome.RACE_LOST:
            return DiscordUIMessages.REPLACEMENT_RACE_LOST.format(entry_name=entry_name)
        if result.outcome is SwapOutcome.CANDIDATE_UNAVAILABLE:
            if result.evicted is not None:
                return DiscordUIMessages.REPLACEMENT_UNAVAILABLE_AFTER_EVICTION.format(
                    entry_name=entry_name
                )
            return DiscordUIMessages.REPLACEMENT_UNAVAILABLE.format(entry_name=entry_name)
        return DiscordUIMessages.REPLACEMENT_CANCELLED

    async def on_timeout(self) -> None:
        self._disable_components()
        await self._edit_message(DiscordUIMessages.REPLACEMENT_EXPIRED)
