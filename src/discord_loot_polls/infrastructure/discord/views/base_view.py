"""Base class for the interactive poll views."""

from __future__ import annotations

import logging

import discord

from discord_loot_polls.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)


class BaseInteractiveView(discord.ui.View):
    """Tracks the message the view is attached to and can lock all components."""

    def __init__(self, *, timeout: float | None = 180.0) -> None:
        super().__init__(timeout=timeout)
        self._message: discord.Message | None = None

    def set_message(self, message: discord.Message) -> None:
        self._message = message

    def _disable_components(self) -> None:
        for item in self.children:
            if isinstance(item, (discord.ui.Button, discord.ui.Select)):
                item.disabled = True

    async def _finish(self, interaction: discord.Interaction, content: str) -> None:
        self.stop()
        self._disable_components()
        await interaction.response.edit_message(content=content, view=self)

    async def _edit_message(self, content: str) -> None:
        if self._message is None:
            return
        try:
            await self._message.edit(content=content, view=self)
        except discord.HTTPException as e:
            logger.debug(LogTemplates.VIEW_EDIT_FAILED, e)
