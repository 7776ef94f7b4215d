"""Picker asking what a vote is for before it is cast."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import discord

from discord_loot_polls.application.commands.request_vote import (
    RequestVoteCommand,
    RequestVoteResult,
    VoteOutcome,
)
from discord_loot_polls.domain.polls.value_objects import VotingContext
from discord_loot_polls.domain.shared.exceptions import (
    EntityNotFoundError,
    StoreUnavailableError,
)
from discord_loot_polls.domain.shared.messages import DiscordUIMessages, LogTemplates
from discord_loot_polls.infrastructure.discord.views.base_view import BaseInteractiveView
from discord_loot_polls.infrastructure.discord.views.replacement_view import ReplacementView

if TYPE_CHECKING:
    from ....config.container import Container

logger = logging.getLogger(__name__)

_CONTEXT_STYLES = {
    VotingContext.MAIN_PVP: discord.ButtonStyle.danger,
    VotingContext.MAIN_PVE: discord.ButtonStyle.success,
    VotingContext.OFFSPEC: discord.ButtonStyle.secondary,
}


class VoteContextView(BaseInteractiveView):
    """One button per voting context; a click casts the vote for the clicking member.

    A full bucket answers with an ephemeral :class:`ReplacementView`.
    """

    def __init__(
        self,
        *,
        ballot_id: int,
        entry_id: int,
        entry_name: str,
        container: Container,
        contexts: Sequence[VotingContext] = tuple(VotingContext),
    ) -> None:
        super().__init__(timeout=container.settings.discord.vote_context_view_timeout_s)
        self._ballot_id = ballot_id
        self._entry_id = entry_id
        self._entry_name = entry_name
        self._container = container

        for context in contexts:
            button: discord.ui.Button[VoteContextView] = discord.ui.Button(
                label=context.label,
                style=_CONTEXT_STYLES[context],
                custom_id=f"vote:{ballot_id}:{entry_id}:{context.value}",
            )
            button.callback = self._make_callback(context)
            self.add_item(button)

    @property
    def prompt(self) -> str:
        return DiscordUIMessages.VOTE_CONTEXT_PROMPT.format(entry_name=self._entry_name)

    def _make_callback(self, context: VotingContext):
        async def callback(interaction: discord.Interaction) -> None:
            await self.vote(interaction, context)

        return callback

    async def vote(self, interaction: discord.Interaction, context: VotingContext) -> None:
        command = RequestVoteCommand(
            guild_id=interaction.guild_id,
            user_id=interaction.user.id,
            user_name=interaction.user.display_name,
            ballot_id=self._ballot_id,
            entry_id=self._entry_id,
            context=context,
        )
        try:
            result = await self._container.request_vote_handler.handle(command)
        except StoreUnavailableError as e:
            logger.error(LogTemplates.VIEW_STORE_UNAVAILABLE, interaction.user.id, e)
            await interaction.response.send_message(
                DiscordUIMessages.STORE_UNAVAILABLE, ephemeral=True
            )
            return
        except EntityNotFoundError:
            await self._finish(interaction, DiscordUIMessages.VOTE_UNAVAILABLE)
            return

        if result.outcome is VoteOutcome.REPLACEMENT_OFFERED:
            await self._offer_replacement(interaction, result)
            return

        await self._finish(interaction, self.describe(result, context))

    def describe(self, result: RequestVoteResult, context: VotingContext) -> str:
        if result.outcome is VoteOutcome.BALLOT_CLOSED:
            return DiscordUIMessages.VOTE_BALLOT_CLOSED
        if result.outcome is VoteOutcome.ALREADY_VOTED:
            return DiscordUIMessages.VOTE_ALREADY_HELD.format(
                context=context.label, entry_name=self._entry_name
            )
        return DiscordUIMessages.VOTE_RECORDED.format(
            entry_name=self._entry_name, context=context.label
        )

    async def _offer_replacement(
        self, interaction: discord.Interaction, result: RequestVoteResult
    ) -> None:
        view = ReplacementView(
            negotiation=result.negotiation,
            handler=self._container.resolve_replacement_handler,
            timeout=self._container.settings.discord.replacement_view_timeout_s,
        )
        await interaction.response.send_message(view.prompt, view=view, ephemeral=True)
        view.set_message(await interaction.original_response())

    async def on_timeout(self) -> None:
        self._disable_components()
        await self._edit_message(self.prompt)
