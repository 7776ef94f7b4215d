"""Discord UI views and components."""

from __future__ import annotations

from discord_loot_polls.infrastructure.discord.views.base_view import BaseInteractiveView
from discord_loot_polls.infrastructure.discord.views.replacement_view import ReplacementView
from discord_loot_polls.infrastructure.discord.views.vote_context_view import VoteContextView

__all__ = [
    "BaseInteractiveView",
    "ReplacementView",
    "VoteContextView",
]
