"""
Application Commands

Command objects and their handlers for the vote write paths.
"""

from discord_loot_polls.application.commands.request_unvote import (
    RequestUnvoteCommand,
    RequestUnvoteHandler,
    RequestUnvoteResult,
    UnvoteOutcome,
)
from discord_loot_polls.application.commands.request_vote import (
    RequestVoteCommand,
    RequestVoteHandler,
    RequestVoteResult,
    VoteOutcome,
)
from discord_loot_polls.application.commands.resolve_replacement import (
    ResolveReplacementCommand,
    ResolveReplacementHandler,
)

__all__ = [
    # Vote
    "RequestVoteCommand",
    "RequestVoteHandler",
    "RequestVoteResult",
    "VoteOutcome",
    # Unvote
    "RequestUnvoteCommand",
    "RequestUnvoteHandler",
    "RequestUnvoteResult",
    "UnvoteOutcome",
    # Replacement
    "ResolveReplacementCommand",
    "ResolveReplacementHandler",
]
