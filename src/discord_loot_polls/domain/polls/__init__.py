"""
Polls Bounded Context

Ballots, entries and votes, plus the vote-limit rules that span every open
ballot in a guild.
"""

from discord_loot_polls.domain.polls.buckets import Bucket, BucketRule, BucketRuleSet, RuleRevision
from discord_loot_polls.domain.polls.eligibility import Allowed, Denied, EligibilityEvaluator
from discord_loot_polls.domain.polls.entities import Ballot, Entry, HeldVote, Vote
from discord_loot_polls.domain.polls.negotiation import (
    NegotiationState,
    ReplacementNegotiation,
    SwapOutcome,
    SwapResult,
)
from discord_loot_polls.domain.polls.repository import BallotStore
from discord_loot_polls.domain.polls.value_objects import (
    BallotType,
    ItemCategory,
    VoteKey,
    VotingContext,
)

__all__ = [
    # Entities
    "Ballot",
    "Entry",
    "Vote",
    "HeldVote",
    # Value Objects
    "BallotType",
    "ItemCategory",
    "VoteKey",
    "VotingContext",
    # Buckets
    "Bucket",
    "BucketRule",
    "BucketRuleSet",
    "RuleRevision",
    # Eligibility
    "Allowed",
    "Denied",
    "EligibilityEvaluator",
    # Negotiation
    "NegotiationState",
    "ReplacementNegotiation",
    "SwapOutcome",
    "SwapResult",
    # Repository
    "BallotStore",
]
