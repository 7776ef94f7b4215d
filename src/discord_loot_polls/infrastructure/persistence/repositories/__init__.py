"""Ballot store implementations."""

from discord_loot_polls.infrastructure.persistence.repositories.ballot_repository import (
    SQLiteBallotStore,
)
from discord_loot_polls.infrastructure.persistence.repositories.memory_repository import (
    InMemoryBallotStore,
)

__all__ = ["InMemoryBallotStore", "SQLiteBallotStore"]
