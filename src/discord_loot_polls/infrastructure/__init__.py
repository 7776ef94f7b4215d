"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (SQLite and in-memory ballot stores, expiry sweep)
- Discord (interactive views driving the replacement negotiation)
"""

from discord_loot_polls.infrastructure.persistence.database import Database

__all__ = [
    "Database",
]
