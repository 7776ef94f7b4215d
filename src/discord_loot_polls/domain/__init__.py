# ruff: noqa: N999
"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting exceptions, constrained types and messages
- polls/: Ballots, entries, votes and the cross-ballot vote-limit rules
"""

from discord_loot_polls.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
