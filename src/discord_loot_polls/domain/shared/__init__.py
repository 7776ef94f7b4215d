"""
Shared Domain Kernel

Contains exceptions and constrained types shared across the polls context.
"""

from discord_loot_polls.domain.shared.exceptions import (
    BusinessRuleViolationError,
    CapacityExceededError,
    ConcurrencyError,
    DomainError,
    EntityNotFoundError,
    InvalidOperationError,
    RaceLostError,
    StoreUnavailableError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "CapacityExceededError",
    "ConcurrencyError",
    "RaceLostError",
    "InvalidOperationError",
    "StoreUnavailableError",
]
