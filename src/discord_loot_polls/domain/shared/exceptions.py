"""Base exception classes for domain-level errors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from discord_loot_polls.domain.shared.messages import ErrorMessages

if TYPE_CHECKING:
    from discord_loot_polls.domain.polls.buckets import Bucket
    from discord_loot_polls.domain.polls.entities import HeldVote


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class EntityNotFoundError(DomainError):
    """Raised when a referenced ballot, entry or vote does not exist."""

    def __init__(self, entity_type: str, identifier: str | int, message: str | None = None) -> None:
        msg = message or f"{entity_type} with id '{identifier}' not found"
        super().__init__(msg, code="ENTITY_NOT_FOUND")
        self.entity_type = entity_type
        self.identifier = identifier


class BusinessRuleViolationError(DomainError):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Business rule violated: {rule}"
        super().__init__(msg, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class CapacityExceededError(BusinessRuleViolationError):
    """A bucket is full. Expected and user-facing, not a fault."""

    def __init__(self, bucket: Bucket, occupants: tuple[HeldVote, ...]) -> None:
        super().__init__(
            "bucket_capacity",
            f"Limit {bucket.capacity} reached for bucket '{bucket.key}'",
        )
        self.code = "CAPACITY_EXCEEDED"
        self.bucket = bucket
        self.occupants = occupants


class ConcurrencyError(DomainError):
    """Raised when a concurrent modification conflict occurs."""

    def __init__(self, entity_type: str, message: str | None = None) -> None:
        msg = message or f"Concurrent modification detected for {entity_type}"
        super().__init__(msg, code="CONCURRENCY_ERROR")
        self.entity_type = entity_type


class RaceLostError(ConcurrencyError):
    """The post-removal re-check of a swap failed.

    The evicted vote is already gone when this is raised, so callers must tell
    the user that their old vote was removed even though the new one was not
    placed.
    """

    def __init__(self, bucket: Bucket, occupants: tuple[HeldVote, ...]) -> None:
        super().__init__(
            "bucket",
            ErrorMessages.RACE_LOST.format(bucket=bucket.key),
        )
        self.code = "RACE_LOST"
        self.bucket = bucket
        self.occupants = occupants


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state


class StoreUnavailableError(DomainError):
    """Raised when the ballot store cannot be read or written."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Ballot store unavailable during '{operation}'", code="STORE_UNAVAILABLE")
        self.operation = operation
        self.cause = cause
