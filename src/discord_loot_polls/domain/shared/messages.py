"""Centralized message constants for error messages and log templates."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Ballot / Entry Validation Errors
    EMPTY_ENTRY_NAME = "Entry name cannot be empty"
    UNKNOWN_CATEGORY = "Category must be one of: {choices}"
    UNKNOWN_VOTING_CONTEXT = "Voting context must be one of: {choices}"
    ENTRY_NOT_IN_BALLOT = "Entry {entry_id} does not belong to ballot {ballot_id}"
    BALLOT_NOT_IN_GUILD = "Ballot {ballot_id} does not belong to guild {guild_id}"

    # Negotiation Errors
    NOT_AN_OFFERED_OCCUPANT = "The chosen vote is not one of the offered occupants"
    NEGOTIATION_NOT_OWNED = "Only the member who requested the vote can resolve this replacement"
    RACE_LOST = "Bucket '{bucket}' filled up again before the replacement vote was placed"
    BUCKET_FULL_AGAIN = "Bucket '{bucket}' is full again ({count}/{capacity})"
    CANDIDATE_BALLOT_CLOSED = "Ballot {ballot_id} closed before the replacement vote was placed"
    CANDIDATE_UNAVAILABLE = "Entry {entry_id} in ballot {ballot_id} is no longer available"

    # Time/Date Validation Errors
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime requires a timezone-aware datetime"

    # Settings Validation Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"


class LogTemplates:
    """Log message templates.

    Use these with logger.info(), logger.error(), etc. and pass values as
    parameters for lazy %-style formatting.
    """

    # Database Lifecycle
    DATABASE_INITIALIZED = "Database initialized at %s"
    DATABASE_CLOSED = "Database manager closed"

    # Ballot Lifecycle
    BALLOT_CREATED = "Created ballot %s (%r) in guild %s"
    BALLOT_CLOSED = "Closed ballot %s"
    BALLOT_DELETED = "Deleted ballot %s with %s entries and %s votes"
    ENTRY_UPSERTED = "Upserted entry %s (%r) in ballot %s"

    # Votes
    VOTE_ADDED = "User %s voted for entry %s in ballot %s (%s)"
    VOTE_DUPLICATE = "User %s already holds a %s vote for entry %s in ballot %s"
    VOTE_REMOVED = "Removed %s vote(s) for user %s on entry %s in ballot %s (%s)"
    VOTE_DENIED = "Denied vote for user %s: bucket %s full (%s/%s)"

    # Replacement negotiation
    NEGOTIATION_OPENED = "Opened replacement negotiation %s for user %s (bucket %s)"
    NEGOTIATION_SWAPPED = "Negotiation %s swapped %s -> entry %s"
    NEGOTIATION_RACE_LOST = "Negotiation %s lost race on bucket %s after evicting %s"
    NEGOTIATION_CANCELLED = "Negotiation %s cancelled"
    NEGOTIATION_WITHDRAWN = "Negotiation %s withdrawn: %s"
    NEGOTIATION_DISCARDED = "Discarded %s stale replacement negotiations"

    # Store failures
    STORE_OPERATION_FAILED = "Ballot store operation %s failed: %r"

    # Expiry sweep
    EXPIRY_STARTED = "Expiry sweep started"
    EXPIRY_STOPPED = "Expiry sweep stopped"
    EXPIRY_ALREADY_RUNNING = "Expiry sweep already running"
    EXPIRY_CLOSED_BALLOTS = "Expiry sweep closed %s ballot(s): %s"
    EXPIRY_FAILED = "Expiry sweep failed: %r"

    # Views
    VIEW_EDIT_FAILED = "Failed to edit replacement message: %r"
    VIEW_STORE_UNAVAILABLE = "Ballot store unavailable while handling interaction from user %s: %r"

    # Service lifecycle
    LOGGING_CONFIG_FALLBACK = "Could not load %s, falling back to basic config"
    SERVICE_STARTING = "Starting loot poll service (%s)"
    SERVICE_STOPPED = "Loot poll service stopped"
    SERVICE_INTERRUPTED = "Received keyboard interrupt, shutting down"
    SERVICE_FATAL_ERROR = "Fatal error: %s"


class DiscordUIMessages:
    """Plain status strings used by the thin Discord views."""

    REPLACEMENT_PROMPT = "Your **{bucket}** limit is {capacity}. Pick a vote to replace, or cancel."
    REPLACEMENT_PLACEHOLDER = "Choose a vote to replace..."
    REPLACEMENT_SWAPPED = "Replaced your vote with **{entry_name}**."
    REPLACEMENT_RACE_LOST = (
        "Your old vote was removed, but **{entry_name}** could not be placed because "
        "the limit was reached again. Try voting again."
    )
    REPLACEMENT_CANCELLED = "Cancelled. Your votes were not changed."
    REPLACEMENT_UNAVAILABLE = (
        "**{entry_name}** can no longer be voted on. Your votes were not changed."
    )
    REPLACEMENT_UNAVAILABLE_AFTER_EVICTION = (
        "Your old vote was removed, but **{entry_name}** can no longer be voted on."
    )
    REPLACEMENT_EXPIRED = "This replacement prompt has expired."
    REPLACEMENT_FOREIGN_USER = "This prompt belongs to someone else."
    REPLACEMENT_STALE = "This replacement was already resolved."
    STORE_UNAVAILABLE = "The poll store is unavailable right now. Please try again."

    VOTE_CONTEXT_PROMPT = "**{entry_name}** - choose what this vote is for:"
    VOTE_RECORDED = "Voted for **{entry_name}** - {context}."
    VOTE_ALREADY_HELD = "You already have a {context} vote on **{entry_name}**."
    VOTE_BALLOT_CLOSED = "This poll is closed."
    VOTE_UNAVAILABLE = "This item is no longer available."
