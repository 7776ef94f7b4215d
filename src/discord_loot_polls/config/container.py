"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the store, rule set, services, handlers and
background jobs. Components are created on demand and cached for reuse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..application.commands.request_unvote import RequestUnvoteHandler
    from ..application.commands.request_vote import RequestVoteHandler
    from ..application.commands.resolve_replacement import ResolveReplacementHandler
    from ..application.services.bucket_locks import BucketLockRegistry
    from ..application.services.negotiation_registry import NegotiationRegistry
    from ..application.services.vote_commit import VoteCommitService
    from ..domain.polls.buckets import BucketRuleSet
    from ..domain.polls.eligibility import EligibilityEvaluator
    from ..domain.polls.repository import BallotStore
    from ..infrastructure.persistence.cleanup import ExpirySweepJob
    from ..infrastructure.persistence.database import Database
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed. A store passed in
    at construction replaces the SQLite-backed default.
    """

    settings: Settings

    # Persistence layer
    _database: Database | None = None
    _store: BallotStore | None = None

    # Domain
    _rule_set: BucketRuleSet | None = None
    _evaluator: EligibilityEvaluator | None = None

    # Application services
    _bucket_locks: BucketLockRegistry | None = None
    _negotiations: NegotiationRegistry | None = None
    _vote_commit: VoteCommitService | None = None

    # Command handlers
    _request_vote_handler: RequestVoteHandler | None = None
    _request_unvote_handler: RequestUnvoteHandler | None = None
    _resolve_replacement_handler: ResolveReplacementHandler | None = None

    # Background jobs
    _expiry_job: ExpirySweepJob | None = None

    # === Persistence ===

    @property
    def database(self) -> Database:
        """Get the database connection manager."""
        if self._database is None:
            from ..infrastructure.persistence.database import Database

            self._database = Database(self.settings.database.url, settings=self.settings.database)
        return self._database

    @property
    def store(self) -> BallotStore:
        """Get the ballot store."""
        if self._store is None:
            from ..infrastructure.persistence.repositories.ballot_repository import (
                SQLiteBallotStore,
            )

            self._store = SQLiteBallotStore(self.database)
        return self._store

    # === Domain ===

    @property
    def rule_set(self) -> BucketRuleSet:
        """Get the bucket rule table selected by settings."""
        if self._rule_set is None:
            self._rule_set = self.settings.rules.build_rule_set()
        return self._rule_set

    @property
    def evaluator(self) -> EligibilityEvaluator:
        if self._evaluator is None:
            from ..domain.polls.eligibility import EligibilityEvaluator

            self._evaluator = EligibilityEvaluator(self.rule_set)
        return self._evaluator

    # === Application Services ===

    @property
    def bucket_locks(self) -> BucketLockRegistry:
        if self._bucket_locks is None:
            from ..application.services.bucket_locks import BucketLockRegistry

            self._bucket_locks = BucketLockRegistry()
        return self._bucket_locks

    @property
    def negotiations(self) -> NegotiationRegistry:
        if self._negotiations is None:
            from ..application.services.negotiation_registry import NegotiationRegistry

            self._negotiations = NegotiationRegistry()
        return self._negotiations

    @property
    def vote_commit(self) -> VoteCommitService:
        if self._vote_commit is None:
            from ..application.services.vote_commit import VoteCommitService

            self._vote_commit = VoteCommitService(self.store)
        return self._vote_commit

    # === Command Handlers ===

    @property
    def request_vote_handler(self) -> RequestVoteHandler:
        """Get the request vote command handler."""
        if self._request_vote_handler is None:
            from ..application.commands.request_vote import RequestVoteHandler

            self._request_vote_handler = RequestVoteHandler(
                store=self.store,
                evaluator=self.evaluator,
                commit=self.vote_commit,
                locks=self.bucket_locks,
                negotiations=self.negotiations,
            )
        return self._request_vote_handler

    @property
    def request_unvote_handler(self) -> RequestUnvoteHandler:
        """Get the request unvote command handler."""
        if self._request_unvote_handler is None:
            from ..application.commands.request_unvote import RequestUnvoteHandler

            self._request_unvote_handler = RequestUnvoteHandler(
                store=self.store,
                evaluator=self.evaluator,
                commit=self.vote_commit,
                locks=self.bucket_locks,
            )
        return self._request_unvote_handler

    @property
    def resolve_replacement_handler(self) -> ResolveReplacementHandler:
        """Get the resolve replacement command handler."""
        if self._resolve_replacement_handler is None:
            from ..application.commands.resolve_replacement import (
                ResolveReplacementHandler,
            )

            self._resolve_replacement_handler = ResolveReplacementHandler(
                store=self.store,
                evaluator=self.evaluator,
                commit=self.vote_commit,
                locks=self.bucket_locks,
                negotiations=self.negotiations,
            )
        return self._resolve_replacement_handler

    # === Background Jobs ===

    @property
    def expiry_job(self) -> ExpirySweepJob:
        """Get the expiry sweep job."""
        if self._expiry_job is None:
            from ..infrastructure.persistence.cleanup import ExpirySweepJob

            self._expiry_job = ExpirySweepJob(
                store=self.store,
                settings=self.settings.expiry,
                negotiations=self.negotiations,
            )
        return self._expiry_job

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Initialize all async resources."""
        if self._store is None:
            await self.database.initialize()

    async def shutdown(self) -> None:
        """Shutdown and cleanup all resources."""
        if self._expiry_job is not None and self._expiry_job.is_running:
            try:
                await self._expiry_job.stop()
            except Exception as exc:
                logger.warning("Failed stopping expiry sweep: %r", exc)

        if self._database is not None:
            await self._database.close()


def create_container(settings: Settings, *, store: BallotStore | None = None) -> Container:
    """Create a new dependency injection container."""
    return Container(settings, _store=store)
