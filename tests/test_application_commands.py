"""Tests for the vote, unvote and replacement command handlers."""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from discord_loot_polls.application.commands.request_unvote import (
    RequestUnvoteCommand,
    UnvoteOutcome,
)
from discord_loot_polls.application.commands.request_vote import (
    RequestVoteCommand,
    VoteOutcome,
)
from discord_loot_polls.application.commands.resolve_replacement import (
    ResolveReplacementCommand,
)
from discord_loot_polls.domain.polls.entities import Vote
from discord_loot_polls.domain.polls.negotiation import NegotiationState, SwapOutcome
from discord_loot_polls.domain.polls.value_objects import VotingContext
from discord_loot_polls.domain.shared.exceptions import (
    EntityNotFoundError,
    InvalidOperationError,
    StoreUnavailableError,
    ValidationError,
)

GUILD = 1000
USER = 42
PVP = VotingContext.MAIN_PVP


def _request(entry, *, user_id=USER, context=PVP, guild_id=GUILD):
    return RequestVoteCommand(
        guild_id=guild_id,
        user_id=user_id,
        user_name="Raider",
        ballot_id=entry.ballot_id,
        entry_id=entry.id,
        context=context,
    )


async def _held_keys(store, user_id=USER, context=PVP):
    return [h.key for h in await store.list_open_votes_for_user(GUILD, user_id, context)]


# =============================================================================
# RequestVoteHandler
# =============================================================================


class TestRequestVote:
    async def test_records_vote(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]

        result = await container.request_vote_handler.handle(_request(chest))

        assert result.outcome is VoteOutcome.RECORDED
        assert result.is_recorded
        assert result.vote.key in await _held_keys(container.store)

    async def test_already_voted_is_no_op(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        handler = container.request_vote_handler
        await handler.handle(_request(chest))

        result = await handler.handle(_request(chest))

        assert result.outcome is VoteOutcome.ALREADY_VOTED
        assert len(await _held_keys(container.store)) == 1

    async def test_contexts_are_independent(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        handler = container.request_vote_handler

        first = await handler.handle(_request(chest, context=PVP))
        second = await handler.handle(_request(chest, context=VotingContext.OFFSPEC))

        assert first.outcome is VoteOutcome.RECORDED
        assert second.outcome is VoteOutcome.RECORDED

    async def test_closed_ballot(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        await container.store.close_ballot(chest.ballot_id)

        result = await container.request_vote_handler.handle(_request(chest))

        assert result.outcome is VoteOutcome.BALLOT_CLOSED
        assert await _held_keys(container.store) == []

    async def test_missing_ballot(self, container, guild_polls):
        command = RequestVoteCommand(
            guild_id=GUILD, user_id=USER, ballot_id=999, entry_id=1, context=PVP
        )

        with pytest.raises(EntityNotFoundError):
            await container.request_vote_handler.handle(command)

    async def test_ballot_of_another_guild(self, container, guild_polls):
        far = guild_polls["entries"]["foreign"]

        with pytest.raises(EntityNotFoundError):
            await container.request_vote_handler.handle(_request(far, guild_id=GUILD))

    async def test_entry_of_another_ballot(self, container, guild_polls):
        staff = guild_polls["entries"]["staff"]
        command = RequestVoteCommand(
            guild_id=GUILD,
            user_id=USER,
            ballot_id=guild_polls["boss"].id,
            entry_id=staff.id,
            context=PVP,
        )

        with pytest.raises(EntityNotFoundError) as exc_info:
            await container.request_vote_handler.handle(command)

        assert exc_info.value.entity_type == "Entry"

    async def test_closed_check_precedes_entry_lookup(self, container, guild_polls):
        boss = guild_polls["boss"]
        await container.store.close_ballot(boss.id)
        command = RequestVoteCommand(
            guild_id=GUILD, user_id=USER, ballot_id=boss.id, entry_id=999, context=PVP
        )

        result = await container.request_vote_handler.handle(command)

        assert result.outcome is VoteOutcome.BALLOT_CLOSED

    async def test_full_bucket_offers_replacement(self, container, guild_polls):
        entries = guild_polls["entries"]
        handler = container.request_vote_handler
        await handler.handle(_request(entries["gs"]))
        await handler.handle(_request(entries["lb"]))

        result = await handler.handle(_request(entries["staff"]))

        assert result.outcome is VoteOutcome.REPLACEMENT_OFFERED
        assert result.denial.bucket_key == "weapons"
        assert [h.entry.id for h in result.denial.occupants] == [
            entries["gs"].id,
            entries["lb"].id,
        ]
        assert result.negotiation_id in container.negotiations
        assert len(await _held_keys(container.store)) == 2

    async def test_closed_ballot_votes_free_capacity(self, container, guild_polls):
        entries = guild_polls["entries"]
        handler = container.request_vote_handler
        await handler.handle(_request(entries["chest"]))
        await container.store.close_ballot(guild_polls["boss"].id)

        result = await handler.handle(_request(entries["chest2"]))

        assert result.outcome is VoteOutcome.RECORDED

    async def test_store_failure_propagates(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        container.store.list_open_votes_for_user = AsyncMock(
            side_effect=StoreUnavailableError("query")
        )

        with pytest.raises(StoreUnavailableError):
            await container.request_vote_handler.handle(_request(chest))


# =============================================================================
# RequestUnvoteHandler
# =============================================================================


class TestRequestUnvote:
    def _unvote(self, entry, context=PVP):
        return RequestUnvoteCommand(
            guild_id=GUILD,
            user_id=USER,
            ballot_id=entry.ballot_id,
            entry_id=entry.id,
            context=context,
        )

    async def test_removes_only_that_context(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        await container.request_vote_handler.handle(_request(chest))
        await container.request_vote_handler.handle(
            _request(chest, context=VotingContext.OFFSPEC)
        )

        result = await container.request_unvote_handler.handle(self._unvote(chest))

        assert result.outcome is UnvoteOutcome.REMOVED
        assert result.removed == 1
        assert await _held_keys(container.store) == []
        assert len(await _held_keys(container.store, context=VotingContext.OFFSPEC)) == 1

    async def test_not_held(self, container, guild_polls):
        result = await container.request_unvote_handler.handle(
            self._unvote(guild_polls["entries"]["chest"])
        )

        assert result.outcome is UnvoteOutcome.NOT_HELD
        assert result.removed == 0

    async def test_add_remove_round_trip(self, container, guild_polls):
        chest = guild_polls["entries"]["chest"]
        before = await _held_keys(container.store)

        await container.request_vote_handler.handle(_request(chest))
        await container.request_unvote_handler.handle(self._unvote(chest))

        assert await _held_keys(container.store) == before

    async def test_unknown_ballot(self, container, guild_polls):
        far = guild_polls["entries"]["foreign"]

        with pytest.raises(EntityNotFoundError):
            await container.request_unvote_handler.handle(self._unvote(far))


# =============================================================================
# ResolveReplacementHandler
# =============================================================================


@pytest.fixture
async def chest_offer(container, guild_polls):
    """Holds one chest vote and is offered a replacement for a second chest."""
    entries = guild_polls["entries"]
    handler = container.request_vote_handler
    await handler.handle(_request(entries["chest"]))
    result = await handler.handle(_request(entries["chest2"]))
    assert result.outcome is VoteOutcome.REPLACEMENT_OFFERED
    return result


class TestResolveReplacement:
    async def test_swap_replaces_occupant(self, container, guild_polls, chest_offer):
        occupant = chest_offer.denial.occupants[0]

        result = await container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(
                negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
            )
        )

        assert result.ok is True
        assert result.outcome is SwapOutcome.SWAPPED
        held = await _held_keys(container.store)
        assert occupant.key not in held
        assert chest_offer.negotiation.candidate_key in held
        assert len(held) == 1
        assert chest_offer.negotiation_id not in container.negotiations

    async def test_cancel_changes_nothing(self, container, chest_offer):
        before = await _held_keys(container.store)

        result = await container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(negotiation_id=chest_offer.negotiation_id, user_id=USER)
        )

        assert result.outcome is SwapOutcome.CANCELLED
        assert await _held_keys(container.store) == before
        assert chest_offer.negotiation.state is NegotiationState.CANCELLED

    async def test_unknown_negotiation(self, container):
        with pytest.raises(EntityNotFoundError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(negotiation_id="nope", user_id=USER)
            )

    async def test_only_owner_may_resolve(self, container, chest_offer):
        with pytest.raises(ValidationError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(negotiation_id=chest_offer.negotiation_id, user_id=7)
            )

        assert chest_offer.negotiation.state is NegotiationState.OFFERED

    async def test_non_occupant_choice_keeps_offer_open(self, container, guild_polls, chest_offer):
        bogus = Vote(
            ballot_id=guild_polls["boss"].id,
            entry_id=guild_polls["entries"]["gs"].id,
            user_id=USER,
            voting_context=PVP,
        ).key

        with pytest.raises(ValidationError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(
                    negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=bogus
                )
            )

        assert chest_offer.negotiation.state is NegotiationState.OFFERED
        assert chest_offer.negotiation_id in container.negotiations

    async def test_race_lost_leaves_neither_vote(self, container, guild_polls, chest_offer):
        occupant = chest_offer.denial.occupants[0]
        store = container.store
        real_list = store.list_open_votes_for_user
        third_chest = await store.upsert_entry(
            guild_polls["arch"].id, "Sneaky Plate", "armor", "chest"
        )

        async def list_after_concurrent_vote(guild_id, user_id, context):
            # Another request fills the bucket between eviction and re-check.
            await store.add_vote(
                Vote(
                    ballot_id=third_chest.ballot_id,
                    entry_id=third_chest.id,
                    user_id=user_id,
                    voting_context=context,
                )
            )
            return await real_list(guild_id, user_id, context)

        store.list_open_votes_for_user = list_after_concurrent_vote

        result = await container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(
                negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
            )
        )

        store.list_open_votes_for_user = real_list
        held = await _held_keys(store)
        assert result.ok is False
        assert result.outcome is SwapOutcome.RACE_LOST
        assert result.evicted.key == occupant.key
        assert occupant.key not in held
        assert chest_offer.negotiation.candidate_key not in held
        assert chest_offer.negotiation.state is NegotiationState.SWAP_FAILED

    async def test_store_failure_before_eviction_reopens_offer(self, container, chest_offer):
        occupant = chest_offer.denial.occupants[0]
        container.store.remove_vote = AsyncMock(side_effect=StoreUnavailableError("query"))

        with pytest.raises(StoreUnavailableError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(
                    negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
                )
            )

        assert chest_offer.negotiation.state is NegotiationState.OFFERED
        assert chest_offer.negotiation_id in container.negotiations

    async def test_store_failure_after_eviction_fails_swap(self, container, chest_offer):
        occupant = chest_offer.denial.occupants[0]
        container.store.add_vote = AsyncMock(side_effect=StoreUnavailableError("query"))

        with pytest.raises(StoreUnavailableError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(
                    negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
                )
            )

        assert chest_offer.negotiation.state is NegotiationState.SWAP_FAILED
        assert chest_offer.negotiation_id not in container.negotiations

    async def test_resolved_negotiation_cannot_be_reused(self, container, chest_offer):
        negotiation = chest_offer.negotiation
        negotiation.cancel()

        with pytest.raises(InvalidOperationError):
            await container.resolve_replacement_handler.handle(
                ResolveReplacementCommand(negotiation_id=negotiation.id, user_id=USER)
            )

    @pytest.mark.parametrize("end_ballot", ["close_ballot", "delete_ballot"])
    async def test_candidate_ballot_gone_before_swap_touches_no_votes(
        self, container, guild_polls, chest_offer, end_ballot
    ):
        occupant = chest_offer.denial.occupants[0]
        before = await _held_keys(container.store)
        await getattr(container.store, end_ballot)(guild_polls["arch"].id)

        result = await container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(
                negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
            )
        )

        assert result.ok is False
        assert result.outcome is SwapOutcome.CANDIDATE_UNAVAILABLE
        assert result.evicted is None
        assert await _held_keys(container.store) == before
        assert occupant.key in before
        assert chest_offer.negotiation.state is NegotiationState.WITHDRAWN
        assert chest_offer.negotiation_id not in container.negotiations

    async def test_candidate_ballot_closing_after_eviction(
        self, container, guild_polls, chest_offer
    ):
        occupant = chest_offer.denial.occupants[0]
        store = container.store
        real_remove = store.remove_vote

        async def remove_then_close(key):
            removed = await real_remove(key)
            await store.close_ballot(guild_polls["arch"].id)
            return removed

        store.remove_vote = remove_then_close

        result = await container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(
                negotiation_id=chest_offer.negotiation_id, user_id=USER, chosen=occupant.key
            )
        )

        store.remove_vote = real_remove
        assert result.outcome is SwapOutcome.CANDIDATE_UNAVAILABLE
        assert result.evicted.key == occupant.key
        assert await _held_keys(store) == []
        assert await store.list_votes_for_entry(
            guild_polls["arch"].id, guild_polls["entries"]["chest2"].id
        ) == []
        assert chest_offer.negotiation.state is NegotiationState.SWAP_FAILED


class TestStrictWeaponSwap:
    @pytest.fixture
    def strict_container(self, store):
        from discord_loot_polls.config.container import create_container
        from discord_loot_polls.config.settings import (
            DatabaseSettings,
            Settings,
            VoteRuleSettings,
        )

        settings = Settings(
            environment="test",
            database=DatabaseSettings(url="sqlite:///:memory:"),
            rules=VoteRuleSettings(strict_weapon_types=True),
        )
        return create_container(settings, store=store)

    async def test_same_type_weapon_swaps_out_same_type_vote(
        self, strict_container, guild_polls
    ):
        entries = guild_polls["entries"]
        handler = strict_container.request_vote_handler
        sword = await handler.handle(_request(entries["gs"]))
        bow = await handler.handle(_request(entries["lb"]))

        offer = await handler.handle(_request(entries["gs2"]))

        assert offer.outcome is VoteOutcome.REPLACEMENT_OFFERED
        assert offer.denial.bucket_key == "weapons:gs"
        assert [held.key for held in offer.denial.occupants] == [sword.vote.key]

        result = await strict_container.resolve_replacement_handler.handle(
            ResolveReplacementCommand(
                negotiation_id=offer.negotiation_id, user_id=USER, chosen=sword.vote.key
            )
        )

        assert result.outcome is SwapOutcome.SWAPPED
        assert await _held_keys(strict_container.store) == [
            bow.vote.key,
            offer.negotiation.candidate_key,
        ]


# =============================================================================
# Capacity under concurrency
# =============================================================================


class TestCapacityProperties:
    async def test_concurrent_requests_never_exceed_capacity(self, container, guild_polls):
        entries = guild_polls["entries"]
        weapons = [entries["gs"], entries["lb"], entries["staff"], entries["gs2"]]

        results = await asyncio.gather(
            *(container.request_vote_handler.handle(_request(e)) for e in weapons)
        )

        outcomes = [r.outcome for r in results]
        assert outcomes.count(VoteOutcome.RECORDED) == 2
        assert outcomes.count(VoteOutcome.REPLACEMENT_OFFERED) == 2
        assert len(await _held_keys(container.store)) == 2

    async def test_random_add_remove_sequences_respect_caps(self, container, guild_polls):
        rng = random.Random(20240611)
        entries = [e for k, e in guild_polls["entries"].items() if k != "foreign"]
        capacities = {"weapons": 2, "chest": 1, "earring": 2}
        evaluator = container.evaluator

        for _ in range(200):
            entry = rng.choice(entries)
            context = rng.choice(list(VotingContext))
            if rng.random() < 0.65:
                await container.request_vote_handler.handle(_request(entry, context=context))
            else:
                await container.request_unvote_handler.handle(
                    RequestUnvoteCommand(
                        guild_id=GUILD,
                        user_id=USER,
                        ballot_id=entry.ballot_id,
                        entry_id=entry.id,
                        context=context,
                    )
                )

            for ctx in VotingContext:
                held = await container.store.list_open_votes_for_user(GUILD, USER, ctx)
                counts = {}
                for h in held:
                    key = evaluator.bucket_for(h.entry).key
                    counts[key] = counts.get(key, 0) + 1
                for key, count in counts.items():
                    assert count <= capacities[key]
