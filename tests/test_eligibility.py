"""Tests for the eligibility evaluator, including the worked scenarios."""

import pytest

from discord_loot_polls.domain.polls.buckets import BucketRuleSet
from discord_loot_polls.domain.polls.eligibility import Allowed, Denied, EligibilityEvaluator
from discord_loot_polls.domain.polls.value_objects import VotingContext
from discord_loot_polls.domain.shared.exceptions import CapacityExceededError


@pytest.fixture
def evaluator():
    return EligibilityEvaluator()


class TestScenarios:
    def test_weapon_cap_spans_ballots(self, evaluator, make_entry, make_held):
        """Two weapon votes in two ballots deny a third weapon in a third ballot."""
        held = [
            make_held(make_entry("weapon", "gs", ballot_id=1), ballot_name="Tevent"),
            make_held(make_entry("weapon", "lb", ballot_id=2), ballot_name="Queen"),
        ]
        candidate = make_entry("weapon", "staff", ballot_id=3)

        result = evaluator.evaluate(held, candidate, VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert result.bucket_key == "weapons"
        assert result.capacity == 2
        assert result.occupants == tuple(held)

    def test_empty_chest_bucket_allows(self, evaluator, make_entry):
        result = evaluator.evaluate([], make_entry("armor", "chest"), VotingContext.MAIN_PVE)

        assert isinstance(result, Allowed)
        assert result.bucket.key == "chest"

    def test_second_chest_denied_with_single_occupant(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "chest"))]

        result = evaluator.evaluate(held, make_entry("armor", "chest"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert len(result.occupants) == 1
        assert result.occupants[0] is held[0]

    def test_earrings_pair_then_deny(self, evaluator, make_entry, make_held):
        held = []
        for _ in range(2):
            candidate = make_entry("accessory", "earring")
            assert isinstance(
                evaluator.evaluate(held, candidate, VotingContext.OFFSPEC), Allowed
            )
            held.append(make_held(candidate, context=VotingContext.OFFSPEC))

        result = evaluator.evaluate(
            held, make_entry("accessory", "earring"), VotingContext.OFFSPEC
        )

        assert isinstance(result, Denied)
        assert [h.key for h in result.occupants] == [h.key for h in held]

    def test_closed_ballot_votes_do_not_count(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "chest"), ballot_is_open=False)]

        result = evaluator.evaluate(held, make_entry("armor", "chest"), VotingContext.MAIN_PVP)

        assert isinstance(result, Allowed)


class TestSnapshotFiltering:
    def test_other_context_votes_ignored(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "chest"), context=VotingContext.OFFSPEC)]

        result = evaluator.evaluate(held, make_entry("armor", "chest"), VotingContext.MAIN_PVP)

        assert isinstance(result, Allowed)

    def test_other_buckets_do_not_count(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "boots")), make_held(make_entry("weapon", "gs"))]

        result = evaluator.evaluate(held, make_entry("armor", "chest"), VotingContext.MAIN_PVP)

        assert isinstance(result, Allowed)

    def test_synonym_slots_share_bucket(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "head"))]

        result = evaluator.evaluate(held, make_entry("armor", "Helmet"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert result.bucket_key == "helmet"


class TestDeterminism:
    def test_evaluate_is_idempotent(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("weapon", "gs")), make_held(make_entry("weapon", "lb"))]
        candidate = make_entry("weapon", "orb")

        first = evaluator.evaluate(held, candidate, VotingContext.MAIN_PVP)
        second = evaluator.evaluate(held, candidate, VotingContext.MAIN_PVP)

        assert first == second

    def test_evaluate_accepts_one_shot_iterables(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("weapon", "gs")), make_held(make_entry("weapon", "lb"))]

        result = evaluator.evaluate(iter(held), make_entry("weapon", "orb"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert len(result.occupants) == 2


class TestStrictWeaponTypes:
    @pytest.fixture
    def strict(self):
        return EligibilityEvaluator(BucketRuleSet.for_revision(strict_weapon_types=True))

    def test_second_weapon_of_same_type_denied(self, strict, make_entry, make_held):
        held = [make_held(make_entry("weapon", "gs"))]

        result = strict.evaluate(held, make_entry("weapon", "gs"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert result.bucket_key == "weapons:gs"
        assert result.occupants == tuple(held)

    def test_full_main_bucket_offers_only_same_type_occupant(
        self, strict, make_entry, make_held
    ):
        sword = make_held(make_entry("weapon", "gs"))
        bow = make_held(make_entry("weapon", "lb"))

        result = strict.evaluate([sword, bow], make_entry("weapon", "gs"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert result.bucket_key == "weapons:gs"
        assert result.occupants == (sword,)

    def test_different_weapon_types_allowed(self, strict, make_entry, make_held):
        held = [make_held(make_entry("weapon", "gs"))]

        result = strict.evaluate(held, make_entry("weapon", "lb"), VotingContext.MAIN_PVP)

        assert isinstance(result, Allowed)

    def test_main_weapon_cap_still_applies(self, strict, make_entry, make_held):
        held = [make_held(make_entry("weapon", "gs")), make_held(make_entry("weapon", "lb"))]

        result = strict.evaluate(held, make_entry("weapon", "staff"), VotingContext.MAIN_PVP)

        assert isinstance(result, Denied)
        assert result.bucket_key == "weapons"

    def test_bucket_keys_for_weapon(self, strict, make_entry):
        assert strict.bucket_keys_for(make_entry("weapon", "gs")) == ["weapons", "weapons:gs"]


class TestEnsureAllowed:
    def test_returns_bucket_when_allowed(self, evaluator, make_entry):
        bucket = evaluator.ensure_allowed([], make_entry("armor", "boots"), VotingContext.MAIN_PVP)
        assert bucket.key == "boots"

    def test_raises_capacity_exceeded_with_occupants(self, evaluator, make_entry, make_held):
        held = [make_held(make_entry("armor", "boots"))]

        with pytest.raises(CapacityExceededError) as exc_info:
            evaluator.ensure_allowed(held, make_entry("armor", "boots"), VotingContext.MAIN_PVP)

        assert exc_info.value.code == "CAPACITY_EXCEEDED"
        assert exc_info.value.bucket.key == "boots"
        assert exc_info.value.occupants == tuple(held)
