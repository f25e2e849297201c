"""
Tests for the Mystery Box Reward Engine

Tests cover:
- Luck-adjusted and normalized drop chances
- Weighted sampling against cumulative boundaries
- The pity override and its streak reset
- Template pool validation
"""

import random

import pytest

from prizeversity_app.modules.mystery_box.logics.reward_engine import (
    PoolEntry,
    PoolValidationError,
    cumulative_distribution,
    final_chances,
    luck_bonus,
    pity_due,
    push_recent,
    roll,
    sample,
    validate_pool,
    validate_rarity_weights,
)


class FixedRandom:
    """Deterministic stand-in for random.Random."""

    def __init__(self, draws):
        self._draws = list(draws)

    def random(self):
        return self._draws.pop(0)

    def choice(self, seq):
        return seq[0]


COMMON_RARE = [PoolEntry(1, 'common', 60.0), PoolEntry(2, 'rare', 40.0)]

MIXED_POOL = [
    PoolEntry(1, 'common', 50.0),
    PoolEntry(2, 'uncommon', 25.0),
    PoolEntry(3, 'rare', 15.0),
    PoolEntry(4, 'epic', 7.0),
    PoolEntry(5, 'legendary', 3.0),
]


class TestChances:

    def test_no_luck_leaves_base_chances_unchanged(self):
        chances = final_chances(COMMON_RARE, luck_bonus(1.0, 1.5))

        assert chances[0] == pytest.approx(0.60, abs=1e-9)
        assert chances[1] == pytest.approx(0.40, abs=1e-9)

    def test_luck_bonus_formula(self):
        assert luck_bonus(1.0, 1.5) == 0.0
        assert luck_bonus(0.5, 1.5) == 0.0
        assert luck_bonus(2.0, 1.5) == 1.5

    def test_luck_shifts_weight_towards_rarer_items(self):
        lucky = final_chances(COMMON_RARE, luck_bonus(2.0, 1.0))

        assert lucky[1] > 0.40
        assert lucky[0] < 0.60

    @pytest.mark.parametrize('student_luck', [1.0, 1.3, 2.0, 5.0, 17.5])
    @pytest.mark.parametrize('luck_multiplier', [0.0, 1.0, 1.5, 3.0])
    def test_normalized_chances_sum_to_one(self, student_luck, luck_multiplier):
        chances = final_chances(MIXED_POOL, luck_bonus(student_luck, luck_multiplier))

        assert abs(sum(chances) - 1.0) <= 1e-9

    def test_last_cumulative_boundary_is_exactly_one(self):
        boundaries = cumulative_distribution(MIXED_POOL, luck_bonus(3.3, 1.7))

        assert boundaries[-1] == 1.0
        assert boundaries == sorted(boundaries)

    def test_sample_picks_first_boundary_above_draw(self):
        boundaries = cumulative_distribution(COMMON_RARE, 0.0)

        assert sample(COMMON_RARE, boundaries, 0.0).item_id == 1
        assert sample(COMMON_RARE, boundaries, 0.59).item_id == 1
        assert sample(COMMON_RARE, boundaries, 0.61).item_id == 2

    def test_weights_must_rise_with_rarity(self):
        with pytest.raises(PoolValidationError):
            validate_rarity_weights({
                'common': 0.2, 'uncommon': 0.2, 'rare': 0.6, 'epic': 0.8, 'legendary': 1.0,
            })
        with pytest.raises(PoolValidationError):
            validate_rarity_weights({'common': 0.2})


class TestPity:
    """Pity forces a high tier after a streak of low ones."""

    def test_fourth_open_is_rare_or_better_after_three_commons(self):
        recent = []
        rng = FixedRandom([0.1, 0.2, 0.3])
        for _ in range(3):
            result = roll(
                COMMON_RARE, 1.0, 1.5, recent,
                pity_enabled=True, pity_threshold=3, pity_minimum_rarity='rare', rng=rng,
            )
            assert result.entry.rarity == 'common'
            assert not result.pity_triggered
            recent = result.recent_opens

        assert recent == ['common', 'common', 'common']

        fourth = roll(
            COMMON_RARE, 1.0, 1.5, recent,
            pity_enabled=True, pity_threshold=3, pity_minimum_rarity='rare', rng=rng,
        )
        assert fourth.pity_triggered
        assert fourth.entry.rarity == 'rare'
        assert fourth.recent_opens == []

    def test_pity_guarantee_holds_for_random_draws(self):
        rng = random.Random(1234)
        recent = []
        streak = 0
        for _ in range(500):
            result = roll(
                MIXED_POOL, 1.0, 1.5, recent,
                pity_enabled=True, pity_threshold=3, pity_minimum_rarity='rare', rng=rng,
            )
            if streak == 3:
                assert result.entry.rarity in ('rare', 'epic', 'legendary')
            if result.entry.rarity in ('common', 'uncommon'):
                streak += 1
            else:
                streak = 0
            recent = result.recent_opens
            assert len(recent) <= 3

    def test_pity_disabled_keeps_no_history(self):
        result = roll(COMMON_RARE, 1.0, 1.0, ['common'] * 5, pity_enabled=False, rng=FixedRandom([0.1]))

        assert not result.pity_triggered
        assert result.recent_opens == []

    def test_pity_due_only_after_full_streak(self):
        assert not pity_due(['common', 'common'], 3, 'rare')
        assert pity_due(['common', 'uncommon', 'common'], 3, 'rare')
        assert not pity_due(['common', 'rare', 'common'], 3, 'rare')

    def test_ring_buffer_keeps_newest(self):
        assert push_recent(['a', 'b', 'c'], 'd', 3) == ['b', 'c', 'd']


class TestPoolValidation:

    def test_valid_pool_passes(self):
        validate_pool(MIXED_POOL, pity_enabled=True, pity_threshold=5, pity_minimum_rarity='epic')

    def test_total_must_be_one_hundred(self):
        with pytest.raises(PoolValidationError, match='100'):
            validate_pool([PoolEntry(1, 'common', 60.0), PoolEntry(2, 'rare', 30.0)])

    def test_tiny_float_drift_is_tolerated(self):
        validate_pool([
            PoolEntry(1, 'common', 33.3333333),
            PoolEntry(2, 'rare', 33.3333333),
            PoolEntry(3, 'epic', 33.3333334),
        ])

    def test_duplicate_items_rejected(self):
        with pytest.raises(PoolValidationError, match='Duplicate'):
            validate_pool([PoolEntry(1, 'common', 50.0), PoolEntry(1, 'rare', 50.0)])

    def test_mystery_box_cannot_contain_mystery_box(self):
        with pytest.raises(PoolValidationError, match='mystery box'):
            validate_pool([PoolEntry(1, 'common', 100.0, is_mystery_box=True)])

    def test_chance_out_of_range_rejected(self):
        with pytest.raises(PoolValidationError):
            validate_pool([PoolEntry(1, 'common', 120.0), PoolEntry(2, 'rare', -20.0)])

    def test_empty_pool_rejected(self):
        with pytest.raises(PoolValidationError):
            validate_pool([])

    def test_pity_needs_an_eligible_item(self):
        with pytest.raises(PoolValidationError, match='no pool item'):
            validate_pool(
                [PoolEntry(1, 'common', 100.0)],
                pity_enabled=True, pity_threshold=3, pity_minimum_rarity='rare',
            )

    def test_pity_threshold_must_be_positive(self):
        with pytest.raises(PoolValidationError, match='threshold'):
            validate_pool(COMMON_RARE, pity_enabled=True, pity_threshold=0)
