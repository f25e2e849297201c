"""
Reward Engine - pure functions for mystery box rolls.

Luck raises the weight of rarer tiers, the cumulative distribution is
normalized before sampling, and a pity streak can override the roll.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.
"""
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

RARITY_ORDER = ('common', 'uncommon', 'rare', 'epic', 'legendary')
PITY_RARITIES = RARITY_ORDER[1:]

DEFAULT_RARITY_WEIGHTS = {
    'common': 0.20,
    'uncommon': 0.40,
    'rare': 0.60,
    'epic': 0.80,
    'legendary': 1.00,
}

TOTAL_DROP_CHANCE = 100.0
DROP_CHANCE_TOLERANCE = 1e-6


class PoolValidationError(ValueError):
    """A template configuration breaks a pool invariant."""


@dataclass(frozen=True)
class PoolEntry:
    item_id: int
    rarity: str
    base_drop_chance: float
    is_mystery_box: bool = False


@dataclass
class RollResult:
    entry: PoolEntry
    pity_triggered: bool
    luck_bonus: float
    recent_opens: List[str] = field(default_factory=list)


def rarity_rank(rarity: str) -> int:
    """0 for common up to 4 for legendary."""
    try:
        return RARITY_ORDER.index((rarity or '').lower())
    except ValueError:
        raise PoolValidationError(f"Unknown rarity '{rarity}'. Expected one of: {', '.join(RARITY_ORDER)}")


def validate_rarity_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """Every tier must have a weight and weights must rise with rarity."""
    missing = [tier for tier in RARITY_ORDER if tier not in weights]
    if missing:
        raise PoolValidationError(f"Missing rarity weights for: {', '.join(missing)}")

    ordered = [float(weights[tier]) for tier in RARITY_ORDER]
    if any(w < 0 for w in ordered):
        raise PoolValidationError("Rarity weights must be >= 0")
    for lower, higher in zip(ordered, ordered[1:]):
        if higher <= lower:
            raise PoolValidationError("Rarity weights must increase strictly from common to legendary")
    return dict(zip(RARITY_ORDER, ordered))


def luck_bonus(student_luck: float, luck_multiplier: float) -> float:
    return max(0.0, float(student_luck or 0) - 1.0) * float(luck_multiplier or 0)


def adjusted_chances(
    pool: Sequence[PoolEntry],
    bonus: float,
    weights: Mapping[str, float] = DEFAULT_RARITY_WEIGHTS,
) -> List[float]:
    return [
        entry.base_drop_chance * (1.0 + bonus * weights[entry.rarity])
        for entry in pool
    ]


def cumulative_distribution(
    pool: Sequence[PoolEntry],
    bonus: float,
    weights: Mapping[str, float] = DEFAULT_RARITY_WEIGHTS,
) -> List[float]:
    """
    Normalized cumulative boundaries; the last one is exactly 1.0.

    Normalizing the running sums (instead of each chance) keeps float
    drift out of the final boundary.
    """
    chances = adjusted_chances(pool, bonus, weights)
    total = math.fsum(chances)
    if total <= 0:
        raise PoolValidationError("Mystery box pool has no positive drop chance")

    boundaries = []
    running = 0.0
    for chance in chances:
        running += chance
        boundaries.append(min(1.0, running / total))
    if boundaries:
        boundaries[-1] = 1.0
    return boundaries


def final_chances(
    pool: Sequence[PoolEntry],
    bonus: float,
    weights: Mapping[str, float] = DEFAULT_RARITY_WEIGHTS,
) -> List[float]:
    """Per-entry probabilities derived from the cumulative distribution."""
    boundaries = cumulative_distribution(pool, bonus, weights)
    previous = 0.0
    probabilities = []
    for boundary in boundaries:
        probabilities.append(boundary - previous)
        previous = boundary
    return probabilities


def pity_due(recent_opens: Sequence[str], threshold: int, minimum_rarity: str) -> bool:
    """True when the last `threshold` opens were all below the minimum tier."""
    if threshold <= 0 or len(recent_opens) < threshold:
        return False
    minimum = rarity_rank(minimum_rarity)
    return all(rarity_rank(tier) < minimum for tier in list(recent_opens)[-threshold:])


def pity_candidates(pool: Sequence[PoolEntry], minimum_rarity: str) -> List[PoolEntry]:
    minimum = rarity_rank(minimum_rarity)
    return [entry for entry in pool if rarity_rank(entry.rarity) >= minimum]


def push_recent(recent_opens: Sequence[str], rarity: str, capacity: int) -> List[str]:
    """Append to the ring buffer, keeping at most `capacity` newest tiers."""
    updated = list(recent_opens) + [rarity]
    if capacity <= 0:
        return []
    return updated[-capacity:]


def sample(pool: Sequence[PoolEntry], boundaries: Sequence[float], draw: float) -> PoolEntry:
    """First entry whose cumulative boundary exceeds the draw in [0, 1)."""
    for entry, boundary in zip(pool, boundaries):
        if boundary > draw:
            return entry
    return pool[-1]


def roll(
    pool: Sequence[PoolEntry],
    student_luck: float,
    luck_multiplier: float,
    recent_opens: Sequence[str] = (),
    pity_enabled: bool = False,
    pity_threshold: int = 10,
    pity_minimum_rarity: str = 'rare',
    weights: Mapping[str, float] = DEFAULT_RARITY_WEIGHTS,
    rng: Optional[random.Random] = None,
) -> RollResult:
    """
    Pick one pool entry for an open.

    When pity is due the weighted roll is skipped and an entry at or above
    the minimum tier is picked uniformly; the streak then starts over.
    """
    if not pool:
        raise PoolValidationError("Mystery box pool is empty")

    rng = rng or random.Random()
    bonus = luck_bonus(student_luck, luck_multiplier)

    if pity_enabled and pity_due(recent_opens, pity_threshold, pity_minimum_rarity):
        candidates = pity_candidates(pool, pity_minimum_rarity)
        if not candidates:
            raise PoolValidationError(
                f"No pool item is '{pity_minimum_rarity}' or rarer; pity cannot be honored"
            )
        entry = rng.choice(candidates)
        return RollResult(entry=entry, pity_triggered=True, luck_bonus=bonus, recent_opens=[])

    boundaries = cumulative_distribution(pool, bonus, weights)
    entry = sample(pool, boundaries, rng.random())
    capacity = pity_threshold if pity_enabled else 0
    return RollResult(
        entry=entry,
        pity_triggered=False,
        luck_bonus=bonus,
        recent_opens=push_recent(recent_opens, entry.rarity, capacity),
    )


def validate_pool(
    entries: Sequence[PoolEntry],
    pity_enabled: bool = False,
    pity_threshold: int = 10,
    pity_minimum_rarity: str = 'rare',
) -> None:
    """
    Template invariants, checked when a template is created or updated.

    Raises PoolValidationError with a message naming the broken rule.
    """
    if not entries:
        raise PoolValidationError("Item pool must contain at least one item")

    seen = set()
    for entry in entries:
        rarity_rank(entry.rarity)
        if entry.is_mystery_box:
            raise PoolValidationError(
                f"Item {entry.item_id} is a mystery box; mystery boxes cannot contain mystery boxes"
            )
        if entry.item_id in seen:
            raise PoolValidationError(
                "Duplicate items are not allowed in the item pool. Each item can only be added once."
            )
        seen.add(entry.item_id)
        if entry.base_drop_chance < 0 or entry.base_drop_chance > TOTAL_DROP_CHANCE:
            raise PoolValidationError(
                f"Drop chance for item {entry.item_id} must be between 0 and 100"
            )

    total = math.fsum(entry.base_drop_chance for entry in entries)
    if abs(total - TOTAL_DROP_CHANCE) > DROP_CHANCE_TOLERANCE:
        raise PoolValidationError(f"Total drop chance must equal 100% (currently {total:.2f}%)")

    if pity_enabled:
        if pity_threshold is None or pity_threshold < 1:
            raise PoolValidationError("Pity threshold must be at least 1")
        if pity_minimum_rarity not in PITY_RARITIES:
            raise PoolValidationError(
                f"Pity minimum rarity must be one of: {', '.join(PITY_RARITIES)}"
            )
        if not pity_candidates(entries, pity_minimum_rarity):
            raise PoolValidationError(
                f"Pity is enabled but no pool item is '{pity_minimum_rarity}' or rarer"
            )
