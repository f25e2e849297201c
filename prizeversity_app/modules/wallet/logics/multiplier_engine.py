"""
Multiplier Engine - pure functions composing multipliers onto bit amounts.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.
"""
import math
from dataclasses import dataclass
from typing import Iterable

DEFAULT_MULTIPLIER = 1.0

# Bounds a teacher may set by hand on a group
MIN_MANUAL_GROUP_MULTIPLIER = 0.5
MAX_MANUAL_GROUP_MULTIPLIER = 5.0


@dataclass(frozen=True)
class MultiplierResult:
    """Final amount plus the multipliers that were actually applied."""

    base_amount: int
    final_amount: int
    applied_personal: float
    applied_group: float

    @property
    def effective_multiplier(self) -> float:
        return self.applied_personal * self.applied_group


def _check_multiplier(name: str, value: float) -> float:
    value = float(value)
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise ValueError(f"{name} must be a finite number >= 0, got {value!r}")
    return value


def apply_multipliers(
    base_amount: int,
    personal_multiplier: float = DEFAULT_MULTIPLIER,
    group_multiplier: float = DEFAULT_MULTIPLIER,
    apply_personal: bool = True,
    apply_group: bool = True,
) -> MultiplierResult:
    """
    Compose personal and group multipliers onto a base amount.

    Debits (base_amount < 0) always pass through at face value, whatever the
    flags say. Credits are floored after multiplying.

    Examples:
        >>> apply_multipliers(100, 1.2, 1.4).final_amount
        168
        >>> apply_multipliers(-50, 2.0, 2.0).final_amount
        -50
    """
    base_amount = int(base_amount)
    personal_multiplier = _check_multiplier('personal_multiplier', personal_multiplier)
    group_multiplier = _check_multiplier('group_multiplier', group_multiplier)

    if base_amount < 0:
        return MultiplierResult(base_amount, base_amount, DEFAULT_MULTIPLIER, DEFAULT_MULTIPLIER)

    applied_personal = personal_multiplier if apply_personal else DEFAULT_MULTIPLIER
    applied_group = group_multiplier if apply_group else DEFAULT_MULTIPLIER
    # round() first so 100 * 1.2 * 1.4 = 167.99999999999997 floors to 168
    final_amount = math.floor(round(base_amount * applied_personal * applied_group, 9))

    return MultiplierResult(base_amount, final_amount, applied_personal, applied_group)


def derive_group_multiplier(
    approved_member_count: int,
    increment: float,
    manual_multiplier: float = DEFAULT_MULTIPLIER,
) -> float:
    """
    Group multiplier after a membership change.

    With a positive set-wide increment the multiplier is derived from the
    approved headcount; otherwise the manually configured value stays.
    """
    if increment and increment > 0:
        return round(1 + max(0, approved_member_count) * increment, 6)
    return manual_multiplier if manual_multiplier is not None else DEFAULT_MULTIPLIER


def combine_group_multipliers(multipliers: Iterable[float]) -> float:
    """
    A student in several groups of one classroom gets every group's bonus
    added on top of 1.0. Groups at or below 1.0 contribute nothing.
    """
    total = DEFAULT_MULTIPLIER
    for value in multipliers:
        value = value if value is not None else DEFAULT_MULTIPLIER
        if value > DEFAULT_MULTIPLIER:
            total += value - DEFAULT_MULTIPLIER
    return round(total, 6)


def validate_manual_group_multiplier(value) -> float:
    value = _check_multiplier('group_multiplier', value)
    if value < MIN_MANUAL_GROUP_MULTIPLIER or value > MAX_MANUAL_GROUP_MULTIPLIER:
        raise ValueError(
            f"Multiplier must be between {MIN_MANUAL_GROUP_MULTIPLIER} and {MAX_MANUAL_GROUP_MULTIPLIER}"
        )
    return value
