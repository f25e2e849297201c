"""
Siphon lifecycle rules - pure functions.

    pending --(yes majority)--> group_approved --(teacher)--> teacher_approved
                                               \\--(teacher)--> teacher_rejected
    pending --(yes impossible)--> group_rejected
    pending | group_approved --(expires_at passed)--> expired

NO database, NO Flask, NO model dependencies allowed.
"""
from datetime import datetime, timedelta
from typing import Optional

PENDING = 'pending'
GROUP_APPROVED = 'group_approved'
GROUP_REJECTED = 'group_rejected'
TEACHER_APPROVED = 'teacher_approved'
TEACHER_REJECTED = 'teacher_rejected'
EXPIRED = 'expired'

ACTIVE = frozenset({PENDING, GROUP_APPROVED})
TERMINAL = frozenset({GROUP_REJECTED, TEACHER_APPROVED, TEACHER_REJECTED, EXPIRED})

TRANSITIONS = {
    PENDING: frozenset({GROUP_APPROVED, GROUP_REJECTED, EXPIRED}),
    GROUP_APPROVED: frozenset({TEACHER_APPROVED, TEACHER_REJECTED, EXPIRED}),
}

DEFAULT_TIMEOUT_HOURS = 72
MIN_TIMEOUT_HOURS = 1
MAX_TIMEOUT_HOURS = 168


class IllegalTransition(Exception):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move a siphon from '{current}' to '{target}'")


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def next_status(current: str, target: str) -> str:
    if not can_transition(current, target):
        raise IllegalTransition(current, target)
    return target


def status_after_vote(current: str, outcome: str) -> str:
    """Map a quorum outcome onto the lifecycle; only pending requests move."""
    if current != PENDING:
        return current
    if outcome == 'approved':
        return GROUP_APPROVED
    if outcome == 'rejected':
        return GROUP_REJECTED
    return current


def releases_freeze(status: str) -> bool:
    """Every terminal state lifts the target's freeze."""
    return status in TERMINAL


def resolve_timeout_hours(classroom_hours: Optional[int], default_hours: int = DEFAULT_TIMEOUT_HOURS) -> int:
    hours = classroom_hours if classroom_hours else default_hours
    return max(MIN_TIMEOUT_HOURS, min(MAX_TIMEOUT_HOURS, int(hours)))


def compute_expiry(created_at: datetime, timeout_hours: int) -> datetime:
    return created_at + timedelta(hours=timeout_hours)


def split_transfer(amount: int, recipient_count: int):
    """
    Share a siphoned amount evenly.

    Returns (per_recipient, debited); the indivisible remainder stays with
    the target, so debited = per_recipient * recipient_count.
    """
    if recipient_count <= 0:
        return 0, 0
    per_recipient = amount // recipient_count
    return per_recipient, per_recipient * recipient_count
