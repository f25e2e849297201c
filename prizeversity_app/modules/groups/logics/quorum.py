"""
Quorum Logic - pure functions deciding group votes.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Set, Tuple

APPROVED = 'approved'

OUTCOME_APPROVED = 'approved'
OUTCOME_REJECTED = 'rejected'
OUTCOME_UNDECIDED = 'undecided'


@dataclass(frozen=True)
class VoteTally:
    yes: int
    no: int

    @property
    def total(self) -> int:
        return self.yes + self.no


def eligible_voters(members: Iterable[Tuple[int, str]], target_user_id: int) -> Set[int]:
    """
    Approved members excluding the target.

    Args:
        members: (user_id, status) pairs.
        target_user_id: the member being voted on.
    """
    return {
        user_id for user_id, status in members
        if status == APPROVED and user_id != target_user_id
    }


def majority_threshold(eligible_count: int) -> int:
    """ceil(n / 2). Approval needs strictly more yes votes than floor(n / 2)."""
    return math.ceil(max(0, eligible_count) / 2)


def votes_needed(eligible_count: int) -> int:
    """Yes votes that decide approval: floor(n / 2) + 1."""
    return max(0, eligible_count) // 2 + 1


def tally(votes: Iterable[str]) -> VoteTally:
    yes = no = 0
    for vote in votes:
        if vote == 'yes':
            yes += 1
        elif vote == 'no':
            no += 1
    return VoteTally(yes=yes, no=no)


def tally_eligible(votes: Mapping[int, str], voters: Set[int]) -> VoteTally:
    """Tally only ballots from users who are still eligible."""
    return tally(vote for user_id, vote in votes.items() if user_id in voters)


def evaluate(current: VoteTally, eligible_count: int) -> str:
    """
    Decide the vote as soon as the outcome is certain.

    Approved once yes > floor(n / 2): n=5 needs 3, n=4 needs 3.
    Rejected once even every outstanding ballot voting yes could not
    reach that, i.e. yes + outstanding <= floor(n / 2).
    """
    if eligible_count <= 0:
        return OUTCOME_REJECTED

    needed = votes_needed(eligible_count)
    if current.yes >= needed:
        return OUTCOME_APPROVED

    outstanding = max(0, eligible_count - current.total)
    if current.yes + outstanding < needed:
        return OUTCOME_REJECTED

    return OUTCOME_UNDECIDED
