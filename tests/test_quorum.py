"""
Tests for group vote quorum.
"""

import pytest

from prizeversity_app.modules.groups.logics.quorum import (
    OUTCOME_APPROVED,
    OUTCOME_REJECTED,
    OUTCOME_UNDECIDED,
    VoteTally,
    eligible_voters,
    evaluate,
    majority_threshold,
    tally,
    tally_eligible,
    votes_needed,
)


class TestEligibility:

    def test_target_and_pending_members_cannot_vote(self):
        members = [(1, 'approved'), (2, 'approved'), (3, 'pending'), (4, 'approved')]

        assert eligible_voters(members, target_user_id=2) == {1, 4}

    def test_ballots_from_departed_members_are_ignored(self):
        current = tally_eligible({1: 'yes', 2: 'yes', 9: 'yes'}, voters={1, 2, 3})

        assert current == VoteTally(yes=2, no=0)


class TestMajority:

    def test_threshold_examples(self):
        assert majority_threshold(5) == 3
        assert majority_threshold(4) == 2
        assert votes_needed(5) == 3
        assert votes_needed(4) == 3
        assert votes_needed(1) == 1

    @pytest.mark.parametrize('n', range(1, 12))
    def test_approved_exactly_when_yes_exceeds_half(self, n):
        for yes in range(0, n + 1):
            outcome = evaluate(VoteTally(yes=yes, no=0), n)
            if yes > n // 2:
                assert outcome == OUTCOME_APPROVED
            else:
                assert outcome != OUTCOME_APPROVED

    def test_undecided_while_majority_still_possible(self):
        assert evaluate(VoteTally(yes=2, no=0), 5) == OUTCOME_UNDECIDED
        assert evaluate(VoteTally(yes=1, no=2), 5) == OUTCOME_UNDECIDED

    def test_rejected_once_majority_is_out_of_reach(self):
        assert evaluate(VoteTally(yes=0, no=3), 5) == OUTCOME_REJECTED
        assert evaluate(VoteTally(yes=1, no=2), 4) == OUTCOME_REJECTED
        assert evaluate(VoteTally(yes=1, no=1), 4) == OUTCOME_UNDECIDED

    def test_no_eligible_voters_rejects(self):
        assert evaluate(VoteTally(yes=0, no=0), 0) == OUTCOME_REJECTED

    def test_tally_counts_only_known_ballots(self):
        assert tally(['yes', 'no', 'yes', 'maybe']) == VoteTally(yes=2, no=1)
