from datetime import datetime, timedelta, timezone

import pytest

from prizeversity_app.modules.siphon.logics import state_machine as sm


class TestTransitions:
    """Allowed moves through the siphon lifecycle."""

    def test_pending_moves_on_group_outcome(self):
        assert sm.next_status(sm.PENDING, sm.GROUP_APPROVED) == sm.GROUP_APPROVED
        assert sm.next_status(sm.PENDING, sm.GROUP_REJECTED) == sm.GROUP_REJECTED

    def test_teacher_decides_only_after_group_approval(self):
        assert sm.can_transition(sm.GROUP_APPROVED, sm.TEACHER_APPROVED)
        assert sm.can_transition(sm.GROUP_APPROVED, sm.TEACHER_REJECTED)
        assert not sm.can_transition(sm.PENDING, sm.TEACHER_APPROVED)

    def test_both_active_states_can_expire(self):
        assert sm.can_transition(sm.PENDING, sm.EXPIRED)
        assert sm.can_transition(sm.GROUP_APPROVED, sm.EXPIRED)

    @pytest.mark.parametrize('terminal', sorted(sm.TERMINAL))
    def test_terminal_states_are_final(self, terminal):
        for target in (sm.PENDING, sm.GROUP_APPROVED, sm.EXPIRED, sm.TEACHER_APPROVED):
            with pytest.raises(sm.IllegalTransition):
                sm.next_status(terminal, target)

    def test_every_terminal_state_releases_the_freeze(self):
        assert all(sm.releases_freeze(status) for status in sm.TERMINAL)
        assert not sm.releases_freeze(sm.PENDING)
        assert not sm.releases_freeze(sm.GROUP_APPROVED)

    def test_vote_outcome_mapping(self):
        assert sm.status_after_vote(sm.PENDING, 'approved') == sm.GROUP_APPROVED
        assert sm.status_after_vote(sm.PENDING, 'rejected') == sm.GROUP_REJECTED
        assert sm.status_after_vote(sm.PENDING, 'undecided') == sm.PENDING
        assert sm.status_after_vote(sm.GROUP_APPROVED, 'rejected') == sm.GROUP_APPROVED


class TestTimeouts:

    def test_classroom_timeout_is_clamped(self):
        assert sm.resolve_timeout_hours(None, 72) == 72
        assert sm.resolve_timeout_hours(24, 72) == 24
        assert sm.resolve_timeout_hours(500, 72) == 168
        assert sm.resolve_timeout_hours(-5, 72) == 1

    def test_expiry_is_creation_plus_timeout(self):
        created = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

        assert sm.compute_expiry(created, 72) == created + timedelta(hours=72)


class TestSplitTransfer:

    def test_even_split(self):
        assert sm.split_transfer(30, 3) == (10, 30)

    def test_remainder_stays_with_target(self):
        assert sm.split_transfer(31, 3) == (10, 30)
        assert sm.split_transfer(2, 5) == (0, 0)

    def test_no_recipients(self):
        assert sm.split_transfer(30, 0) == (0, 0)
