import pytest

from prizeversity_app import db
from prizeversity_app.core.error_handlers import ConflictError, NotFoundError, PolicyError
from prizeversity_app.models import GroupMember
from prizeversity_app.modules.classroom.services.classroom_service import ClassroomService
from prizeversity_app.modules.groups.services.membership_service import MembershipService


@pytest.fixture
def classroom(builder):
    classroom = builder.classroom()
    db.session.commit()
    return classroom


def _status_of(group, user):
    member = GroupMember.query.filter_by(group_id=group.group_id, user_id=user.user_id).first()
    return member.status if member else None


class TestJoining:

    def test_open_set_approves_immediately_and_derives_multiplier(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, increment=0.1))
        first = builder.student(classroom)
        second = builder.student(classroom)
        db.session.commit()

        MembershipService.request_join(group.group_id, first)
        MembershipService.request_join(group.group_id, second)

        assert _status_of(group, first) == GroupMember.STATUS_APPROVED
        assert group.group_multiplier == pytest.approx(1.2)

    def test_approval_set_leaves_request_pending(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, increment=0.1, join_approval=True))
        student = builder.student(classroom)
        db.session.commit()

        MembershipService.request_join(group.group_id, student)

        assert _status_of(group, student) == GroupMember.STATUS_PENDING
        assert group.group_multiplier == pytest.approx(1.0)

    def test_full_group_rejects_new_members(self, builder, classroom):
        group = builder.group(builder.group_set(classroom), max_members=1)
        first = builder.student(classroom)
        second = builder.student(classroom)
        db.session.commit()

        MembershipService.request_join(group.group_id, first)
        with pytest.raises(ConflictError, match='full'):
            MembershipService.request_join(group.group_id, second)

    def test_set_wide_cap_applies_when_group_has_none(self, builder, classroom):
        first = builder.student(classroom)
        group = builder.group(builder.group_set(classroom, max_members=1), members=[first])
        second = builder.student(classroom)
        db.session.commit()

        with pytest.raises(ConflictError):
            MembershipService.request_join(group.group_id, second)

    def test_one_approved_group_per_set(self, builder, classroom):
        student = builder.student(classroom)
        group_set = builder.group_set(classroom)
        builder.group(group_set, members=[student], name='Red')
        blue = builder.group(group_set, name='Blue')
        db.session.commit()

        with pytest.raises(ConflictError, match='already a member'):
            MembershipService.request_join(blue.group_id, student)

    def test_one_pending_request_per_set(self, builder, classroom):
        student = builder.student(classroom)
        group_set = builder.group_set(classroom, join_approval=True)
        red = builder.group(group_set, name='Red')
        blue = builder.group(group_set, name='Blue')
        db.session.commit()

        MembershipService.request_join(red.group_id, student)
        with pytest.raises(ConflictError, match='pending'):
            MembershipService.request_join(blue.group_id, student)

    def test_groups_in_other_sets_are_independent(self, builder, classroom):
        student = builder.student(classroom)
        builder.group(builder.group_set(classroom), members=[student])
        other = builder.group(builder.group_set(classroom))
        db.session.commit()

        MembershipService.request_join(other.group_id, student)

        assert _status_of(other, student) == GroupMember.STATUS_APPROVED

    def test_outsiders_and_banned_students_cannot_join(self, builder, classroom):
        group = builder.group(builder.group_set(classroom))
        outsider = builder.user()
        banned = builder.student(classroom)
        ClassroomService.ban_student(classroom, banned.user_id)
        db.session.commit()

        with pytest.raises(PolicyError):
            MembershipService.request_join(group.group_id, outsider)
        with pytest.raises(PolicyError):
            MembershipService.request_join(group.group_id, banned)

    def test_join_over_http(self, builder, classroom, login, client):
        group = builder.group(builder.group_set(classroom))
        student = builder.student(classroom)
        db.session.commit()

        login(student)
        response = client.post(f'/api/groups/{group.group_id}/join')

        assert response.status_code == 200
        members = response.get_json()['group']['members']
        assert [(m['userId'], m['status']) for m in members] == [(student.user_id, 'approved')]


class TestApprovalFlow:

    def test_teacher_approves_pending_member(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, increment=0.25, join_approval=True))
        student = builder.student(classroom)
        db.session.commit()
        MembershipService.request_join(group.group_id, student)

        MembershipService.approve_member(group.group_id, student.user_id, classroom.teacher)

        assert _status_of(group, student) == GroupMember.STATUS_APPROVED
        assert group.group_multiplier == pytest.approx(1.25)

    def test_ta_can_approve(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, join_approval=True))
        ta = builder.ta(classroom)
        student = builder.student(classroom)
        db.session.commit()
        MembershipService.request_join(group.group_id, student)

        MembershipService.approve_member(group.group_id, student.user_id, ta)

        assert _status_of(group, student) == GroupMember.STATUS_APPROVED

    def test_students_cannot_approve(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, join_approval=True))
        student = builder.student(classroom)
        peer = builder.student(classroom)
        db.session.commit()
        MembershipService.request_join(group.group_id, student)

        with pytest.raises(PolicyError):
            MembershipService.approve_member(group.group_id, student.user_id, peer)

    def test_approval_respects_capacity(self, builder, classroom):
        group_set = builder.group_set(classroom, join_approval=True)
        group = builder.group(group_set, max_members=1)
        first = builder.student(classroom)
        second = builder.student(classroom)
        db.session.commit()
        MembershipService.request_join(group.group_id, first)
        MembershipService.request_join(group.group_id, second)
        MembershipService.approve_member(group.group_id, first.user_id, classroom.teacher)

        with pytest.raises(ConflictError):
            MembershipService.approve_member(group.group_id, second.user_id, classroom.teacher)

    def test_approving_unknown_request_is_not_found(self, builder, classroom):
        group = builder.group(builder.group_set(classroom))
        student = builder.student(classroom)
        db.session.commit()

        with pytest.raises(NotFoundError):
            MembershipService.approve_member(group.group_id, student.user_id, classroom.teacher)

    def test_reject_removes_request(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, join_approval=True))
        student = builder.student(classroom)
        db.session.commit()
        MembershipService.request_join(group.group_id, student)

        MembershipService.reject_member(group.group_id, student.user_id, classroom.teacher)

        assert _status_of(group, student) is None

    def test_leaving_recomputes_multiplier(self, builder, classroom):
        a = builder.student(classroom)
        b = builder.student(classroom)
        group = builder.group(builder.group_set(classroom, increment=0.1), members=[a, b], group_multiplier=1.2)
        db.session.commit()

        MembershipService.leave_group(group.group_id, a)

        assert group.approved_member_ids == [b.user_id]
        assert group.group_multiplier == pytest.approx(1.1)


class TestManualMultiplier:

    def test_teacher_sets_multiplier(self, builder, classroom, login, client):
        group = builder.group(builder.group_set(classroom))
        db.session.commit()

        login(classroom.teacher)
        response = client.post(f'/api/groups/{group.group_id}/multiplier', json={'multiplier': 2.5})

        assert response.status_code == 200
        assert response.get_json()['group']['groupMultiplier'] == 2.5

    @pytest.mark.parametrize('value', [0.4, 5.5, -1])
    def test_out_of_range_values_rejected(self, builder, classroom, login, client, value):
        group = builder.group(builder.group_set(classroom))
        db.session.commit()

        login(classroom.teacher)
        response = client.post(f'/api/groups/{group.group_id}/multiplier', json={'multiplier': value})

        assert response.status_code == 400
        assert group.group_multiplier == 1.0

    def test_derived_sets_cannot_be_overridden(self, builder, classroom):
        group = builder.group(builder.group_set(classroom, increment=0.1))
        db.session.commit()

        with pytest.raises(ConflictError):
            MembershipService.set_group_multiplier(group.group_id, 2.0, classroom.teacher)

    def test_only_teacher_sets_multiplier(self, builder, classroom, login, client):
        group = builder.group(builder.group_set(classroom))
        ta = builder.ta(classroom)
        db.session.commit()

        login(ta)
        response = client.post(f'/api/groups/{group.group_id}/multiplier', json={'multiplier': 2.0})

        assert response.status_code == 403
