import pytest

from prizeversity_app import db
from prizeversity_app.modules.realtime import events
from prizeversity_app.modules.realtime.sockets import can_join
from prizeversity_app.modules.siphon.services.siphon_service import SiphonService
from prizeversity_app.modules.wallet.services.adjustment_service import AdjustmentService


@pytest.fixture
def emitted(monkeypatch):
    calls = []

    def fake_emit(event, payload, to=None, **kwargs):
        calls.append((event, payload, to))

    monkeypatch.setattr(events.socketio, 'emit', fake_emit)
    return calls


class TestEvents:

    def test_balance_update_goes_to_student_room(self, builder, emitted):
        classroom = builder.classroom()
        student = builder.student(classroom)
        db.session.commit()

        AdjustmentService.bulk_adjust(
            classroom.teacher, classroom.classroom_id, [{'studentId': student.user_id, 'amount': 25}]
        )

        assert ('balance_update', {
            'studentId': student.user_id,
            'newBalance': 25,
            'classroomId': classroom.classroom_id,
        }, f'user-{student.user_id}') in emitted

    def test_siphon_traffic_goes_to_group_room(self, builder, emitted):
        classroom = builder.classroom()
        target = builder.student(classroom)
        voter = builder.student(classroom)
        group = builder.group(builder.group_set(classroom), members=[target, voter])
        db.session.commit()

        siphon = SiphonService.create_siphon(group.group_id, voter, target.user_id, 5, 'Skipped the demo')

        names = [(event, room) for event, _, room in emitted]
        assert ('siphon_create', f'group-{group.group_id}') in names
        assert emitted[-1][1]['siphonId'] == siphon.siphon_id

    def test_failed_emit_does_not_break_the_operation(self, builder, monkeypatch, balance_of):
        classroom = builder.classroom()
        student = builder.student(classroom)
        db.session.commit()

        def broken_emit(*args, **kwargs):
            raise RuntimeError('socket gone')

        monkeypatch.setattr(events.socketio, 'emit', broken_emit)
        AdjustmentService.bulk_adjust(
            classroom.teacher, classroom.classroom_id, [{'studentId': student.user_id, 'amount': 5}]
        )

        assert balance_of(student, classroom) == 5


class TestRoomAccess:

    def test_own_room_only(self, builder):
        classroom = builder.classroom()
        student = builder.student(classroom)
        other = builder.student(classroom)
        db.session.commit()

        assert can_join(student, f'user-{student.user_id}')
        assert not can_join(student, f'user-{other.user_id}')

    def test_group_room_needs_approved_membership(self, builder):
        classroom = builder.classroom()
        member = builder.student(classroom)
        outsider = builder.student(classroom)
        group = builder.group(builder.group_set(classroom), members=[member])
        db.session.commit()

        room = f'group-{group.group_id}'
        assert can_join(member, room)
        assert can_join(classroom.teacher, room)
        assert not can_join(outsider, room)

    def test_classroom_room_needs_enrollment(self, builder):
        classroom = builder.classroom()
        student = builder.student(classroom)
        stranger = builder.user()
        db.session.commit()

        assert can_join(student, f'classroom-{classroom.classroom_id}')
        assert not can_join(stranger, f'classroom-{classroom.classroom_id}')

    @pytest.mark.parametrize('room', [None, '', 'lobby', 'user-abc', 'admin-1'])
    def test_malformed_rooms_rejected(self, builder, room):
        student = builder.user()
        db.session.commit()

        assert not can_join(student, room)
