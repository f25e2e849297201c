from flask_login import current_user
from flask_socketio import join_room, leave_room

from ...extensions import db, socketio
from ...models import Classroom, ClassroomMember, Group, GroupMember


def can_join(user, room: str) -> bool:
    """Users may join their own room, groups they belong to and their classrooms."""
    if not user or not user.is_authenticated or not isinstance(room, str) or '-' not in room:
        return False
    kind, _, raw_id = room.partition('-')
    if not raw_id.isdigit():
        return False
    target_id = int(raw_id)

    if kind == 'user':
        return target_id == user.user_id

    if kind == 'group':
        group = db.session.get(Group, target_id)
        if group is None:
            return False
        if group.group_set.classroom.is_teacher(user.user_id):
            return True
        return GroupMember.query.filter_by(
            group_id=target_id, user_id=user.user_id, status=GroupMember.STATUS_APPROVED
        ).first() is not None

    if kind == 'classroom':
        classroom = db.session.get(Classroom, target_id)
        if classroom is None:
            return False
        if classroom.is_teacher(user.user_id):
            return True
        return ClassroomMember.query.filter_by(classroom_id=target_id, user_id=user.user_id).first() is not None

    return False


@socketio.on('join')
def on_join(data):
    room = (data or {}).get('room')
    if not can_join(current_user, room):
        return {'success': False, 'message': 'Cannot join this room'}
    join_room(room)
    return {'success': True, 'room': room}


@socketio.on('leave')
def on_leave(data):
    room = (data or {}).get('room')
    if not current_user.is_authenticated or not isinstance(room, str):
        return
    leave_room(room)
