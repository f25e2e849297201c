"""
Bridge from committed domain signals to Socket.IO rooms.

Rooms: user-<id> for personal updates, group-<id> for siphon and
membership traffic, classroom-<id> for classroom-wide feeds.
"""
from flask import current_app

from ...core.signals import (
    adjustment_queued,
    balance_updated,
    group_updated,
    mystery_box_opened,
    siphon_created,
    siphon_review_requested,
    siphon_updated,
    siphon_voted,
)
from ...extensions import socketio


def user_room(user_id) -> str:
    return f'user-{user_id}'


def group_room(group_id) -> str:
    return f'group-{group_id}'


def classroom_room(classroom_id) -> str:
    return f'classroom-{classroom_id}'


def _emit(event: str, payload: dict, room: str) -> None:
    try:
        socketio.emit(event, payload, to=room)
    except Exception as e:
        # State is already committed at this point
        current_app.logger.error(f"[Realtime] Failed to emit {event} to {room}: {e}")


def on_balance_updated(sender, student_id, classroom_id, new_balance, **kwargs):
    _emit(
        'balance_update',
        {'studentId': student_id, 'newBalance': new_balance, 'classroomId': classroom_id},
        user_room(student_id),
    )


def on_adjustment_queued(sender, pending, teacher_id, **kwargs):
    _emit('adjustment_pending', pending.to_dict(), user_room(teacher_id))


def on_group_updated(sender, group, **kwargs):
    _emit('group_update', group.to_dict(), group_room(group.group_id))


def on_siphon_created(sender, siphon, **kwargs):
    _emit('siphon_create', siphon.to_dict(), group_room(siphon.group_id))


def on_siphon_voted(sender, siphon, **kwargs):
    _emit('siphon_vote', siphon.to_dict(), group_room(siphon.group_id))


def on_siphon_updated(sender, siphon, **kwargs):
    _emit('siphon_update', siphon.to_dict(), group_room(siphon.group_id))


def on_siphon_review_requested(sender, siphon, teacher_id, **kwargs):
    _emit('siphon_review', siphon.to_dict(), user_room(teacher_id))


def on_mystery_box_opened(sender, classroom_id, student_id, template_name, item_name, rarity, is_pity, **kwargs):
    _emit(
        'mystery_box_opened',
        {
            'studentId': student_id,
            'mysteryBox': template_name,
            'itemName': item_name,
            'rarity': rarity,
            'isPityTriggered': is_pity,
        },
        classroom_room(classroom_id),
    )


def register_events():
    """Connect signals."""
    balance_updated.connect(on_balance_updated)
    adjustment_queued.connect(on_adjustment_queued)
    group_updated.connect(on_group_updated)
    siphon_created.connect(on_siphon_created)
    siphon_voted.connect(on_siphon_voted)
    siphon_updated.connect(on_siphon_updated)
    siphon_review_requested.connect(on_siphon_review_requested)
    mystery_box_opened.connect(on_mystery_box_opened)
