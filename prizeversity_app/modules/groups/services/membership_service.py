"""
Membership Service
Joining, approval and departure of group members.

Invariants kept here: a student holds at most one approved and at most one
pending membership per GroupSet, and approved headcount never exceeds the
group's cap. Every membership change recomputes the group multiplier and
re-tallies the group's open siphon votes against the new headcount.
"""
from typing import List, Optional

from flask import current_app

from ....core.error_handlers import ConflictError, NotFoundError, PolicyError, ValidationError
from ....core.signals import group_updated
from ....extensions import db
from ....models import Group, GroupMember, User
from ...classroom.services.classroom_service import ClassroomService
from ...siphon.interface import announce_siphon_changes, retally_group_siphons
from ...wallet.logics.multiplier_engine import derive_group_multiplier, validate_manual_group_multiplier
from ...wallet.services.ledger_service import LedgerService


class MembershipService:

    @staticmethod
    def get_group(group_id: int) -> Group:
        group = db.session.get(Group, group_id)
        if group is None:
            raise NotFoundError('Group not found', resource='group')
        return group

    @staticmethod
    def _memberships_in_set(group_set_id: int, user_id: int) -> List[GroupMember]:
        return (
            GroupMember.query
            .join(Group, GroupMember.group_id == Group.group_id)
            .filter(Group.group_set_id == group_set_id, GroupMember.user_id == user_id)
            .all()
        )

    @staticmethod
    def _find_member(group: Group, user_id: int) -> Optional[GroupMember]:
        for member in group.members:
            if member.user_id == user_id:
                return member
        return None

    @staticmethod
    def _ensure_capacity(group: Group) -> None:
        cap = group.member_cap
        if cap is not None and len(group.approved_member_ids) >= cap:
            raise ConflictError('Group is full')

    @staticmethod
    def _require_manager(group: Group, actor: User) -> None:
        classroom = ClassroomService.get_classroom(group.classroom_id)
        role = ClassroomService.actor_role(classroom, actor)
        if role not in (ClassroomService.ROLE_TEACHER, ClassroomService.ROLE_TA):
            raise PolicyError('Only the teacher or an Admin/TA can manage group membership')

    @staticmethod
    def recompute_multiplier(group: Group) -> float:
        group.group_multiplier = derive_group_multiplier(
            len(group.approved_member_ids),
            group.group_set.group_multiplier_increment,
            group.group_multiplier,
        )
        return group.group_multiplier

    @staticmethod
    def _finish(group: Group, message: str) -> Group:
        MembershipService.recompute_multiplier(group)
        decided = retally_group_siphons(group)
        LedgerService.commit()
        current_app.logger.info(f"[Groups] Group {group.group_id}: {message}")
        group_updated.send(None, group=group)
        announce_siphon_changes(decided)
        return group

    @staticmethod
    def request_join(group_id: int, user: User) -> Group:
        group = MembershipService.get_group(group_id)
        classroom_id = group.classroom_id
        if not ClassroomService.is_student(classroom_id, user.user_id):
            raise PolicyError('Only students of this classroom can join its groups')
        ClassroomService.assert_not_banned(classroom_id, user.user_id)

        for membership in MembershipService._memberships_in_set(group.group_set_id, user.user_id):
            if membership.status == GroupMember.STATUS_APPROVED:
                raise ConflictError('You are already a member of a group in this set')
            raise ConflictError('You already have a pending request in this group set')

        MembershipService._ensure_capacity(group)

        status = GroupMember.STATUS_PENDING if group.group_set.join_approval else GroupMember.STATUS_APPROVED
        group.members.append(GroupMember(user_id=user.user_id, status=status))
        return MembershipService._finish(group, f"user {user.user_id} joined ({status})")

    @staticmethod
    def approve_member(group_id: int, user_id: int, actor: User) -> Group:
        group = MembershipService.get_group(group_id)
        MembershipService._require_manager(group, actor)

        member = MembershipService._find_member(group, user_id)
        if member is None or member.status != GroupMember.STATUS_PENDING:
            raise NotFoundError('No pending request from this user', resource='group_member')
        others = [
            m for m in MembershipService._memberships_in_set(group.group_set_id, user_id)
            if m.group_id != group.group_id and m.status == GroupMember.STATUS_APPROVED
        ]
        if others:
            raise ConflictError('User is already a member of a group in this set')
        MembershipService._ensure_capacity(group)

        member.status = GroupMember.STATUS_APPROVED
        return MembershipService._finish(group, f"user {user_id} approved by {actor.user_id}")

    @staticmethod
    def reject_member(group_id: int, user_id: int, actor: User) -> Group:
        group = MembershipService.get_group(group_id)
        MembershipService._require_manager(group, actor)

        member = MembershipService._find_member(group, user_id)
        if member is None or member.status != GroupMember.STATUS_PENDING:
            raise NotFoundError('No pending request from this user', resource='group_member')
        group.members.remove(member)
        return MembershipService._finish(group, f"user {user_id} rejected by {actor.user_id}")

    @staticmethod
    def leave_group(group_id: int, user: User) -> Group:
        group = MembershipService.get_group(group_id)
        member = MembershipService._find_member(group, user.user_id)
        if member is None:
            raise NotFoundError('You are not a member of this group', resource='group_member')
        group.members.remove(member)
        return MembershipService._finish(group, f"user {user.user_id} left")

    @staticmethod
    def set_group_multiplier(group_id: int, multiplier, actor: User) -> Group:
        group = MembershipService.get_group(group_id)
        classroom = ClassroomService.get_classroom(group.classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'change group multipliers')

        if (group.group_set.group_multiplier_increment or 0) > 0:
            raise ConflictError('This group set derives multipliers from member count')
        try:
            group.group_multiplier = validate_manual_group_multiplier(multiplier)
        except (TypeError, ValueError) as exc:
            raise ValidationError(str(exc)) from exc

        LedgerService.commit()
        current_app.logger.info(f"[Groups] Group {group.group_id} multiplier set to {group.group_multiplier}")
        group_updated.send(None, group=group)
        return group