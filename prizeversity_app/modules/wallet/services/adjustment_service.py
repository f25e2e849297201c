"""
Adjustment Service
Bulk balance adjustments by teachers and Admins/TAs.

A teacher (or a TA under the 'full' policy) applies a batch immediately;
a TA under the 'approval' policy queues it for the teacher; the 'none'
policy refuses TAs outright. Applied batches commit as one unit.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import current_app

from ....core.error_handlers import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from ....core.signals import adjustment_queued
from ....extensions import db
from ....models import Classroom, Group, PendingAdjustment, Transaction, User
from ....utils.time_utils import utcnow
from ...classroom.services.classroom_service import ClassroomService
from .ledger_service import LedgerService

MODE_IMMEDIATE = 'immediate'
MODE_APPROVAL = 'approval'

SKIP_BANNED = 'banned'
SKIP_NOT_STUDENT = 'not_a_student'
FAIL_INSUFFICIENT_FUNDS = 'insufficient_funds'


@dataclass
class AdjustmentResult:
    applied: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    pending_approval: bool = False
    pending_id: Optional[int] = None

    def to_dict(self):
        data = {
            'applied': self.applied,
            'skipped': self.skipped,
            'failed': self.failed,
            'pendingApproval': self.pending_approval,
        }
        if self.pending_id is not None:
            data['pendingId'] = self.pending_id
        return data


class AdjustmentService:
    """Bulk adjustment orchestration and the TA approval queue."""

    @staticmethod
    def resolve_mode(classroom: Classroom, actor: User) -> str:
        role = ClassroomService.actor_role(classroom, actor)
        if role == ClassroomService.ROLE_TEACHER:
            return MODE_IMMEDIATE
        if role == ClassroomService.ROLE_TA:
            policy = classroom.ta_bit_policy or Classroom.TA_POLICY_FULL
            if policy == Classroom.TA_POLICY_FULL:
                return MODE_IMMEDIATE
            if policy == Classroom.TA_POLICY_APPROVAL:
                return MODE_APPROVAL
            raise PolicyError('Classroom policy does not allow Admins/TAs to adjust balances')
        raise PolicyError('Only the teacher or an Admin/TA can adjust balances')

    @staticmethod
    def normalize_entries(updates: Iterable[Dict[str, Any]]) -> List[Tuple[int, int]]:
        """(student_id, amount) pairs; the whole batch is rejected on one bad entry."""
        entries = []
        errors = {}
        for index, update in enumerate(updates or []):
            student_id = update.get('studentId', update.get('student_id'))
            amount = update.get('amount')
            if isinstance(student_id, bool) or not isinstance(student_id, int):
                errors[str(index)] = 'studentId must be an integer'
                continue
            if isinstance(amount, bool) or not isinstance(amount, int):
                errors[str(index)] = 'amount must be an integer'
                continue
            if amount == 0:
                errors[str(index)] = 'amount must not be zero'
                continue
            entries.append((student_id, amount))
        if errors:
            raise ValidationError('Invalid balance updates', errors=errors)
        if not entries:
            raise ValidationError('Updates array is required and must not be empty')
        return entries

    @staticmethod
    def bulk_adjust(
        actor: User,
        classroom_id: int,
        updates: Iterable[Dict[str, Any]],
        description: Optional[str] = None,
        apply_group_multipliers: bool = True,
        apply_personal_multipliers: bool = True,
        group: Optional[Group] = None,
    ) -> AdjustmentResult:
        classroom = ClassroomService.get_classroom(classroom_id)
        entries = AdjustmentService.normalize_entries(updates)
        mode = AdjustmentService.resolve_mode(classroom, actor)
        description = (description or '').strip() or 'Balance adjustment'

        if mode == MODE_APPROVAL:
            return AdjustmentService._queue(
                classroom, actor, entries, description,
                apply_group_multipliers, apply_personal_multipliers, group,
            )

        return AdjustmentService._apply(
            classroom,
            entries,
            description,
            apply_group_multipliers,
            apply_personal_multipliers,
            assigned_by_id=actor.user_id,
            group=group,
        )

    @staticmethod
    def adjust_group(
        actor: User,
        group_id: int,
        amount: int,
        description: Optional[str] = None,
        apply_group_multipliers: bool = True,
        apply_personal_multipliers: bool = True,
    ) -> AdjustmentResult:
        """Same amount to every approved member of one group."""
        group = db.session.get(Group, group_id)
        if group is None:
            raise NotFoundError('Group not found', resource='group')
        member_ids = group.approved_member_ids
        if not member_ids:
            raise ValidationError('Group has no approved members')
        updates = [{'studentId': user_id, 'amount': amount} for user_id in member_ids]
        return AdjustmentService.bulk_adjust(
            actor,
            group.classroom_id,
            updates,
            description,
            apply_group_multipliers,
            apply_personal_multipliers,
            group=group,
        )

    @staticmethod
    def _queue(classroom, actor, entries, description, apply_group, apply_personal, group) -> AdjustmentResult:
        pending = PendingAdjustment(
            classroom_id=classroom.classroom_id,
            requested_by_id=actor.user_id,
            group_id=group.group_id if group is not None else None,
            description=description,
            apply_group_multipliers=apply_group,
            apply_personal_multipliers=apply_personal,
            entries=[{'student_id': s, 'amount': a} for s, a in entries],
        )
        db.session.add(pending)
        LedgerService.commit()

        current_app.logger.info(
            f"[Wallet] TA {actor.user_id} queued {len(entries)} adjustments "
            f"in classroom {classroom.classroom_id} (pending #{pending.pending_id})"
        )
        adjustment_queued.send(None, pending=pending, teacher_id=classroom.teacher_id)
        return AdjustmentResult(pending_approval=True, pending_id=pending.pending_id)

    @staticmethod
    def _apply(
        classroom: Classroom,
        entries: List[Tuple[int, int]],
        description: str,
        apply_group: bool,
        apply_personal: bool,
        assigned_by_id: Optional[int],
        group: Optional[Group] = None,
    ) -> AdjustmentResult:
        """
        Apply entries in one unit of work.

        Banned users and non-students are skipped, debits the balance cannot
        cover are reported as failed. Nothing is committed if the commit
        itself fails.
        """
        classroom_id = classroom.classroom_id
        banned = ClassroomService.banned_user_ids(classroom_id)
        students = ClassroomService.student_ids(classroom_id)
        result = AdjustmentResult()
        touched = {}

        for student_id, amount in entries:
            if student_id in banned:
                result.skipped.append({'studentId': student_id, 'reason': SKIP_BANNED})
                continue
            if student_id not in students:
                result.skipped.append({'studentId': student_id, 'reason': SKIP_NOT_STUDENT})
                continue

            balance = touched.get(student_id) or LedgerService.get_balance(student_id, classroom_id, lock=True)
            if group is not None and student_id in group.approved_member_ids:
                group_multiplier = group.group_multiplier
            else:
                group_multiplier = LedgerService.group_multiplier_for(student_id, classroom_id)

            try:
                transaction, applied = LedgerService.post(
                    balance,
                    amount,
                    description,
                    kind=Transaction.KIND_ADJUSTMENT,
                    assigned_by_id=assigned_by_id,
                    group_multiplier=group_multiplier,
                    apply_personal=apply_personal,
                    apply_group=apply_group,
                )
            except InsufficientFundsError as exc:
                result.failed.append({
                    'studentId': student_id,
                    'reason': FAIL_INSUFFICIENT_FUNDS,
                    'message': exc.message,
                })
                continue

            touched[student_id] = balance
            result.applied.append({
                'studentId': student_id,
                'baseAmount': applied.base_amount,
                'amount': applied.final_amount,
                'newBalance': balance.balance,
                'appliedPersonalMultiplier': applied.applied_personal,
                'appliedGroupMultiplier': applied.applied_group,
            })

        LedgerService.commit()
        LedgerService.publish(touched.values())

        current_app.logger.info(
            f"[Wallet] Classroom {classroom_id}: {len(result.applied)} applied, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result

    @staticmethod
    def get_pending(pending_id: int) -> PendingAdjustment:
        pending = db.session.get(PendingAdjustment, pending_id)
        if pending is None:
            raise NotFoundError('Pending adjustment not found', resource='pending_adjustment')
        return pending

    @staticmethod
    def list_pending(actor: User, classroom_id: int) -> List[PendingAdjustment]:
        classroom = ClassroomService.get_classroom(classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'review pending adjustments')
        return (
            PendingAdjustment.query
            .filter_by(classroom_id=classroom_id, status=PendingAdjustment.STATUS_PENDING)
            .order_by(PendingAdjustment.created_at.asc())
            .all()
        )

    @staticmethod
    def approve_pending(actor: User, pending_id: int) -> AdjustmentResult:
        """Teacher applies a queued batch, attributed to the TA that asked for it."""
        pending = AdjustmentService.get_pending(pending_id)
        classroom = ClassroomService.get_classroom(pending.classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'approve adjustments')
        if pending.status != PendingAdjustment.STATUS_PENDING:
            raise ConflictError(f'Adjustment already {pending.status}')

        pending.status = PendingAdjustment.STATUS_APPROVED
        pending.responded_by_id = actor.user_id
        pending.responded_at = utcnow()

        group = db.session.get(Group, pending.group_id) if pending.group_id else None
        entries = [(e['student_id'], e['amount']) for e in pending.entries or []]
        return AdjustmentService._apply(
            classroom,
            entries,
            pending.description,
            pending.apply_group_multipliers,
            pending.apply_personal_multipliers,
            assigned_by_id=pending.requested_by_id,
            group=group,
        )

    @staticmethod
    def reject_pending(actor: User, pending_id: int) -> PendingAdjustment:
        pending = AdjustmentService.get_pending(pending_id)
        classroom = ClassroomService.get_classroom(pending.classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'reject adjustments')
        if pending.status != PendingAdjustment.STATUS_PENDING:
            raise ConflictError(f'Adjustment already {pending.status}')

        pending.status = PendingAdjustment.STATUS_REJECTED
        pending.responded_by_id = actor.user_id
        pending.responded_at = utcnow()
        LedgerService.commit()
        return pending

