from flask import jsonify, request
from flask_login import current_user, login_required

from ...core.error_handlers import PolicyError, success_response
from ...core.validation import load_payload
from ..classroom.services.classroom_service import ClassroomService
from . import wallet_api_bp
from .schemas import BulkAdjustSchema, GroupAdjustSchema, TransferSchema
from .services.adjustment_service import AdjustmentResult, AdjustmentService
from .services.ledger_service import LedgerService
from .services.transfer_service import TransferService


def _adjustment_response(result: AdjustmentResult):
    if result.pending_approval:
        return jsonify(success_response(result.to_dict(), 'Adjustment queued for teacher approval')), 202
    return jsonify(success_response(result.to_dict()))


@wallet_api_bp.route('/adjust', methods=['POST'])
@login_required
def bulk_adjust():
    """Apply (or queue) a batch of balance changes."""
    data = load_payload(BulkAdjustSchema())
    result = AdjustmentService.bulk_adjust(
        current_user,
        data['classroom_id'],
        data['updates'],
        description=data['description'],
        apply_group_multipliers=data['apply_group_multipliers'],
        apply_personal_multipliers=data['apply_personal_multipliers'],
    )
    return _adjustment_response(result)


@wallet_api_bp.route('/groups/<int:group_id>/adjust', methods=['POST'])
@login_required
def adjust_group(group_id):
    data = load_payload(GroupAdjustSchema())
    result = AdjustmentService.adjust_group(
        current_user,
        group_id,
        data['amount'],
        description=data['description'],
        apply_group_multipliers=data['apply_group_multipliers'],
        apply_personal_multipliers=data['apply_personal_multipliers'],
    )
    return _adjustment_response(result)


@wallet_api_bp.route('/classrooms/<int:classroom_id>/pending', methods=['GET'])
@login_required
def list_pending(classroom_id):
    pending = AdjustmentService.list_pending(current_user, classroom_id)
    return jsonify(success_response({'pending': [p.to_dict() for p in pending]}))


@wallet_api_bp.route('/pending/<int:pending_id>/approve', methods=['POST'])
@login_required
def approve_pending(pending_id):
    result = AdjustmentService.approve_pending(current_user, pending_id)
    return jsonify(success_response(result.to_dict(), 'Adjustment approved'))


@wallet_api_bp.route('/pending/<int:pending_id>/reject', methods=['POST'])
@login_required
def reject_pending(pending_id):
    pending = AdjustmentService.reject_pending(current_user, pending_id)
    return jsonify(success_response({'pending': pending.to_dict()}, 'Adjustment rejected'))


@wallet_api_bp.route('/transfer', methods=['POST'])
@login_required
def transfer():
    data = load_payload(TransferSchema())
    result = TransferService.transfer(
        current_user,
        data['classroom_id'],
        data['recipient_id'],
        data['amount'],
        note=data['note'],
    )
    return jsonify(success_response(result, 'Transfer complete'))


@wallet_api_bp.route('/classrooms/<int:classroom_id>/transactions', methods=['GET'])
@login_required
def list_transactions(classroom_id):
    """Staff see the whole classroom ledger, students only their own rows."""
    classroom = ClassroomService.get_classroom(classroom_id)
    role = ClassroomService.actor_role(classroom, current_user)
    limit = min(request.args.get('limit', 100, type=int), 500)

    if role in (ClassroomService.ROLE_TEACHER, ClassroomService.ROLE_TA):
        user_id = request.args.get('studentId', type=int)
    elif role == ClassroomService.ROLE_STUDENT:
        user_id = current_user.user_id
    else:
        raise PolicyError('You are not a member of this classroom')

    transactions = LedgerService.list_transactions(classroom_id, user_id=user_id, limit=limit)
    return jsonify(success_response({'transactions': [t.to_dict() for t in transactions]}))
