"""
Transfer Service
Student-to-student transfers inside one classroom, at face value.
"""
from flask import current_app

from ....core.error_handlers import NotFoundError, PolicyError, ValidationError
from ....models import Transaction, User
from ...classroom.services.classroom_service import ClassroomService
from ...siphon.interface import assert_not_frozen
from .ledger_service import LedgerService


class TransferService:

    @staticmethod
    def transfer(sender: User, classroom_id: int, recipient_id: int, amount: int, note: str = '') -> dict:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError('Transfer amount must be a positive integer')
        if recipient_id == sender.user_id:
            raise ValidationError('You cannot transfer bits to yourself')

        classroom = ClassroomService.get_classroom(classroom_id)
        if ClassroomService.actor_role(classroom, sender) != ClassroomService.ROLE_STUDENT:
            raise PolicyError('Only students can transfer bits')
        if not ClassroomService.is_student(classroom_id, recipient_id):
            raise NotFoundError('Recipient is not a student in this classroom', resource='user')
        ClassroomService.assert_not_banned(classroom_id, sender.user_id)
        ClassroomService.assert_not_banned(classroom_id, recipient_id)
        assert_not_frozen(sender.user_id, classroom_id)

        balances = LedgerService.lock_balances([sender.user_id, recipient_id], classroom_id)
        suffix = f': {note.strip()}' if note and note.strip() else ''
        LedgerService.post(
            balances[sender.user_id],
            -amount,
            f'Transfer to user {recipient_id}{suffix}',
            kind=Transaction.KIND_TRANSFER,
            assigned_by_id=sender.user_id,
        )
        LedgerService.post(
            balances[recipient_id],
            amount,
            f'Transfer from user {sender.user_id}{suffix}',
            kind=Transaction.KIND_TRANSFER,
            assigned_by_id=sender.user_id,
        )
        LedgerService.commit()
        LedgerService.publish(balances.values())

        current_app.logger.info(
            f"[Wallet] {sender.user_id} -> {recipient_id}: {amount} bits in classroom {classroom_id}"
        )
        return {
            'amount': amount,
            'senderBalance': balances[sender.user_id].balance,
            'recipientId': recipient_id,
        }
