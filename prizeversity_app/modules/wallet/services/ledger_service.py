"""
Ledger Service
The single write path for classroom balances.

Every mutation goes through LedgerService.post so that the balance change
and its Transaction row always land in the same unit of work.
"""
from typing import Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ....core.error_handlers import InsufficientFundsError, TransientPersistenceError
from ....core.signals import balance_updated
from ....extensions import db
from ....models import ClassroomBalance, Group, GroupMember, GroupSet, Transaction
from ..logics.multiplier_engine import MultiplierResult, apply_multipliers, combine_group_multipliers


class LedgerService:
    """Balance rows, ledger entries and the commit boundary around them."""

    @staticmethod
    def get_balance(user_id: int, classroom_id: int, lock: bool = False) -> ClassroomBalance:
        """Fetch the wallet row, creating an empty one on first touch."""
        query = ClassroomBalance.query.filter_by(user_id=user_id, classroom_id=classroom_id)
        if lock:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            row = ClassroomBalance(
                user_id=user_id,
                classroom_id=classroom_id,
                balance=0,
                personal_multiplier=1.0,
                luck=1.0,
                xp=0,
                level=1,
            )
            db.session.add(row)
            db.session.flush()
        return row

    @staticmethod
    def luck_of(user_id: int, classroom_id: int) -> float:
        row = ClassroomBalance.query.filter_by(user_id=user_id, classroom_id=classroom_id).first()
        return row.luck if row is not None else 1.0

    @staticmethod
    def lock_balances(user_ids: Iterable[int], classroom_id: int) -> dict:
        """Lock several wallets in ascending user order."""
        return {
            user_id: LedgerService.get_balance(user_id, classroom_id, lock=True)
            for user_id in sorted(set(user_ids))
        }

    @staticmethod
    def group_multiplier_for(user_id: int, classroom_id: int) -> float:
        """Combined multiplier of every group the student is approved in."""
        rows = (
            db.session.query(Group.group_multiplier)
            .join(GroupSet, Group.group_set_id == GroupSet.group_set_id)
            .join(GroupMember, GroupMember.group_id == Group.group_id)
            .filter(
                GroupSet.classroom_id == classroom_id,
                GroupMember.user_id == user_id,
                GroupMember.status == GroupMember.STATUS_APPROVED,
            )
            .all()
        )
        return combine_group_multipliers(row.group_multiplier for row in rows)

    @staticmethod
    def post(
        balance: ClassroomBalance,
        base_amount: int,
        description: str,
        kind: str = Transaction.KIND_ADJUSTMENT,
        assigned_by_id: Optional[int] = None,
        group_multiplier: float = 1.0,
        apply_personal: bool = False,
        apply_group: bool = False,
    ) -> Tuple[Transaction, MultiplierResult]:
        """
        Apply one credit or debit to a locked balance row.

        Debits are never scaled. Raises InsufficientFundsError before touching
        the row when the result would go below zero.
        """
        result = apply_multipliers(
            base_amount,
            personal_multiplier=balance.personal_multiplier,
            group_multiplier=group_multiplier,
            apply_personal=apply_personal,
            apply_group=apply_group,
        )
        new_balance = balance.balance + result.final_amount
        if new_balance < 0:
            raise InsufficientFundsError(
                'Insufficient balance', balance=balance.balance, required=-result.final_amount
            )

        balance.balance = new_balance
        transaction = Transaction(
            user_id=balance.user_id,
            classroom_id=balance.classroom_id,
            amount=result.final_amount,
            base_amount=result.base_amount,
            description=description,
            kind=kind,
            assigned_by_id=assigned_by_id,
            applied_personal_multiplier=result.applied_personal,
            applied_group_multiplier=result.applied_group,
        )
        db.session.add(transaction)
        return transaction, result

    @staticmethod
    def commit() -> None:
        """Commit the unit of work; lock or version conflicts become retryable errors."""
        try:
            db.session.commit()
        except (StaleDataError, OperationalError) as exc:
            db.session.rollback()
            current_app.logger.warning(f"[Ledger] Commit failed, rolled back: {exc}")
            raise TransientPersistenceError() from exc

    @staticmethod
    def publish(balances: Iterable[ClassroomBalance]) -> None:
        """Announce committed balances; call only after commit()."""
        for row in balances:
            balance_updated.send(
                None,
                student_id=row.user_id,
                classroom_id=row.classroom_id,
                new_balance=row.balance,
            )

    @staticmethod
    def list_transactions(classroom_id: int, user_id: Optional[int] = None, limit: int = 100) -> List[Transaction]:
        query = Transaction.query.filter_by(classroom_id=classroom_id)
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.order_by(Transaction.transaction_id.desc()).limit(limit).all()
