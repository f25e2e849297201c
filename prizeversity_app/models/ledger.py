"""Balance ledger and queued adjustment batches."""

from __future__ import annotations

from sqlalchemy.types import JSON

from ..extensions import db
from ..utils.time_utils import isoformat, utcnow


class Transaction(db.Model):
    """Immutable ledger entry, one per balance mutation."""

    __tablename__ = 'transactions'

    KIND_ADJUSTMENT = 'adjustment'
    KIND_SIPHON = 'siphon'
    KIND_TRANSFER = 'transfer'
    KIND_MYSTERY_BOX = 'mystery_box'

    transaction_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    base_amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    kind = db.Column(db.String(20), default=KIND_ADJUSTMENT, nullable=False)
    # Null for system writes (expiry sweep, rewards)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=True)
    applied_personal_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    applied_group_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.transaction_id,
            'userId': self.user_id,
            'classroomId': self.classroom_id,
            'amount': self.amount,
            'baseAmount': self.base_amount,
            'description': self.description,
            'kind': self.kind,
            'assignedBy': self.assigned_by_id,
            'appliedPersonalMultiplier': self.applied_personal_multiplier,
            'appliedGroupMultiplier': self.applied_group_multiplier,
            'createdAt': isoformat(self.created_at),
        }


class PendingAdjustment(db.Model):
    """A TA's adjustment batch waiting for the teacher's decision."""

    __tablename__ = 'pending_adjustments'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    pending_id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False, index=True)
    requested_by_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    # Set for group-level adjustments so approval reuses that group's multiplier
    group_id = db.Column(db.Integer, db.ForeignKey('groups.group_id'), nullable=True)
    description = db.Column(db.String(255), nullable=False)
    apply_group_multipliers = db.Column(db.Boolean, default=True, nullable=False)
    apply_personal_multipliers = db.Column(db.Boolean, default=True, nullable=False)
    # [{"student_id": int, "amount": int}, ...]
    entries = db.Column(JSON, nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    responded_by_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.pending_id,
            'classroomId': self.classroom_id,
            'requestedBy': self.requested_by_id,
            'groupId': self.group_id,
            'description': self.description,
            'applyGroupMultipliers': self.apply_group_multipliers,
            'applyPersonalMultipliers': self.apply_personal_multipliers,
            'updates': [
                {'studentId': e['student_id'], 'amount': e['amount']} for e in (self.entries or [])
            ],
            'status': self.status,
            'respondedBy': self.responded_by_id,
            'respondedAt': isoformat(self.responded_at),
            'createdAt': isoformat(self.created_at),
        }
