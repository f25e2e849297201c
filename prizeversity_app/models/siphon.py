"""Siphon requests, their votes and the account freezes they cause."""

from __future__ import annotations

from ..extensions import db
from ..utils.time_utils import as_utc, isoformat, utcnow


class SiphonRequest(db.Model):
    """A peer-initiated request to move bits away from a group member."""

    __tablename__ = 'siphon_requests'

    STATUS_PENDING = 'pending'
    STATUS_GROUP_APPROVED = 'group_approved'
    STATUS_GROUP_REJECTED = 'group_rejected'
    STATUS_TEACHER_APPROVED = 'teacher_approved'
    STATUS_TEACHER_REJECTED = 'teacher_rejected'
    STATUS_EXPIRED = 'expired'

    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_GROUP_APPROVED)

    siphon_id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.group_id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    initiator_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    target_user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    # Reference to an attachment held by the upload service
    proof = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=True)
    version = db.Column(db.Integer, nullable=False)

    group = db.relationship('Group')
    votes = db.relationship(
        'SiphonVote', backref='siphon', lazy=True, cascade='all, delete-orphan',
        order_by='SiphonVote.id'
    )

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    def is_due(self, now) -> bool:
        return self.is_active and as_utc(self.expires_at) <= as_utc(now)

    def to_dict(self):
        return {
            'siphonId': self.siphon_id,
            'groupId': self.group_id,
            'classroomId': self.classroom_id,
            'initiator': self.initiator_id,
            'targetUser': self.target_user_id,
            'amount': self.amount,
            'reason': self.reason,
            'proof': self.proof,
            'status': self.status,
            'votes': [v.to_dict() for v in self.votes],
            'createdAt': isoformat(self.created_at),
            'expiresAt': isoformat(self.expires_at),
            'resolvedAt': isoformat(self.resolved_at),
        }


class SiphonVote(db.Model):
    __tablename__ = 'siphon_votes'

    VOTE_YES = 'yes'
    VOTE_NO = 'no'
    VOTES = (VOTE_YES, VOTE_NO)

    id = db.Column(db.Integer, primary_key=True)
    siphon_id = db.Column(db.Integer, db.ForeignKey('siphon_requests.siphon_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    vote = db.Column(db.String(3), nullable=False)
    cast_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (db.UniqueConstraint('siphon_id', 'user_id', name='_siphon_vote_uc'),)

    def to_dict(self):
        return {'user': self.user_id, 'vote': self.vote}


class AccountFreeze(db.Model):
    """
    Blocks spending for one user in one classroom.

    Carries its own expiry so it lapses even if the siphon that caused it is
    never swept or has been deleted; siphon_id is kept as a plain column for
    that reason.
    """

    __tablename__ = 'account_freezes'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    siphon_id = db.Column(db.Integer, nullable=True, index=True)
    reason = db.Column(db.String(120), default='siphon_review', nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    lifted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def is_active(self, now) -> bool:
        return self.lifted_at is None and as_utc(self.expires_at) > as_utc(now)
