"""Classroom, membership, ban and per-classroom balance models."""

from __future__ import annotations

from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..extensions import db


class Classroom(db.Model):
    """A classroom owning its own economy."""

    __tablename__ = 'classrooms'

    TA_POLICY_FULL = 'full'
    TA_POLICY_APPROVAL = 'approval'
    TA_POLICY_NONE = 'none'
    TA_POLICIES = (TA_POLICY_FULL, TA_POLICY_APPROVAL, TA_POLICY_NONE)

    MIN_SIPHON_TIMEOUT_HOURS = 1
    MAX_SIPHON_TIMEOUT_HOURS = 168

    classroom_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(6), unique=True, nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    ta_bit_policy = db.Column(db.String(20), default=TA_POLICY_FULL, nullable=False)
    siphon_timeout_hours = db.Column(db.Integer, nullable=True)
    # Ban data in the shapes written before BanRecord existed; emptied by `flask bans migrate`
    legacy_banned = db.Column(JSON(none_as_null=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    teacher = db.relationship('User', foreign_keys=[teacher_id])
    members = db.relationship('ClassroomMember', backref='classroom', lazy=True, cascade='all, delete-orphan')
    ban_records = db.relationship('BanRecord', backref='classroom', lazy=True, cascade='all, delete-orphan')

    def is_teacher(self, user_id: int) -> bool:
        return self.teacher_id == user_id

    def __repr__(self):
        return f'<Classroom {self.code}>'


class ClassroomMember(db.Model):
    """Enrollment of a user in a classroom; admins are classroom-scoped TAs."""

    __tablename__ = 'classroom_members'

    ROLE_STUDENT = 'student'
    ROLE_ADMIN = 'admin'

    id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    role = db.Column(db.String(20), default=ROLE_STUDENT, nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    user = db.relationship('User')

    __table_args__ = (db.UniqueConstraint('classroom_id', 'user_id', name='_classroom_member_uc'),)


class BanRecord(db.Model):
    """A student banned from a classroom."""

    __tablename__ = 'ban_records'

    id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    reason = db.Column(db.String(255), default='')
    banned_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (db.UniqueConstraint('classroom_id', 'user_id', name='_ban_record_uc'),)

    def to_dict(self):
        return {
            'userId': self.user_id,
            'classroomId': self.classroom_id,
            'reason': self.reason or '',
            'bannedAt': self.banned_at.isoformat() if self.banned_at else None,
        }


class ClassroomBalance(db.Model):
    """Per (user, classroom) wallet and stats."""

    __tablename__ = 'classroom_balances'

    id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    balance = db.Column(db.Integer, default=0, nullable=False)
    personal_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    luck = db.Column(db.Float, default=1.0, nullable=False)
    xp = db.Column(db.Integer, default=0, nullable=False)
    level = db.Column(db.Integer, default=1, nullable=False)
    version = db.Column(db.Integer, nullable=False)

    user = db.relationship('User')

    __table_args__ = (db.UniqueConstraint('classroom_id', 'user_id', name='_classroom_balance_uc'),)
    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'userId': self.user_id,
            'classroomId': self.classroom_id,
            'balance': self.balance,
            'personalMultiplier': self.personal_multiplier,
            'luck': self.luck,
            'xp': self.xp,
            'level': self.level,
        }
