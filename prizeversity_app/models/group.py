"""Group sets, groups and group membership."""

from __future__ import annotations

from sqlalchemy.sql import func

from ..extensions import db


class GroupSet(db.Model):
    """A named collection of groups within a classroom (e.g. "Project Teams")."""

    __tablename__ = 'group_sets'

    group_set_id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    join_approval = db.Column(db.Boolean, default=False, nullable=False)
    max_members = db.Column(db.Integer, nullable=True)
    # 0 keeps every group's multiplier manual
    group_multiplier_increment = db.Column(db.Float, default=0.0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    classroom = db.relationship('Classroom')
    groups = db.relationship('Group', backref='group_set', lazy=True, cascade='all, delete-orphan')


class Group(db.Model):
    __tablename__ = 'groups'

    group_id = db.Column(db.Integer, primary_key=True)
    group_set_id = db.Column(db.Integer, db.ForeignKey('group_sets.group_set_id'), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    max_members = db.Column(db.Integer, nullable=True)
    group_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    members = db.relationship(
        'GroupMember', backref='group', lazy=True, cascade='all, delete-orphan',
        order_by='GroupMember.id'
    )

    @property
    def classroom_id(self) -> int:
        return self.group_set.classroom_id

    @property
    def approved_member_ids(self) -> list:
        return [m.user_id for m in self.members if m.status == GroupMember.STATUS_APPROVED]

    @property
    def member_cap(self):
        """The group's own cap wins over the set-wide one."""
        if self.max_members is not None:
            return self.max_members
        return self.group_set.max_members

    def to_dict(self):
        return {
            'groupId': self.group_id,
            'groupSetId': self.group_set_id,
            'name': self.name,
            'maxMembers': self.member_cap,
            'groupMultiplier': self.group_multiplier,
            'members': [m.to_dict() for m in self.members],
        }


class GroupMember(db.Model):
    __tablename__ = 'group_members'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.group_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    join_date = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (db.UniqueConstraint('group_id', 'user_id', name='_group_member_uc'),)

    def to_dict(self):
        return {
            'userId': self.user_id,
            'status': self.status,
            'joinDate': self.join_date.isoformat() if self.join_date else None,
        }
