"""User model."""

from __future__ import annotations

from flask_login import UserMixin
from sqlalchemy.sql import func

from ..extensions import db


class User(UserMixin, db.Model):
    """Application user. Credentials live with the authentication service."""

    __tablename__ = 'users'

    ROLE_STUDENT = 'student'
    ROLE_TEACHER = 'teacher'
    ROLE_ADMIN = 'admin'
    ROLES = (ROLE_STUDENT, ROLE_TEACHER, ROLE_ADMIN)

    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    first_name = db.Column(db.String(80))
    last_name = db.Column(db.String(80))
    role = db.Column(db.String(20), default=ROLE_STUDENT, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def get_id(self):
        return str(self.user_id)

    def __repr__(self):
        return f'<User {self.username}>'
