"""
Classroom Service
Roles, enrollment and bans as seen by the economy.
"""
from flask import current_app

from ....core.error_handlers import NotFoundError, PolicyError
from ....extensions import db
from ....models import BanRecord, Classroom, ClassroomMember, User
from ..logics.ban_records import normalize_ban_entries


class ClassroomService:
    """Read access to classrooms plus the ban list."""

    ROLE_TEACHER = 'teacher'
    ROLE_TA = 'ta'
    ROLE_STUDENT = 'student'

    @staticmethod
    def get_classroom(classroom_id) -> Classroom:
        classroom = db.session.get(Classroom, classroom_id) if classroom_id is not None else None
        if classroom is None:
            raise NotFoundError('Classroom not found', resource='classroom')
        return classroom

    @staticmethod
    def actor_role(classroom: Classroom, user: User):
        """'teacher', 'ta', 'student' or None for outsiders."""
        if user is None:
            return None
        if classroom.is_teacher(user.user_id):
            return ClassroomService.ROLE_TEACHER
        membership = ClassroomMember.query.filter_by(
            classroom_id=classroom.classroom_id, user_id=user.user_id
        ).first()
        if membership is None:
            return None
        if membership.role == ClassroomMember.ROLE_ADMIN:
            return ClassroomService.ROLE_TA
        return ClassroomService.ROLE_STUDENT

    @staticmethod
    def require_teacher(classroom: Classroom, user: User, action: str = 'do this') -> None:
        if user is None or not classroom.is_teacher(user.user_id):
            raise PolicyError(f'Only the classroom teacher can {action}')

    @staticmethod
    def student_ids(classroom_id: int) -> set:
        rows = ClassroomMember.query.filter_by(
            classroom_id=classroom_id, role=ClassroomMember.ROLE_STUDENT
        ).with_entities(ClassroomMember.user_id).all()
        return {row.user_id for row in rows}

    @staticmethod
    def is_student(classroom_id: int, user_id: int) -> bool:
        return ClassroomMember.query.filter_by(
            classroom_id=classroom_id, user_id=user_id, role=ClassroomMember.ROLE_STUDENT
        ).first() is not None

    @staticmethod
    def banned_user_ids(classroom_id: int) -> set:
        rows = BanRecord.query.filter_by(classroom_id=classroom_id).with_entities(BanRecord.user_id).all()
        return {row.user_id for row in rows}

    @staticmethod
    def is_banned(classroom_id: int, user_id: int) -> bool:
        return BanRecord.query.filter_by(classroom_id=classroom_id, user_id=user_id).first() is not None

    @staticmethod
    def assert_not_banned(classroom_id: int, user_id: int) -> None:
        if ClassroomService.is_banned(classroom_id, user_id):
            raise PolicyError('This student is banned from the classroom')

    @staticmethod
    def ban_student(classroom: Classroom, user_id: int, reason: str = '') -> BanRecord:
        record = BanRecord.query.filter_by(classroom_id=classroom.classroom_id, user_id=user_id).first()
        if record is None:
            record = BanRecord(classroom_id=classroom.classroom_id, user_id=user_id, reason=reason or '')
            db.session.add(record)
        elif reason:
            record.reason = reason
        return record

    @staticmethod
    def migrate_legacy_bans(classroom: Classroom) -> int:
        """
        Move Classroom.legacy_banned into BanRecord rows and clear it.
        Safe to re-run: users that already have a record are left alone.
        """
        entries = normalize_ban_entries(classroom.legacy_banned or [])
        existing = ClassroomService.banned_user_ids(classroom.classroom_id)
        created = 0
        for entry in entries:
            if entry.user_id in existing:
                continue
            if db.session.get(User, entry.user_id) is None:
                current_app.logger.warning(
                    f"[Bans] Classroom {classroom.classroom_id}: dropping ban for unknown user {entry.user_id}"
                )
                continue
            record = BanRecord(
                classroom_id=classroom.classroom_id,
                user_id=entry.user_id,
                reason=entry.reason,
            )
            if entry.banned_at is not None:
                record.banned_at = entry.banned_at
            db.session.add(record)
            existing.add(entry.user_id)
            created += 1
        classroom.legacy_banned = None
        return created

    @staticmethod
    def migrate_all_legacy_bans() -> dict:
        classrooms = Classroom.query.filter(Classroom.legacy_banned.isnot(None)).all()
        migrated = 0
        for classroom in classrooms:
            migrated += ClassroomService.migrate_legacy_bans(classroom)
        db.session.commit()
        current_app.logger.info(
            f"[Bans] Migrated {migrated} legacy ban entries across {len(classrooms)} classrooms"
        )
        return {'classrooms': len(classrooms), 'records_created': migrated}
