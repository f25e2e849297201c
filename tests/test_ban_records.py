from datetime import datetime, timezone

from prizeversity_app import db
from prizeversity_app.models import BanRecord, Classroom
from prizeversity_app.modules.classroom.logics.ban_records import (
    BanEntry,
    normalize_ban_entries,
    normalize_ban_entry,
)
from prizeversity_app.modules.classroom.services.classroom_service import ClassroomService


class TestNormalizeBanEntries:
    """Legacy ban shapes all become BanEntry."""

    def test_bare_ids(self):
        assert normalize_ban_entry(7) == BanEntry(user_id=7)
        assert normalize_ban_entry('8') == BanEntry(user_id=8)

    def test_structured_entry(self):
        entry = normalize_ban_entry({'user': 3, 'reason': 'spam', 'bannedAt': '2024-01-02T03:04:05Z'})

        assert entry.user_id == 3
        assert entry.reason == 'spam'
        assert entry.banned_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_populated_user_object(self):
        entry = normalize_ban_entry({'user': {'userId': 11, 'email': 'x@example.com'}})

        assert entry.user_id == 11

    def test_unusable_values_are_dropped(self):
        assert normalize_ban_entry(None) is None
        assert normalize_ban_entry('not-an-id') is None
        assert normalize_ban_entry({'reason': 'who?'}) is None
        assert normalize_ban_entry(True) is None

    def test_structured_entry_wins_over_bare_id(self):
        entries = normalize_ban_entries([5, {'userId': 5, 'reason': 'cheating'}, 6, 6])

        by_user = {e.user_id: e for e in entries}
        assert set(by_user) == {5, 6}
        assert by_user[5].reason == 'cheating'


class TestLegacyBanMigration:

    def _classroom_with_legacy_bans(self, builder):
        classroom = builder.classroom()
        kept = builder.student(classroom)
        structured = builder.student(classroom)
        classroom.legacy_banned = [kept.user_id, {'user': structured.user_id, 'reason': 'spam'}, 99999]
        db.session.commit()
        return classroom, kept, structured

    def test_migration_creates_records_and_clears_legacy_field(self, app, builder):
        classroom, kept, structured = self._classroom_with_legacy_bans(builder)

        result = ClassroomService.migrate_all_legacy_bans()

        assert result == {'classrooms': 1, 'records_created': 2}
        assert ClassroomService.banned_user_ids(classroom.classroom_id) == {kept.user_id, structured.user_id}
        record = BanRecord.query.filter_by(user_id=structured.user_id).one()
        assert record.reason == 'spam'
        assert db.session.get(Classroom, classroom.classroom_id).legacy_banned is None

    def test_migration_is_safe_to_rerun(self, app, builder):
        classroom, kept, _ = self._classroom_with_legacy_bans(builder)
        ClassroomService.migrate_all_legacy_bans()

        classroom.legacy_banned = [kept.user_id]
        db.session.commit()
        result = ClassroomService.migrate_all_legacy_bans()

        assert result['records_created'] == 0
        assert BanRecord.query.filter_by(user_id=kept.user_id).count() == 1

    def test_cli_command(self, app, builder):
        self._classroom_with_legacy_bans(builder)

        output = app.test_cli_runner().invoke(args=['bans', 'migrate'])

        assert output.exit_code == 0
        assert 'Migrated 2 ban entries from 1 classrooms' in output.output
