import click

from . import classroom_bp
from .services.classroom_service import ClassroomService


@classroom_bp.cli.command('migrate')
def migrate_bans():
    """One-time move of legacy ban lists into ban records."""
    result = ClassroomService.migrate_all_legacy_bans()
    click.echo(
        f"Migrated {result['records_created']} ban entries from {result['classrooms']} classrooms."
    )
