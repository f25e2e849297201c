"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

import os

from flask import Flask

from ..extensions import csrf_protect, db, login_manager, scheduler, socketio
from ..modules import realtime
from .error_handlers import register_error_handlers
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Attach the shared console/file handlers to the app logger."""

    setup_logging(
        app,
        log_level=app.config.get('LOG_LEVEL', 'INFO'),
        log_dir=app.config.get('LOG_DIR'),
        json_format=app.config.get('LOG_JSON', False),
    )


def register_extensions(app: Flask) -> None:
    """Initialize shared extensions with the Flask app instance."""

    db.init_app(app)
    login_manager.init_app(app)
    csrf_protect.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config.get('SOCKETIO_CORS_ALLOWED_ORIGINS', '*'),
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )

    @login_manager.user_loader
    def load_user(user_id: str):
        from ..models import User

        return db.session.get(User, int(user_id))


def register_scheduler(app: Flask) -> None:
    """Start APScheduler with the siphon maintenance jobs."""

    if not app.config.get('SCHEDULER_ENABLED', True) or app.testing:
        app.logger.info("Scheduler disabled by configuration.")
        return
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        return

    from apscheduler.schedulers import SchedulerAlreadyRunningError

    from ..modules.siphon.tasks import init_scheduler

    try:
        scheduler.init_app(app)
        init_scheduler(app)
        if not scheduler.running:
            scheduler.start()
    except SchedulerAlreadyRunningError:
        app.logger.info("Scheduler already running, skipping re-initialization.")


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)
    realtime.setup_module(app)


def validate_settings(app: Flask) -> None:
    """Fail fast on configuration the economy cannot run with."""

    from ..modules.mystery_box.logics.reward_engine import validate_rarity_weights

    app.config['MYSTERY_BOX_RARITY_WEIGHTS'] = validate_rarity_weights(
        app.config['MYSTERY_BOX_RARITY_WEIGHTS']
    )


def initialize_database(app: Flask) -> None:
    """Create database tables."""

    from .. import models  # noqa: F401

    db.create_all()
    app.logger.info("Database tables ready.")


__all__ = [
    "configure_logging",
    "register_extensions",
    "register_scheduler",
    "register_blueprints",
    "register_error_handlers",
    "validate_settings",
    "initialize_database",
]
