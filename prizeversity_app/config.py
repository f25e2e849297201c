# File: prizeversity_app/config.py
# Application configuration, read from the environment (.env supported).

import os

from dotenv import load_dotenv

load_dotenv()

# Project root: prizeversity_app/ lives directly under it.
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

# Default SQLite database location
DATABASE_PATH = os.path.join(BASE_DIR, "database", "prizeversity.db")

DEFAULT_RARITY_WEIGHTS = {
    'common': 0.20,
    'uncommon': 0.40,
    'rare': 0.60,
    'epic': 0.80,
    'legendary': 1.00,
}


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value else default


class Config:
    """Prizeversity economy configuration."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-replace-in-production'

    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'connect_args': {'timeout': 30},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'logs')
    LOG_JSON = os.environ.get('LOG_JSON', '').lower() in ('1', 'true', 'yes')

    # Background jobs (siphon expiry sweep, retention purge)
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() in ('1', 'true', 'yes')
    SCHEDULER_API_ENABLED = False
    SIPHON_SWEEP_INTERVAL_MINUTES = _env_int('SIPHON_SWEEP_INTERVAL_MINUTES', 5)
    SIPHON_RETENTION_DAYS = _env_int('SIPHON_RETENTION_DAYS', 30)

    # Used when a classroom has no timeout of its own
    SIPHON_DEFAULT_TIMEOUT_HOURS = _env_int('SIPHON_DEFAULT_TIMEOUT_HOURS', 72)

    MYSTERY_BOX_RARITY_WEIGHTS = dict(DEFAULT_RARITY_WEIGHTS)

    # Realtime
    SOCKETIO_CORS_ALLOWED_ORIGINS = os.environ.get('SOCKETIO_CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')

    @classmethod
    def init_app(cls, app):
        """Create the directories the app writes to."""
        uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
        if uri == f'sqlite:///{DATABASE_PATH}':
            os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
