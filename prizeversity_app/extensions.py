# File: prizeversity_app/extensions.py
# Infrastructure Layer: Flask extensions initialization

import sqlite3

from flask_apscheduler import APScheduler
from flask_login import LoginManager
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect
from sqlalchemy import event
from sqlalchemy.engine import Engine

# 1. Database
db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, _connection_record):
    """Enable WAL mode and extend the busy timeout for SQLite connections."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA busy_timeout=30000;")
        cursor.execute("PRAGMA foreign_keys=ON;")
    finally:
        cursor.close()


# 2. Login management (sessions are owned by the host application)
login_manager = LoginManager()


@login_manager.unauthorized_handler
def _unauthorized():
    from .core.error_handlers import error_response

    return error_response('Authentication required', 'UNAUTHENTICATED', 401)


# 3. Security, jobs and realtime
csrf_protect = CSRFProtect()
scheduler = APScheduler()
socketio = SocketIO()

__all__ = ["db", "login_manager", "csrf_protect", "scheduler", "socketio"]
