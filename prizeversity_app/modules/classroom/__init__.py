from flask import Blueprint

# No routes: classroom CRUD belongs to the host application. The blueprint
# carries the `flask bans ...` maintenance commands.
classroom_bp = Blueprint('classroom', __name__, cli_group='bans')

from . import commands  # noqa: E402,F401
