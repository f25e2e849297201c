from flask import Blueprint

groups_api_bp = Blueprint('groups_api', __name__)
