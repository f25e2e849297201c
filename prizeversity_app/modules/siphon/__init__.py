from flask import Blueprint

siphon_api_bp = Blueprint('siphon_api', __name__)
