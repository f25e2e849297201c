from flask import Blueprint

mystery_box_api_bp = Blueprint('mystery_box_api', __name__)
