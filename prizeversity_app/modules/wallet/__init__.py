from flask import Blueprint

wallet_api_bp = Blueprint('wallet_api', __name__)
