from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from pmcmicro.auth import routes
