from flask import Blueprint

accounts_bp = Blueprint('accounts', __name__)

from pmcmicro.accounts import routes
