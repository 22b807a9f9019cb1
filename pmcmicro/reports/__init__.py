from flask import Blueprint

reports_bp = Blueprint('reports', __name__)

from pmcmicro.reports import routes
