"""Helper functions"""
import csv
import io
import re
from datetime import datetime
from flask import current_app, request, make_response
from flask_login import current_user
from pmcmicro import db
from pmcmicro.models import Branch, Client, Loan, ActivityLog


def next_sequence_id(prefix, existing_ids):
    """Next id of the form ``prefix-NN`` after the highest number in use"""
    pattern = re.compile(r'^{}-(\d+)$'.format(re.escape(prefix)))
    highest = 0
    for existing in existing_ids:
        match = pattern.match(existing or '')
        if match:
            highest = max(highest, int(match.group(1)))
    return f'{prefix}-{highest + 1:02d}'


def generate_client_id(branch_id):
    """Generate the next client id for a branch, e.g. pmcd-07"""
    ids = [row.client_id for row in Client.query.with_entities(Client.client_id).filter_by(branch_id=branch_id)]
    return next_sequence_id(current_app.config['CLIENT_ID_PREFIX'], ids)


def generate_loan_id(branch_id):
    """Generate the next loan id for a branch, e.g. loan-12"""
    ids = [row.loan_id for row in Loan.query.with_entities(Loan.loan_id).filter_by(branch_id=branch_id)]
    return next_sequence_id(current_app.config['LOAN_ID_PREFIX'], ids)


def split_client_names(text):
    """Names from a bulk upload: one per line or comma separated"""
    if not text:
        return []
    return [name.strip() for name in re.split(r'[\n,]', text) if name.strip()]


def resolve_branch_id(user, requested=None):
    """Branch a request operates on.

    Branch and staff users are pinned to their own branch. Head office users
    (admin, ceo) work on the requested branch, or on every branch when none
    was requested (None).
    """
    if user is None or not user.is_authenticated:
        return None
    if user.sees_all_branches:
        return requested or None
    return user.branch_id


def resolve_staff_name(user, requested=None):
    """Staff users only ever see their own portfolio"""
    if user is not None and user.is_authenticated and user.role == 'staff':
        return user.staff_name
    return requested or None


def request_branch_id():
    """Branch for the current request, from the ``branch`` argument for head office users"""
    return resolve_branch_id(current_user, request.values.get('branch', type=int))


def get_active_branch():
    """Branch selected for the current request, if any"""
    if not current_user.is_authenticated:
        return None
    branch_id = request_branch_id()
    if branch_id is None:
        return None
    return db.session.get(Branch, branch_id)


def parse_date_arg(name, default=None):
    """Read a YYYY-MM-DD query argument"""
    value = request.args.get(name, '')
    if not value:
        return default
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return default


def log_activity(action, entity_type=None, entity_id=None, description=None):
    """Add an audit entry to the current session; the caller commits"""
    log = ActivityLog(
        user_id=current_user.id if current_user.is_authenticated else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        ip_address=request.remote_addr,
        user_agent=request.user_agent.string[:255] if request.user_agent else None
    )
    db.session.add(log)
    return log


def csv_response(filename, header, rows):
    """Build a CSV download"""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)

    response = make_response(output.getvalue())
    response.headers['Content-Type'] = 'text/csv'
    response.headers['Content-Disposition'] = f'attachment; filename={filename}_{datetime.now().strftime("%Y%m%d")}.csv'
    return response
