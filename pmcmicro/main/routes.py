"""Main routes"""
from datetime import date
from flask import render_template, redirect, url_for, request, flash, current_app
from flask_login import login_required, current_user
from pmcmicro.main import main_bp
from pmcmicro.models import Client
from pmcmicro.finance import aggregators
from pmcmicro.finance.calculator import ZERO
from pmcmicro.store import load_snapshot, StoreError
from pmcmicro.utils.helpers import resolve_branch_id, resolve_staff_name

@main_bp.route('/')
@main_bp.route('/dashboard')
@login_required
def dashboard():
    """Main dashboard"""
    branch_id = resolve_branch_id(current_user, request.args.get('branch', type=int))
    today = date.today()

    if current_user.role == 'staff':
        return staff_dashboard(branch_id, resolve_staff_name(current_user), today)

    stats = {
        'total_clients': 0,
        'total_loans': 0,
        'active_loans': 0,
        'total_principal': ZERO,
        'total_repaid': ZERO,
        'total_remaining': ZERO,
        'overdue_loans': 0,
        'savings_balance': ZERO,
    }
    overdue = []
    recent_loans = []
    try:
        snapshot = load_snapshot(branch_id)
    except StoreError:
        current_app.logger.exception('Dashboard data unavailable for branch %s', branch_id)
        flash('Could not load branch data. Please try again.', 'danger')
    else:
        rows = aggregators.loan_rows(snapshot, today)
        overdue = aggregators.overdue_loans(snapshot, today)
        client_query = Client.query
        if branch_id is not None:
            client_query = client_query.filter_by(branch_id=branch_id)

        stats.update({
            'total_clients': client_query.count(),
            'total_loans': len(snapshot.loans),
            'active_loans': sum(1 for row in rows if not row['is_fully_paid']),
            'total_principal': sum((row['principal'] for row in rows), ZERO),
            'total_repaid': sum((row['total_repaid'] for row in rows), ZERO),
            'total_remaining': sum((row['remaining_balance'] for row in rows if not row['is_fully_paid']), ZERO),
            'overdue_loans': len(overdue),
            'savings_balance': sum((row['balance'] for row in aggregators.savings_balances(
                snapshot.savings, snapshot.withdrawals)), ZERO),
        })
        recent_loans = sorted(snapshot.loans, key=lambda loan: loan.id, reverse=True)[:5]

    return render_template('main/dashboard.html',
                         title='Dashboard',
                         stats=stats,
                         overdue_loans=overdue[:10],
                         recent_loans=recent_loans,
                         branch_id=branch_id)

def staff_dashboard(branch_id, staff_name, today):
    """Portfolio overview for a loan officer"""
    summary = None
    try:
        snapshot = load_snapshot(branch_id, staff_name=staff_name)
    except StoreError:
        current_app.logger.exception('Staff dashboard unavailable for %s', staff_name)
        flash('Could not load your portfolio. Please try again.', 'danger')
    else:
        summary = aggregators.staff_dashboard(snapshot, staff_name, today)

    return render_template('main/staff_dashboard.html',
                         title='My Portfolio',
                         summary=summary,
                         staff_name=staff_name)

@main_bp.route('/index')
def index():
    """Redirect to dashboard or login"""
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))
    return redirect(url_for('auth.login'))
