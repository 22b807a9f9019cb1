"""Reports routes"""
from datetime import date
from flask import render_template, request, flash, current_app, abort
from flask_login import login_required, current_user
from pmcmicro.reports import reports_bp
from pmcmicro.models import StaffMember, Group
from pmcmicro.finance import aggregators
from pmcmicro.finance.aggregators import Snapshot
from pmcmicro.finance.calculator import money
from pmcmicro.store import load_snapshot, get_loan, payments_for_loan, StoreError
from pmcmicro.utils.helpers import request_branch_id, resolve_staff_name, parse_date_arg, csv_response

# Loan-level reports sharing the staff and disbursement date filters
LOAN_REPORTS = {
    'overdue': ('Overdue Loans', aggregators.overdue_loans),
    'outstanding': ('Outstanding Balances', aggregators.outstanding_balances),
    'fully_paid': ('Fully Paid Loans', aggregators.fully_paid_loans),
    'disbursed': ('Disbursed Loans', aggregators.disbursed_loans),
}

# CSV columns per report: (header, row key)
EXPORT_COLUMNS = {
    'overdue': [
        ('Loan ID', 'loan_id'), ('Client ID', 'client_id'), ('Client', 'client_name'), ('Staff', 'staff_name'),
        ('Group', 'group_name'), ('Principal', 'principal'), ('Loan Outstanding', 'loan_outstanding'),
        ('Weekly Amount', 'weekly_amount'), ('Total Repaid', 'total_repaid'), ('Remaining Balance', 'remaining_balance'),
        ('Weeks Passed', 'weeks_passed'), ('Payments Made', 'payments_made'), ('Arrears Weeks', 'arrears_weeks'),
        ('Arrears Amount', 'arrears_amount'), ('Bal(P)', 'bal_p'),
    ],
    'outstanding': [
        ('Loan ID', 'loan_id'), ('Client ID', 'client_id'), ('Client', 'client_name'), ('Staff', 'staff_name'),
        ('Principal', 'principal'), ('Loan Outstanding', 'loan_outstanding'), ('Weekly Amount', 'weekly_amount'),
        ('Total Repaid', 'total_repaid'), ('Remaining Balance', 'remaining_balance'), ('Bal(P)', 'bal_p'),
        ('Close On', 'close_on'),
    ],
    'fully_paid': [
        ('Loan ID', 'loan_id'), ('Client ID', 'client_id'), ('Client', 'client_name'), ('Staff', 'staff_name'),
        ('Principal', 'principal'), ('Loan Outstanding', 'loan_outstanding'), ('Total Repaid', 'total_repaid'),
        ('Last Payment', 'last_payment_date'), ('Status', 'status'),
    ],
    'disbursed': [
        ('Disbursement Date', 'disbursement_date'), ('Loan ID', 'loan_id'), ('Client ID', 'client_id'),
        ('Client', 'client_name'), ('Staff', 'staff_name'), ('Loan Type', 'loan_type'), ('Principal', 'principal'),
        ('Interest', 'actual_interest'), ('Loan Outstanding', 'loan_outstanding'), ('LPF', 'processing_fee'),
        ('IT Fee', 'it_fee'), ('Risk Premium', 'risk_premium'), ('G-Fund', 'g_fund'),
    ],
    'payments': [
        ('Date', 'date'), ('Loan ID', 'loan_id'), ('Client ID', 'client_id'), ('Client', 'client_name'),
        ('Staff', 'staff_name'), ('Group', 'group_name'), ('Repayment', 'repayment_amount'),
        ('Weekly Amount', 'weekly_amount'),
    ],
    'clients': [
        ('Client ID', 'client_id'), ('Client', 'client_name'), ('Loan ID', 'loan_id'), ('Staff', 'staff_name'),
        ('Principal', 'principal'), ('Loan Outstanding', 'loan_outstanding'), ('Total Repaid', 'total_repaid'),
        ('Remaining Balance', 'remaining_balance'), ('Weeks Paid', 'weeks_paid'), ('Status', 'status'),
    ],
    'field_collection': [
        ('Client ID', 'client_id'), ('Client', 'client_name'), ('Loan ID', 'loan_id'), ('Group', 'group_name'),
        ('Weekly Amount', 'weekly_amount'), ('Total Repaid', 'total_repaid'), ('Weeks Due', 'weeks_due'),
        ('Expected', 'expected_payment'), ('Overdue', 'overdue_amount'), ('Realise', 'realise_amount'),
        ('Months', 'months'), ('Comp. Savings', 'comp_svg_bal'), ('Vol. Savings', 'vol_svg_bal'),
    ],
}

def _filters():
    """Report filters from the query string, scoped to what the user may see"""
    return {
        'branch_id': request_branch_id(),
        'staff_name': resolve_staff_name(current_user, request.args.get('staff_name', '')),
        'start_date': parse_date_arg('start_date'),
        'end_date': parse_date_arg('end_date'),
        'as_of': parse_date_arg('as_of', date.today()),
    }

def _snapshot(filters):
    """Fresh branch snapshot, or an empty one with an inline error"""
    try:
        return load_snapshot(filters['branch_id'], staff_name=filters['staff_name'])
    except StoreError:
        current_app.logger.exception('Report data unavailable for branch %s', filters['branch_id'])
        flash('Could not load report data. The report is empty, please try again.', 'danger')
        return Snapshot()

def _staff_options(branch_id):
    query = StaffMember.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    return sorted({member.full_name for member in query.all()})

def _report_rows(name, snapshot, filters):
    if name in LOAN_REPORTS:
        builder = LOAN_REPORTS[name][1]
        return builder(snapshot, start_date=filters['start_date'], end_date=filters['end_date'],
                       staff_name=filters['staff_name'], today=filters['as_of'])
    if name == 'payments':
        return aggregators.payment_details(snapshot, filters['start_date'], filters['end_date'], filters['staff_name'])
    if name == 'clients':
        return aggregators.client_report(snapshot, filters['as_of'], client_id=request.args.get('client_id') or None,
                                         staff_name=filters['staff_name'])
    if name == 'field_collection':
        return aggregators.field_collection_sheet(snapshot, filters['as_of'], staff_name=filters['staff_name'])
    abort(404)

@reports_bp.route('/')
@login_required
def index():
    """Reports menu"""
    return render_template('reports/index.html', title='Reports', reports=LOAN_REPORTS)

@reports_bp.route('/loans/<name>')
@login_required
def loan_report(name):
    """Overdue, outstanding, fully paid and disbursed loan reports"""
    if name not in LOAN_REPORTS:
        abort(404)
    filters = _filters()
    rows = _report_rows(name, _snapshot(filters), filters)
    summary = aggregators.totals(rows, 'principal', 'loan_outstanding', 'total_repaid', 'remaining_balance',
                                 'arrears_amount', 'processing_fee', 'it_fee', 'risk_premium', 'g_fund')

    return render_template('reports/loan_report.html',
                         title=LOAN_REPORTS[name][0],
                         name=name,
                         rows=rows,
                         summary=summary,
                         filters=filters,
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/payments')
@login_required
def payment_report():
    """Repayment ledger for a period"""
    filters = _filters()
    rows = _report_rows('payments', _snapshot(filters), filters)
    summary = aggregators.totals(rows, 'repayment_amount')
    return render_template('reports/payments.html',
                         title='Payment Details',
                         rows=rows,
                         loan_groups=aggregators.group_payments(rows),
                         summary=summary,
                         filters=filters,
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/clients')
@login_required
def client_report():
    """Client and loan progress, with the payment history of one loan"""
    filters = _filters()
    snapshot = _snapshot(filters)
    rows = _report_rows('clients', snapshot, filters)

    detail = None
    loan_id = request.args.get('loan_id', '')
    if loan_id and filters['branch_id'] is None:
        # loan ids repeat across branches
        flash(f'Select a branch to see the payment history of {loan_id}.', 'warning')
    elif loan_id:
        try:
            loan = get_loan(filters['branch_id'], loan_id)
            if loan is not None:
                payments = payments_for_loan(loan.branch_id, loan.loan_id)
                detail = {
                    'loan': loan,
                    'metrics': loan.metrics(payments, today=filters['as_of']),
                    'history': aggregators.loan_payment_history(loan, payments),
                }
        except StoreError:
            current_app.logger.exception('Payment history unavailable for loan %s', loan_id)
            flash('Could not load the payment history.', 'danger')

    return render_template('reports/clients.html',
                         title='Client Report',
                         rows=rows,
                         detail=detail,
                         filters=filters,
                         client_id=request.args.get('client_id', ''),
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/field-collection')
@login_required
def field_collection():
    """Field collection sheet for loan officers"""
    filters = _filters()
    rows = _report_rows('field_collection', _snapshot(filters), filters)
    summary = aggregators.totals(rows, 'weekly_amount', 'total_repaid', 'expected_payment', 'overdue_amount',
                                 'realise_amount', 'comp_svg_bal', 'vol_svg_bal')
    return render_template('reports/field_collection.html',
                         title='Field Collection Sheet',
                         rows=rows,
                         summary=summary,
                         filters=filters,
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/portfolio/staff')
@login_required
def portfolio_staff():
    """Portfolio transactions grouped by staff and group"""
    filters = _filters()
    portfolio = aggregators.portfolio_by_staff(_snapshot(filters), filters['start_date'], filters['end_date'],
                                               staff_name=filters['staff_name'], today=filters['as_of'])
    return render_template('reports/portfolio_staff.html',
                         title='Portfolio by Staff',
                         portfolio=portfolio,
                         filters=filters,
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/portfolio/groups')
@login_required
def portfolio_groups():
    """Portfolio transactions grouped by group"""
    filters = _filters()
    group_id = request.args.get('group_id', '') or None
    portfolio = aggregators.portfolio_by_group(_snapshot(filters), filters['start_date'], filters['end_date'],
                                               staff_name=filters['staff_name'], group_id=group_id,
                                               today=filters['as_of'])
    groups = Group.query
    if filters['branch_id'] is not None:
        groups = groups.filter_by(branch_id=filters['branch_id'])
    return render_template('reports/portfolio_groups.html',
                         title='Portfolio by Group',
                         portfolio=portfolio,
                         filters=filters,
                         group_id=group_id or '',
                         groups=groups.order_by(Group.group_name).all(),
                         staff_options=_staff_options(filters['branch_id']))

@reports_bp.route('/trial-balance')
@login_required
def trial_balance():
    """Trial balance for a period, ledger rows prefilled"""
    filters = _filters()
    filters['staff_name'] = None
    start_date = filters['start_date'] or filters['as_of'].replace(day=1)
    end_date = filters['end_date'] or filters['as_of']

    manual = {
        'Bank Charges': {'dr': request.args.get('bank_charges', 0)},
        'Branch Cancel': {'cr': request.args.get('branch_cancel', 0)},
    }
    entries = aggregators.trial_balance_entries(_snapshot(filters), start_date, end_date, manual=manual)
    balance = aggregators.trial_balance(entries,
                                        cash_in_hand=request.args.get('cash_in_hand', 0),
                                        bank_balance=request.args.get('bank_balance', 0))

    return render_template('reports/trial_balance.html',
                         title='Trial Balance',
                         balance=balance,
                         start_date=start_date,
                         end_date=end_date,
                         filters=filters)

@reports_bp.route('/export/<name>')
@login_required
def export_report(name):
    """Export a tabular report to CSV"""
    if name not in EXPORT_COLUMNS:
        abort(404)
    filters = _filters()
    rows = _report_rows(name, _snapshot(filters), filters)

    columns = EXPORT_COLUMNS[name]
    data = []
    for row in rows:
        values = []
        for _, key in columns:
            value = row.get(key)
            if value is None:
                value = 'N/A' if key == 'close_on' else ''
            elif hasattr(value, 'quantize'):
                value = money(value)
            values.append(value)
        data.append(values)

    current_app.logger.info('%s exported %d rows of %s', current_user.username, len(data), name)
    return csv_response(name, [header for header, _ in columns], data)
