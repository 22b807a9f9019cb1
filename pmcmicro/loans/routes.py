"""Loan origination and repayment routes"""
from datetime import date
from flask import render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from pmcmicro import db
from pmcmicro.loans import loans_bp
from pmcmicro.models import Loan, Payment, Client, Group, StaffMember
from pmcmicro.loans.forms import LoanForm, PaymentForm
from pmcmicro.finance import aggregators
from pmcmicro.finance.calculator import compute_loan_metrics, money
from pmcmicro.store import payments_for_loan, StoreError
from pmcmicro.utils.decorators import roles_required, branch_required, write_access_required
from pmcmicro.utils.helpers import request_branch_id, resolve_staff_name, generate_loan_id, log_activity

def _loan_form_choices(form, branch_id):
    clients = Client.query.filter_by(branch_id=branch_id).order_by(Client.full_name).all()
    form.client_id.choices = [('', 'Select Client')] + [(c.client_id, f'{c.client_id} - {c.full_name}') for c in clients]
    staff = StaffMember.query.filter_by(branch_id=branch_id).order_by(StaffMember.full_name).all()
    form.staff_name.choices = [('', 'Select Loan Officer')] + [(s.full_name, s.full_name) for s in staff]

def _apply_loan_form(loan, form, branch_id):
    """Copy form values onto ``loan`` with client and group names resolved"""
    client = Client.query.filter_by(branch_id=branch_id, client_id=form.client_id.data).first()
    group = None
    if client and client.group_id:
        group = Group.query.filter_by(branch_id=branch_id, group_id=client.group_id).first()

    loan.client_id = form.client_id.data
    loan.client_name = client.full_name if client else ''
    loan.group_id = client.group_id if client else None
    loan.group_name = group.group_name if group else None
    loan.staff_name = form.staff_name.data
    loan.loan_type = form.loan_type.data
    loan.loan_outcome = form.loan_outcome.data
    loan.principal = form.principal.data
    loan.interest_rate = form.interest_rate.data
    loan.payment_weeks = form.payment_weeks.data
    loan.processing_fee = form.processing_fee.data or 0
    loan.it_fee = form.it_fee.data or 0
    loan.risk_premium = form.risk_premium.data or 0
    loan.g_fund = form.g_fund.data or 0
    loan.disbursement_date = form.disbursement_date.data
    loan.repayment_start_date = form.repayment_start_date.data

def _branch_loan_or_redirect(id):
    loan = db.get_or_404(Loan, id)
    branch_id = request_branch_id()
    if branch_id is not None and loan.branch_id != branch_id:
        flash('Access denied: Loan not found in current branch.', 'danger')
        return loan, redirect(url_for('loans.list_loans'))
    staff_name = resolve_staff_name(current_user)
    if staff_name and loan.staff_name != staff_name:
        flash('Access denied: Loan belongs to another loan officer.', 'danger')
        return loan, redirect(url_for('loans.list_loans'))
    return loan, None

@loans_bp.route('/')
@login_required
def list_loans():
    """List loans"""
    page = request.args.get('page', 1, type=int)
    search = request.args.get('search', '')
    outcome = request.args.get('outcome', '')
    branch_id = request_branch_id()
    staff_name = resolve_staff_name(current_user, request.args.get('staff_name', ''))

    query = Loan.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if staff_name:
        query = query.filter_by(staff_name=staff_name)
    if search:
        query = query.filter(db.or_(
            Loan.loan_id.ilike(f'%{search}%'),
            Loan.client_id.ilike(f'%{search}%'),
            Loan.client_name.ilike(f'%{search}%')
        ))
    if outcome:
        query = query.filter_by(loan_outcome=outcome)

    loans = query.order_by(Loan.created_at.desc()).paginate(
        page=page, per_page=current_app.config['ITEMS_PER_PAGE'], error_out=False
    )

    return render_template('loans/list.html',
                         title='Loans',
                         loans=loans,
                         search=search,
                         outcome=outcome,
                         staff_name=staff_name,
                         branch_id=branch_id)

@loans_bp.route('/add', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch')
@branch_required
def add_loan():
    """Disburse a new loan"""
    branch_id = request_branch_id()
    form = LoanForm()
    _loan_form_choices(form, branch_id)

    if form.validate_on_submit():
        loan = Loan(loan_id=generate_loan_id(branch_id), branch_id=branch_id, created_by=current_user.id)
        _apply_loan_form(loan, form, branch_id)
        db.session.add(loan)
        db.session.flush()

        metrics = compute_loan_metrics(loan, [])
        log_activity('create_loan', 'loan', loan.id,
                     f'Created loan {loan.loan_id} for {loan.client_id}: principal {loan.principal}, '
                     f'total due {money(metrics["loan_outstanding"])}')
        db.session.commit()

        current_app.logger.info('Loan %s created in branch %s', loan.loan_id, branch_id)
        flash(f'Loan {loan.loan_id} created successfully!', 'success')
        return redirect(url_for('loans.view_loan', id=loan.id))

    return render_template('loans/add.html', title='Add Loan', form=form, branch_id=branch_id)

@loans_bp.route('/<int:id>')
@login_required
def view_loan(id):
    """Loan details, recomputed balance and payment history"""
    loan, denied = _branch_loan_or_redirect(id)
    if denied:
        return denied

    payments = []
    try:
        payments = payments_for_loan(loan.branch_id, loan.loan_id)
    except StoreError:
        current_app.logger.exception('Payments unavailable for loan %s', loan.loan_id)
        flash('Could not load payments for this loan.', 'danger')

    metrics = loan.metrics(payments, today=date.today())
    history = aggregators.loan_payment_history(loan, payments)

    return render_template('loans/view.html',
                         title=f'Loan: {loan.loan_id}',
                         loan=loan,
                         metrics=metrics,
                         history=history)

@loans_bp.route('/<int:id>/edit', methods=['GET', 'POST'])
@login_required
@roles_required('admin')
def edit_loan(id):
    """Administrative edit of loan terms"""
    loan = db.get_or_404(Loan, id)
    form = LoanForm(obj=loan)
    _loan_form_choices(form, loan.branch_id)

    if form.validate_on_submit():
        before = compute_loan_metrics(loan, [])
        _apply_loan_form(loan, form, loan.branch_id)
        after = compute_loan_metrics(loan, [])

        log_activity('update_loan', 'loan', loan.id,
                     f'Updated loan {loan.loan_id}: total due {money(before["loan_outstanding"])} '
                     f'-> {money(after["loan_outstanding"])}')
        db.session.commit()

        if before['loan_outstanding'] != after['loan_outstanding']:
            current_app.logger.warning('Loan %s terms changed after disbursement', loan.loan_id)
        flash('Loan updated successfully!', 'success')
        return redirect(url_for('loans.view_loan', id=loan.id))

    return render_template('loans/edit.html', title=f'Edit Loan: {loan.loan_id}', form=form, loan=loan)

@loans_bp.route('/<int:id>/payment', methods=['GET', 'POST'])
@login_required
@write_access_required
def add_payment(id):
    """Record a repayment against a loan"""
    loan, denied = _branch_loan_or_redirect(id)
    if denied:
        return denied

    if loan.loan_outcome != 'Disbursed':
        flash('Payments can only be recorded on disbursed loans.', 'warning')
        return redirect(url_for('loans.view_loan', id=loan.id))

    form = PaymentForm()
    try:
        payments = payments_for_loan(loan.branch_id, loan.loan_id)
    except StoreError:
        current_app.logger.exception('Payments unavailable for loan %s', loan.loan_id)
        flash('Could not load the loan balance. Please try again.', 'danger')
        return redirect(url_for('loans.view_loan', id=loan.id))
    metrics = loan.metrics(payments)

    if form.validate_on_submit():
        payment = Payment(
            loan_id=loan.loan_id,
            client_id=loan.client_id,
            full_name=loan.client_name,
            branch_id=loan.branch_id,
            staff_name=loan.staff_name,
            group_id=loan.group_id,
            group_name=loan.group_name,
            date=form.date.data,
            repayment_amount=form.repayment_amount.data,
            actual_amount=money(metrics['weekly_amount']),
            loan_outstanding=money(metrics['loan_outstanding']),
            principal=loan.principal,
            interest_rate=loan.interest_rate,
            payment_weeks=loan.payment_weeks,
            repayment_start_date=loan.repayment_start_date,
            loan_outcome=loan.loan_outcome,
            loan_type=loan.loan_type,
            collected_by=current_user.id
        )
        try:
            db.session.add(payment)
            db.session.flush()
            log_activity('loan_payment', 'payment', payment.id,
                         f'Payment of {payment.repayment_amount} for loan {loan.loan_id}')
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Could not record payment for loan %s', loan.loan_id)
            flash('Payment could not be saved. Please try again.', 'danger')
            return redirect(url_for('loans.view_loan', id=loan.id))

        remaining = metrics['remaining_balance'] - payment.repayment_amount
        current_app.logger.info('Payment %s recorded on loan %s', payment.repayment_amount, loan.loan_id)
        flash(f'Payment of {payment.repayment_amount} recorded successfully! Remaining balance: {money(remaining)}', 'success')
        return redirect(url_for('loans.view_loan', id=loan.id))

    if request.method == 'GET':
        form.repayment_amount.data = money(metrics['weekly_amount'])
        form.date.data = date.today()

    return render_template('loans/payment.html',
                         title=f'Add Payment: {loan.loan_id}',
                         form=form,
                         loan=loan,
                         metrics=metrics)

@loans_bp.route('/payments/<int:id>/delete', methods=['POST'])
@login_required
@roles_required('admin', 'branch')
def delete_payment(id):
    """Remove a mistaken ledger entry"""
    payment = db.get_or_404(Payment, id)
    branch_id = request_branch_id()
    if branch_id is not None and payment.branch_id != branch_id:
        flash('Access denied: Payment not found in current branch.', 'danger')
        return redirect(url_for('loans.list_loans'))

    loan = Loan.query.filter_by(branch_id=payment.branch_id, loan_id=payment.loan_id).first()
    log_activity('delete_payment', 'payment', payment.id,
                 f'Deleted payment of {payment.repayment_amount} dated {payment.date} for loan {payment.loan_id}')
    db.session.delete(payment)
    db.session.commit()

    flash('Payment deleted successfully!', 'success')
    if loan:
        return redirect(url_for('loans.view_loan', id=loan.id))
    return redirect(url_for('loans.list_loans'))
