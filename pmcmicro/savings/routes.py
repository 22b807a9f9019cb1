"""Savings and withdrawal routes"""
from flask import render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required
from pmcmicro import db
from pmcmicro.savings import savings_bp
from pmcmicro.models import Client, Savings, Withdrawal
from pmcmicro.savings.forms import SavingsForm, WithdrawalForm
from pmcmicro.finance import aggregators
from pmcmicro.finance.calculator import ZERO
from pmcmicro.store import load_snapshot, StoreError
from pmcmicro.utils.decorators import write_access_required, branch_required
from pmcmicro.utils.helpers import request_branch_id, log_activity

def _client_choices(form, branch_id):
    clients = Client.query.filter_by(branch_id=branch_id).order_by(Client.full_name).all()
    form.client_id.choices = [('', 'Select Client')] + [(c.client_id, f'{c.client_id} - {c.full_name}') for c in clients]
    return {c.client_id: c for c in clients}

def _client_balance(branch_id, client_id):
    snapshot = load_snapshot(branch_id)
    rows = aggregators.savings_balances(snapshot.savings, snapshot.withdrawals, client_id=client_id)
    return rows[0]['balance'] if rows else ZERO

@savings_bp.route('/')
@login_required
def index():
    """Savings balances per client"""
    branch_id = request_branch_id()
    client_id = request.args.get('client_id', '')

    balances = []
    try:
        snapshot = load_snapshot(branch_id)
    except StoreError:
        current_app.logger.exception('Savings unavailable for branch %s', branch_id)
        flash('Could not load savings records. Please try again.', 'danger')
    else:
        balances = aggregators.savings_balances(snapshot.savings, snapshot.withdrawals, client_id=client_id or None)

    totals = aggregators.totals(balances, 'compulsory', 'voluntary', 'withdrawn', 'balance')
    return render_template('savings/index.html',
                         title='Savings',
                         balances=balances,
                         totals=totals,
                         client_id=client_id,
                         branch_id=branch_id)

@savings_bp.route('/add', methods=['GET', 'POST'])
@login_required
@write_access_required
@branch_required
def add_savings():
    """Record a savings deposit"""
    branch_id = request_branch_id()
    form = SavingsForm()
    clients = _client_choices(form, branch_id)

    if form.validate_on_submit():
        client = clients.get(form.client_id.data)
        deposit = Savings(
            client_id=form.client_id.data,
            client_name=client.full_name if client else '',
            branch_id=branch_id,
            date=form.date.data,
            compulsory_amount=form.compulsory_amount.data or 0,
            voluntary_savings=form.voluntary_savings.data or 0
        )
        db.session.add(deposit)
        db.session.flush()
        log_activity('create_savings', 'savings', deposit.id,
                     f'Savings for {deposit.client_id}: compulsory {deposit.compulsory_amount}, '
                     f'voluntary {deposit.voluntary_savings}')
        db.session.commit()

        flash('Savings recorded successfully!', 'success')
        return redirect(url_for('savings.index', branch=branch_id))

    return render_template('savings/add.html', title='Add Savings', form=form, branch_id=branch_id)

@savings_bp.route('/withdraw', methods=['GET', 'POST'])
@login_required
@write_access_required
@branch_required
def add_withdrawal():
    """Record a withdrawal, never more than the client's balance"""
    branch_id = request_branch_id()
    form = WithdrawalForm()
    clients = _client_choices(form, branch_id)

    if form.validate_on_submit():
        try:
            balance = _client_balance(branch_id, form.client_id.data)
        except StoreError:
            current_app.logger.exception('Savings balance unavailable for %s', form.client_id.data)
            flash('Could not check the savings balance. Please try again.', 'danger')
            return render_template('savings/withdraw.html', title='Withdraw Savings', form=form, branch_id=branch_id)

        if form.amount.data > balance:
            flash(f'Withdrawal exceeds the savings balance of {balance}.', 'danger')
            return render_template('savings/withdraw.html', title='Withdraw Savings', form=form, branch_id=branch_id)

        client = clients.get(form.client_id.data)
        withdrawal = Withdrawal(
            client_id=form.client_id.data,
            client_name=client.full_name if client else '',
            branch_id=branch_id,
            date=form.date.data,
            amount=form.amount.data
        )
        db.session.add(withdrawal)
        db.session.flush()
        log_activity('create_withdrawal', 'withdrawal', withdrawal.id,
                     f'Withdrawal of {withdrawal.amount} for {withdrawal.client_id}')
        db.session.commit()

        flash('Withdrawal recorded successfully!', 'success')
        return redirect(url_for('savings.index', branch=branch_id))

    return render_template('savings/withdraw.html', title='Withdraw Savings', form=form, branch_id=branch_id)
