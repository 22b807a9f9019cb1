"""Branch accounts: expenses and prepaid office rent"""
from datetime import date
from flask import render_template, redirect, url_for, flash, current_app
from flask_login import login_required, current_user
from pmcmicro import db
from pmcmicro.accounts import accounts_bp
from pmcmicro.models import ExpenseCategory, ActualExpense, OfficeRentPrepaid
from pmcmicro.accounts.forms import ExpenseCategoryForm, ExpenseForm, RentPrepaidForm
from pmcmicro.finance import aggregators
from pmcmicro.utils.decorators import roles_required, branch_required
from pmcmicro.utils.helpers import request_branch_id, parse_date_arg, log_activity

@accounts_bp.route('/expenses')
@login_required
def expenses():
    """Expenses for a period with totals by category"""
    branch_id = request_branch_id()
    start_date = parse_date_arg('start_date')
    end_date = parse_date_arg('end_date')

    query = ActualExpense.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if start_date:
        query = query.filter(ActualExpense.expense_date >= start_date)
    if end_date:
        query = query.filter(ActualExpense.expense_date <= end_date)
    records = query.order_by(ActualExpense.expense_date.desc()).all()

    summary = aggregators.expense_summary(records)
    return render_template('accounts/expenses.html',
                         title='Expenses',
                         expenses=records,
                         summary=summary,
                         start_date=start_date,
                         end_date=end_date,
                         branch_id=branch_id)

@accounts_bp.route('/expenses/categories', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch')
@branch_required
def expense_categories():
    """Expense categories of the branch"""
    branch_id = request_branch_id()
    form = ExpenseCategoryForm()

    if form.validate_on_submit():
        name = form.expense_name.data.strip()
        if ExpenseCategory.query.filter_by(branch_id=branch_id, expense_name=name).first():
            flash(f'Expense category {name} already exists!', 'danger')
        else:
            category = ExpenseCategory(expense_name=name, branch_id=branch_id)
            db.session.add(category)
            db.session.flush()
            log_activity('create_expense_category', 'expense_category', category.id, f'Added expense category: {name}')
            db.session.commit()
            flash(f'Expense category {name} added!', 'success')
            return redirect(url_for('accounts.expense_categories', branch=branch_id))

    categories = ExpenseCategory.query.filter_by(branch_id=branch_id).order_by(ExpenseCategory.expense_name).all()
    return render_template('accounts/categories.html',
                         title='Expense Categories',
                         form=form,
                         categories=categories,
                         branch_id=branch_id)

@accounts_bp.route('/expenses/add', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch')
@branch_required
def add_expense():
    """Record an expense"""
    branch_id = request_branch_id()
    form = ExpenseForm()
    categories = ExpenseCategory.query.filter_by(branch_id=branch_id).order_by(ExpenseCategory.expense_name).all()
    form.expense_name.choices = [('', 'Select Expense')] + [(c.expense_name, c.expense_name) for c in categories]

    if form.validate_on_submit():
        expense = ActualExpense(
            expense_name=form.expense_name.data,
            amount=form.amount.data,
            expense_date=form.expense_date.data,
            description=form.description.data,
            branch_id=branch_id
        )
        db.session.add(expense)
        db.session.flush()
        log_activity('create_expense', 'expense', expense.id, f'Expense {expense.expense_name}: {expense.amount}')
        db.session.commit()

        flash('Expense recorded successfully!', 'success')
        return redirect(url_for('accounts.expenses', branch=branch_id))

    return render_template('accounts/add_expense.html', title='Add Expense', form=form, branch_id=branch_id)

@accounts_bp.route('/rent', methods=['GET', 'POST'])
@login_required
def rent():
    """Prepaid office rent with monthly amortization"""
    branch_id = request_branch_id()
    form = RentPrepaidForm()
    as_of = parse_date_arg('as_of', date.today())

    if form.validate_on_submit():
        if branch_id is None or current_user.role not in ('admin', 'branch'):
            flash('Select a branch with write access to record rent.', 'warning')
            return redirect(url_for('accounts.rent'))

        record = OfficeRentPrepaid(
            total_amount=form.total_amount.data,
            start_date=form.start_date.data,
            branch_id=branch_id
        )
        db.session.add(record)
        db.session.flush()
        log_activity('create_rent_prepaid', 'rent', record.id,
                     f'Prepaid rent {record.total_amount} from {record.start_date}')
        db.session.commit()

        current_app.logger.info('Prepaid rent recorded for branch %s', branch_id)
        flash('Prepaid rent recorded successfully!', 'success')
        return redirect(url_for('accounts.rent', branch=branch_id))

    query = OfficeRentPrepaid.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    schedules = [aggregators.rent_amortization(record, as_of)
                 for record in query.order_by(OfficeRentPrepaid.start_date.desc()).all()]

    return render_template('accounts/rent.html',
                         title='Prepaid Office Rent',
                         form=form,
                         schedules=schedules,
                         as_of=as_of,
                         branch_id=branch_id)
