"""Read access used by the calculator and report aggregators"""
from sqlalchemy.exc import SQLAlchemyError
from pmcmicro import db
from pmcmicro.models import Loan, Payment, Savings, Withdrawal, ActualExpense, OfficeRentPrepaid
from pmcmicro.finance.aggregators import Snapshot


class StoreError(Exception):
    """Raised when branch records cannot be loaded"""


def _scoped(query, model, branch_id):
    # None means every branch (head office users)
    if branch_id is not None:
        query = query.filter(model.branch_id == branch_id)
    return query


def load_snapshot(branch_id, staff_name=None):
    """Fetch the records of one branch (or all branches when ``branch_id`` is None).

    ``staff_name`` restricts loans to one officer's portfolio. Payments follow
    the loan's current officer, not the name stored when they were recorded.
    """
    try:
        loans = _scoped(Loan.query, Loan, branch_id)
        payments = _scoped(Payment.query, Payment, branch_id)
        if staff_name:
            loans = loans.filter(Loan.staff_name == staff_name)
            payments = payments.join(Loan, db.and_(Loan.branch_id == Payment.branch_id,
                                                   Loan.loan_id == Payment.loan_id))\
                .filter(Loan.staff_name == staff_name)
        return Snapshot(
            loans=loans.order_by(Loan.id).all(),
            payments=payments.order_by(Payment.date, Payment.id).all(),
            savings=_scoped(Savings.query, Savings, branch_id).order_by(Savings.date, Savings.id).all(),
            withdrawals=_scoped(Withdrawal.query, Withdrawal, branch_id).order_by(Withdrawal.date, Withdrawal.id).all(),
            expenses=_scoped(ActualExpense.query, ActualExpense, branch_id).order_by(ActualExpense.expense_date).all(),
            rents=_scoped(OfficeRentPrepaid.query, OfficeRentPrepaid, branch_id).order_by(OfficeRentPrepaid.start_date).all(),
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError(f'Could not load records for branch {branch_id}: {e}') from e


def get_loan(branch_id, loan_id):
    """Loan record for ``loan_id`` or None"""
    try:
        return Loan.query.filter_by(branch_id=branch_id, loan_id=loan_id).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError(f'Could not load loan {loan_id}: {e}') from e


def payments_for_loan(branch_id, loan_id):
    """All payments of one loan, oldest first"""
    try:
        return Payment.query.filter_by(branch_id=branch_id, loan_id=loan_id)\
            .order_by(Payment.date, Payment.id).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError(f'Could not load payments for loan {loan_id}: {e}') from e
