"""Shared fixtures for the route tests"""
from datetime import date, timedelta
from decimal import Decimal
import pytest
from pmcmicro import create_app, db
from pmcmicro.models import Branch, User, StaffMember, Client, Loan, Payment, Savings

PASSWORD = 'password123'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def branch(app):
    branch = Branch(branch_id='FTN', branch_name='Freetown', branch_location='Freetown')
    db.session.add(branch)
    db.session.commit()
    return branch


@pytest.fixture
def users(branch):
    """One account per role"""
    accounts = {
        'admin': User(username='admin', full_name='System Administrator', role='admin'),
        'ceo': User(username='ceo', full_name='Chief Executive', role='ceo'),
        'branch': User(username='manager', full_name='Branch Manager', role='branch', branch_id=branch.id),
        'staff': User(username='officer', full_name='Aminata Kamara', role='staff', branch_id=branch.id,
                      staff_name='Aminata Kamara'),
    }
    for user in accounts.values():
        user.set_password(PASSWORD)
        db.session.add(user)
    db.session.add(StaffMember(staff_id='ST-01', full_name='Aminata Kamara', branch_id=branch.id))
    db.session.add(StaffMember(staff_id='ST-02', full_name='Mohamed Sesay', branch_id=branch.id))
    db.session.commit()
    return accounts


def login(client, username, password=PASSWORD):
    return client.post('/auth/login', data={'username': username, 'password': password}, follow_redirects=True)


def add_client(branch, client_id, full_name, group_id=None):
    record = Client(client_id=client_id, full_name=full_name, group_id=group_id, branch_id=branch.id)
    db.session.add(record)
    db.session.commit()
    return record


def add_loan(branch, loan_id, client_id, staff_name='Aminata Kamara', principal='5000', rate='10', weeks=12,
             start=None, outcome='Disbursed'):
    start = start or date.today() - timedelta(weeks=2)
    loan = Loan(
        loan_id=loan_id,
        client_id=client_id,
        client_name=f'Client {client_id}',
        branch_id=branch.id,
        staff_name=staff_name,
        loan_outcome=outcome,
        loan_type='Group',
        principal=Decimal(principal),
        interest_rate=Decimal(rate),
        payment_weeks=weeks,
        disbursement_date=start,
        repayment_start_date=start
    )
    db.session.add(loan)
    db.session.commit()
    return loan


def add_payment(loan, amount, on=None):
    payment = Payment(
        loan_id=loan.loan_id,
        client_id=loan.client_id,
        full_name=loan.client_name,
        branch_id=loan.branch_id,
        staff_name=loan.staff_name,
        date=on or date.today(),
        repayment_amount=Decimal(amount)
    )
    db.session.add(payment)
    db.session.commit()
    return payment


def add_savings(branch, client_id, compulsory='0', voluntary='0'):
    deposit = Savings(client_id=client_id, client_name=f'Client {client_id}', branch_id=branch.id,
                      compulsory_amount=Decimal(compulsory), voluntary_savings=Decimal(voluntary))
    db.session.add(deposit)
    db.session.commit()
    return deposit
