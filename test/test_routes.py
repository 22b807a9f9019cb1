"""Request level behaviour of the blueprints"""
from datetime import date, timedelta
from decimal import Decimal
from pmcmicro import db
from pmcmicro.models import Client, Loan, Payment, Withdrawal, ActivityLog
from pmcmicro.finance import aggregators
from pmcmicro.store import load_snapshot
from conftest import login, add_client, add_loan, add_payment, add_savings


def test_login_required(client, users):
    response = client.get('/dashboard')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_login_with_wrong_password(client, users):
    response = login(client, 'manager', 'not-the-password')
    assert b'Invalid username or password' in response.data


def test_branch_dashboard(client, branch, users):
    add_client(branch, 'pmcd-01', 'Fatmata Bangura')
    response = login(client, 'manager')
    assert response.status_code == 200
    assert b'Dashboard' in response.data


def test_client_ids_increment(client, branch, users):
    login(client, 'manager')
    client.post('/clients/add', data={'full_name': 'Fatmata Bangura', 'gender': '', 'group_id': ''})
    client.post('/clients/add', data={'full_name': 'Ibrahim Conteh', 'gender': '', 'group_id': ''})

    ids = sorted(c.client_id for c in Client.query.all())
    assert ids == ['pmcd-01', 'pmcd-02']
    assert ActivityLog.query.filter_by(action='create_client').count() == 2


def test_bulk_upload(client, branch, users):
    add_client(branch, 'pmcd-04', 'Existing Client')
    login(client, 'manager')
    client.post('/clients/bulk', data={'names': 'Mariama Koroma\nAlusine Kamara, Hawa Turay', 'group_id': ''})

    ids = sorted(c.client_id for c in Client.query.all())
    assert ids == ['pmcd-04', 'pmcd-05', 'pmcd-06', 'pmcd-07']


def test_add_loan(client, branch, users):
    add_client(branch, 'pmcd-01', 'Fatmata Bangura')
    login(client, 'manager')
    today = date.today()
    response = client.post('/loans/add', data={
        'client_id': 'pmcd-01',
        'staff_name': 'Aminata Kamara',
        'loan_type': 'Group',
        'loan_outcome': 'Disbursed',
        'principal': '5000',
        'interest_rate': '10',
        'payment_weeks': '12',
        'processing_fee': '100',
        'it_fee': '0',
        'risk_premium': '0',
        'g_fund': '0',
        'disbursement_date': today.isoformat(),
        'repayment_start_date': (today + timedelta(weeks=1)).isoformat(),
    }, follow_redirects=True)

    assert response.status_code == 200
    loan = Loan.query.one()
    assert loan.loan_id == 'loan-01'
    assert loan.client_name == 'Fatmata Bangura'
    assert b'5,500.00' in response.data


def test_loan_repayment_cannot_start_before_disbursement(client, branch, users):
    add_client(branch, 'pmcd-01', 'Fatmata Bangura')
    login(client, 'manager')
    today = date.today()
    client.post('/loans/add', data={
        'client_id': 'pmcd-01',
        'staff_name': 'Aminata Kamara',
        'loan_type': 'Group',
        'loan_outcome': 'Disbursed',
        'principal': '5000',
        'interest_rate': '10',
        'payment_weeks': '12',
        'disbursement_date': today.isoformat(),
        'repayment_start_date': (today - timedelta(days=1)).isoformat(),
    })
    assert Loan.query.count() == 0


def test_payment_form_prefills_weekly_amount(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01')
    login(client, 'manager')
    response = client.get(f'/loans/{loan.id}/payment')

    assert response.status_code == 200
    assert b'458.33' in response.data


def test_payment_stores_loan_snapshot(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01')
    login(client, 'manager')
    client.post(f'/loans/{loan.id}/payment', data={
        'date': date.today().isoformat(),
        'repayment_amount': '458.33',
    })

    payment = Payment.query.one()
    assert payment.repayment_amount == Decimal('458.33')
    assert payment.actual_amount == Decimal('458.33')
    assert payment.loan_outstanding == Decimal('5500.00')
    assert payment.principal == Decimal('5000.00')
    assert payment.payment_weeks == 12
    assert payment.staff_name == 'Aminata Kamara'


def test_loan_view_recomputes_after_terms_change(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01')
    add_payment(loan, '458.33')
    loan.principal = Decimal('6000')
    db.session.commit()

    login(client, 'manager')
    response = client.get(f'/loans/{loan.id}')
    assert response.status_code == 200
    # 6000 + 10% recomputed, not the figure stored at entry time
    assert b'6,600.00' in response.data


def test_read_only_user_cannot_record_payment(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01')
    login(client, 'ceo')
    response = client.post(f'/loans/{loan.id}/payment?branch={branch.id}', data={
        'date': date.today().isoformat(),
        'repayment_amount': '100',
    })

    assert response.status_code == 302
    assert Payment.query.count() == 0


def test_staff_user_cannot_open_other_portfolio(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01', staff_name='Mohamed Sesay')
    login(client, 'officer')
    response = client.get(f'/loans/{loan.id}')
    assert response.status_code == 302


def test_withdrawal_cannot_exceed_balance(client, branch, users):
    add_client(branch, 'pmcd-01', 'Fatmata Bangura')
    add_savings(branch, 'pmcd-01', compulsory='100', voluntary='50')
    login(client, 'manager')

    response = client.post('/savings/withdraw', data={
        'client_id': 'pmcd-01',
        'date': date.today().isoformat(),
        'amount': '200',
    })
    assert b'exceeds the savings balance' in response.data
    assert Withdrawal.query.count() == 0

    client.post('/savings/withdraw', data={
        'client_id': 'pmcd-01',
        'date': date.today().isoformat(),
        'amount': '150',
    })
    assert Withdrawal.query.count() == 1


def test_reports_render(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01', start=date.today() - timedelta(weeks=10))
    add_payment(loan, '458.33', date.today() - timedelta(weeks=9))
    login(client, 'manager')

    for url in ('/reports/', '/reports/loans/overdue', '/reports/loans/outstanding', '/reports/loans/fully_paid',
                '/reports/loans/disbursed', '/reports/payments', '/reports/clients?loan_id=loan-01',
                '/reports/field-collection', '/reports/portfolio/staff', '/reports/portfolio/groups',
                '/reports/trial-balance?cash_in_hand=100&bank_charges=5', '/savings/', '/accounts/expenses',
                '/accounts/rent'):
        response = client.get(url)
        assert response.status_code == 200, url

    assert client.get('/reports/loans/unknown').status_code == 404


def test_overdue_report_lists_loan(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01', start=date.today() - timedelta(weeks=10))
    add_payment(loan, '458.33', date.today() - timedelta(weeks=9))
    login(client, 'admin')

    response = client.get(f'/reports/loans/overdue?branch={branch.id}')
    assert b'loan-01' in response.data


def test_csv_export(client, branch, users):
    add_loan(branch, 'loan-01', 'pmcd-01', start=date.today() - timedelta(weeks=10))
    login(client, 'manager')
    response = client.get('/reports/export/overdue')

    assert response.status_code == 200
    assert response.headers['Content-Type'].startswith('text/csv')
    lines = response.data.decode().splitlines()
    assert lines[0].startswith('Loan ID,Client ID,Client')
    assert 'loan-01' in lines[1]
    assert '5500.00' in lines[1]


def test_staff_dashboard_shows_own_loans(client, branch, users):
    add_loan(branch, 'loan-01', 'pmcd-01', staff_name='Aminata Kamara')
    add_loan(branch, 'loan-02', 'pmcd-02', staff_name='Mohamed Sesay')
    response = login(client, 'officer')

    assert b'My Portfolio' in response.data
    assert b'loan-01' in response.data
    assert b'loan-02' not in response.data


def test_staff_reports_are_limited_to_own_portfolio(client, branch, users):
    add_loan(branch, 'loan-01', 'pmcd-01', staff_name='Aminata Kamara')
    add_loan(branch, 'loan-02', 'pmcd-02', staff_name='Mohamed Sesay')
    login(client, 'officer')

    response = client.get('/reports/loans/outstanding?staff_name=Mohamed+Sesay')
    assert b'loan-01' in response.data
    assert b'loan-02' not in response.data


def test_delete_payment_requires_branch_role(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01')
    payment = add_payment(loan, '100')
    login(client, 'officer')
    client.post(f'/loans/payments/{payment.id}/delete')
    assert Payment.query.count() == 1

    client.get('/auth/logout')
    login(client, 'manager')
    client.post(f'/loans/payments/{payment.id}/delete')
    assert Payment.query.count() == 0


def test_reassigned_loan_keeps_its_payments(client, branch, users):
    loan = add_loan(branch, 'loan-01', 'pmcd-01', staff_name='Mohamed Sesay')
    add_payment(loan, '5500')
    loan.staff_name = 'Aminata Kamara'
    db.session.commit()

    rows = aggregators.loan_rows(load_snapshot(branch.id, staff_name='Aminata Kamara'))
    assert rows[0]['total_repaid'] == Decimal('5500')
    assert rows[0]['is_fully_paid']
    assert aggregators.loan_rows(load_snapshot(branch.id, staff_name='Mohamed Sesay')) == []

    login(client, 'officer')
    response = client.get('/reports/loans/fully_paid')
    assert b'loan-01' in response.data


def test_add_loan_with_zero_principal(client, branch, users):
    add_client(branch, 'pmcd-01', 'Fatmata Bangura')
    login(client, 'manager')
    today = date.today()
    client.post('/loans/add', data={
        'client_id': 'pmcd-01',
        'staff_name': 'Aminata Kamara',
        'loan_type': 'Group',
        'loan_outcome': 'Disbursed',
        'principal': '0',
        'interest_rate': '10',
        'payment_weeks': '12',
        'processing_fee': '0',
        'it_fee': '0',
        'risk_premium': '0',
        'g_fund': '0',
        'disbursement_date': today.isoformat(),
        'repayment_start_date': today.isoformat(),
    })

    loan = Loan.query.one()
    assert loan.principal == Decimal('0')


def test_payment_history_asks_head_office_for_branch(client, branch, users):
    add_loan(branch, 'loan-01', 'pmcd-01')
    login(client, 'admin')

    response = client.get('/reports/clients?loan_id=loan-01')
    assert response.status_code == 200
    assert b'Select a branch to see the payment history of loan-01' in response.data
