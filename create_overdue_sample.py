#!/usr/bin/env python3
"""Create a sample overdue loan for trying out the overdue report"""
import sys
from datetime import date, timedelta
from decimal import Decimal
from pmcmicro import create_app, db
from pmcmicro.models import Branch, Client, Loan, Payment, User
from pmcmicro.finance.calculator import compute_loan_metrics, money
from pmcmicro.utils.helpers import next_sequence_id

app = create_app('development')
with app.app_context():
    branch = Branch.query.first()
    client = Client.query.filter_by(branch_id=branch.id).first() if branch else None
    user = User.query.filter_by(role='admin').first()

    if not branch or not client or not user:
        print('Missing required data: create a branch, a client and an admin user first')
        sys.exit(1)

    print(f'Using branch: {branch.branch_name}')
    print(f'Using client: {client.client_id} {client.full_name}')

    existing = [row.loan_id for row in Loan.query.with_entities(Loan.loan_id).filter_by(branch_id=branch.id)]
    disbursed = date.today() - timedelta(weeks=10)

    # 12 week loan, 10 weeks in, only 3 payments made
    loan = Loan(
        loan_id=next_sequence_id(app.config['LOAN_ID_PREFIX'], existing),
        client_id=client.client_id,
        client_name=client.full_name,
        branch_id=branch.id,
        staff_name='Sample Officer',
        group_id=client.group_id,
        loan_outcome='Disbursed',
        loan_type='Group',
        principal=Decimal('5000.00'),
        interest_rate=Decimal('10.00'),
        payment_weeks=12,
        processing_fee=Decimal('100.00'),
        disbursement_date=disbursed,
        repayment_start_date=disbursed,
        created_by=user.id
    )
    db.session.add(loan)
    db.session.flush()

    metrics = compute_loan_metrics(loan, [])
    for week in range(1, 4):
        db.session.add(Payment(
            loan_id=loan.loan_id,
            client_id=loan.client_id,
            full_name=loan.client_name,
            branch_id=branch.id,
            staff_name=loan.staff_name,
            group_id=loan.group_id,
            date=disbursed + timedelta(weeks=week),
            repayment_amount=money(metrics['weekly_amount']),
            actual_amount=money(metrics['weekly_amount']),
            loan_outstanding=money(metrics['loan_outstanding']),
            principal=loan.principal,
            interest_rate=loan.interest_rate,
            payment_weeks=loan.payment_weeks,
            repayment_start_date=loan.repayment_start_date,
            loan_outcome=loan.loan_outcome,
            loan_type=loan.loan_type,
            collected_by=user.id
        ))
    db.session.commit()

    payments = Payment.query.filter_by(branch_id=branch.id, loan_id=loan.loan_id).all()
    metrics = compute_loan_metrics(loan, payments)
    print(f'\nCreated sample overdue loan: {loan.loan_id}')
    print(f'Loan Outstanding: {money(metrics["loan_outstanding"])}')
    print(f'Weekly Amount: {money(metrics["weekly_amount"])}')
    print(f'Payments Made: {metrics["payments_made"]} of {loan.payment_weeks}')
    print(f'Weeks Passed: {metrics["weeks_passed"]}')
    print(f'Remaining Balance: {money(metrics["remaining_balance"])}')
    print(f'Overdue: {metrics["is_overdue"]}')
