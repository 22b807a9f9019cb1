"""Report aggregations over plain snapshot records"""
from datetime import date, timedelta
from decimal import Decimal
from pmcmicro.finance import aggregators
from pmcmicro.finance.aggregators import Snapshot
from pmcmicro.finance.calculator import money

TODAY = date(2024, 6, 1)


def loan(loan_id, client_id, staff='Aminata Kamara', branch=1, weeks_ago=2, outcome='Disbursed',
         group_id='G1', group_name='Unity', principal='5000', rate='10', weeks=12, **extra):
    start = TODAY - timedelta(weeks=weeks_ago)
    record = {
        'branch_id': branch,
        'loan_id': loan_id,
        'client_id': client_id,
        'client_name': f'Client {client_id}',
        'staff_name': staff,
        'group_id': group_id,
        'group_name': group_name,
        'loan_outcome': outcome,
        'principal': principal,
        'interest_rate': rate,
        'payment_weeks': weeks,
        'disbursement_date': start,
        'repayment_start_date': start,
    }
    record.update(extra)
    return record


def payment(loan_record, amount, on, **extra):
    record = {
        'branch_id': loan_record['branch_id'],
        'loan_id': loan_record['loan_id'],
        'client_id': loan_record['client_id'],
        'full_name': loan_record['client_name'],
        'staff_name': loan_record['staff_name'],
        'group_id': loan_record['group_id'],
        'group_name': loan_record['group_name'],
        'date': on,
        'repayment_amount': amount,
    }
    record.update(extra)
    return record


def weekly_payments(loan_record, count, amount='458.33'):
    start = loan_record['repayment_start_date']
    return [payment(loan_record, amount, start + timedelta(weeks=n)) for n in range(1, count + 1)]


def build():
    lagging = loan('loan-01', 'pmcd-01', weeks_ago=10)
    on_time = loan('loan-02', 'pmcd-02', weeks_ago=2)
    settled = loan('loan-03', 'pmcd-03', staff='Mohamed Sesay', weeks_ago=13, group_id='G2', group_name='Hope')
    pending = loan('loan-04', 'pmcd-04', outcome='Pending')
    payments = (weekly_payments(lagging, 3) + weekly_payments(on_time, 2) + weekly_payments(settled, 12))
    return Snapshot(loans=[lagging, on_time, settled, pending], payments=payments)


def test_overdue_loans_lists_only_lagging_loans():
    rows = aggregators.overdue_loans(build(), TODAY)

    assert [row['loan_id'] for row in rows] == ['loan-01']
    row = rows[0]
    assert row['weeks_passed'] == 10
    assert row['arrears_weeks'] == 7
    assert money(row['arrears_amount']) == Decimal('3208.34')


def test_overdue_loans_filters_by_staff():
    assert aggregators.overdue_loans(build(), TODAY, staff_name='Mohamed Sesay') == []
    assert len(aggregators.overdue_loans(build(), TODAY, staff_name='aminata kamara')) == 1


def test_outstanding_and_fully_paid_split():
    outstanding = aggregators.outstanding_balances(build(), TODAY)
    paid = aggregators.fully_paid_loans(build(), TODAY)

    assert [row['loan_id'] for row in outstanding] == ['loan-01', 'loan-02']
    assert [row['loan_id'] for row in paid] == ['loan-03']
    assert paid[0]['status'] == 'Paid Off'


def test_pending_loans_are_left_out():
    rows = aggregators.loan_rows(build(), TODAY)
    assert 'loan-04' not in [row['loan_id'] for row in rows]


def test_orphan_payments_are_skipped():
    snapshot = build()
    orphan = payment(loan('loan-99', 'pmcd-99'), '1000', TODAY)
    with_orphan = snapshot._replace(payments=list(snapshot.payments) + [orphan])

    details = aggregators.payment_details(with_orphan)
    assert 'loan-99' not in {row['loan_id'] for row in details}
    assert len(details) == len(snapshot.payments)
    assert aggregators.outstanding_balances(with_orphan, TODAY) == aggregators.outstanding_balances(snapshot, TODAY)


def test_same_loan_id_in_two_branches():
    first = loan('loan-01', 'pmcd-01', branch=1)
    second = loan('loan-01', 'pmcd-01', branch=2)
    snapshot = Snapshot(loans=[first, second], payments=[payment(second, '5500', TODAY)])

    rows = {row['branch_id']: row for row in aggregators.loan_rows(snapshot, TODAY)}
    assert rows[1]['total_repaid'] == Decimal('0')
    assert rows[2]['is_fully_paid']


def test_metrics_ignore_payment_snapshots():
    record = loan('loan-01', 'pmcd-01')
    stale = payment(record, '100', TODAY, loan_outstanding='9999', actual_amount='1')
    rows = aggregators.loan_rows(Snapshot(loans=[record], payments=[stale]), TODAY)

    assert rows[0]['loan_outstanding'] == Decimal('5500')
    assert rows[0]['snapshot_outstanding'] == Decimal('9999')


def test_group_payments_sums_and_keeps_latest_fields():
    record = loan('loan-01', 'pmcd-01')
    grouped = aggregators.group_payments([
        payment(record, '300', date(2024, 5, 20), full_name='Newer Name'),
        payment(record, '200', date(2024, 5, 6), full_name='Old Name'),
    ])

    assert len(grouped) == 1
    assert grouped[0]['key'] == '1-pmcd-01-G1-loan-01'
    assert grouped[0]['total_repayment_so_far'] == Decimal('500')
    assert grouped[0]['full_name'] == 'Newer Name'
    assert grouped[0]['repayment_amount'] == Decimal('300')


def test_group_payments_keeps_branches_apart():
    first = loan('loan-01', 'pmcd-01', branch=1)
    second = loan('loan-01', 'pmcd-01', branch=2)
    grouped = aggregators.group_payments([
        payment(first, '100', date(2024, 5, 6)),
        payment(second, '200', date(2024, 5, 13)),
    ])

    assert [group['branch_id'] for group in grouped] == [1, 2]
    assert [group['total_repayment_so_far'] for group in grouped] == [Decimal('100'), Decimal('200')]


def test_payment_details_group_per_loan():
    first = loan('loan-01', 'pmcd-01')
    second = loan('loan-02', 'pmcd-02')
    snapshot = Snapshot(loans=[first, second], payments=[
        payment(first, '458.33', date(2024, 5, 6)),
        payment(second, '100', date(2024, 5, 8)),
        payment(first, '458.33', date(2024, 5, 13)),
    ])

    grouped = aggregators.group_payments(aggregators.payment_details(snapshot))
    by_loan = {group['loan_id']: group for group in grouped}
    assert by_loan['loan-01']['payment_count'] == 2
    assert by_loan['loan-01']['total_repayment_so_far'] == Decimal('916.66')
    assert by_loan['loan-01']['date'] == date(2024, 5, 13)
    assert by_loan['loan-02']['full_name'] == 'Client pmcd-02'


def test_disbursed_loans_carry_fees_and_date_range():
    snapshot = Snapshot(loans=[
        loan('loan-01', 'pmcd-01', weeks_ago=1, processing_fee='100', g_fund='50'),
        loan('loan-02', 'pmcd-02', weeks_ago=20),
    ])
    rows = aggregators.disbursed_loans(snapshot, start_date=TODAY - timedelta(weeks=4), end_date=TODAY, today=TODAY)

    assert [row['loan_id'] for row in rows] == ['loan-01']
    assert rows[0]['processing_fee'] == Decimal('100')
    assert rows[0]['g_fund'] == Decimal('50')
    assert rows[0]['it_fee'] == Decimal('0')


def test_client_report_weeks_paid():
    rows = aggregators.client_report(build(), TODAY, client_id='pmcd-01')
    assert len(rows) == 1
    assert rows[0]['weeks_paid'] == 3
    assert rows[0]['key'] == 'pmcd-01-loan-01'


def test_loan_payment_history_running_balance():
    record = loan('loan-01', 'pmcd-01')
    history = aggregators.loan_payment_history(record, [
        payment(record, '500', date(2024, 5, 27)),
        payment(record, '1000', date(2024, 5, 20)),
    ])

    assert [row['repayment_amount'] for row in history] == [Decimal('1000'), Decimal('500')]
    assert history[-1]['total_repaid'] == Decimal('1500')
    assert history[-1]['balance_after'] == Decimal('4000')


def test_savings_balances_net_of_withdrawals():
    savings = [
        {'branch_id': 1, 'client_id': 'pmcd-01', 'client_name': 'A', 'compulsory_amount': '100', 'voluntary_savings': '50'},
        {'branch_id': 1, 'client_id': 'pmcd-01', 'client_name': 'A', 'compulsory_amount': '100', 'voluntary_savings': '0'},
        {'branch_id': 1, 'client_id': 'pmcd-02', 'client_name': 'B', 'compulsory_amount': '20', 'voluntary_savings': None},
    ]
    withdrawals = [{'branch_id': 1, 'client_id': 'pmcd-01', 'amount': '75'}]
    rows = {row['client_id']: row for row in aggregators.savings_balances(savings, withdrawals)}

    assert rows['pmcd-01']['compulsory'] == Decimal('200')
    assert rows['pmcd-01']['voluntary'] == Decimal('50')
    assert rows['pmcd-01']['balance'] == Decimal('175')
    assert rows['pmcd-02']['balance'] == Decimal('20')


def test_field_collection_sheet():
    fresh = loan('loan-05', 'pmcd-05', weeks_ago=3)
    snapshot = Snapshot(
        loans=[fresh, loan('loan-03', 'pmcd-03', weeks_ago=13)],
        payments=weekly_payments(loan('loan-03', 'pmcd-03', weeks_ago=13), 12),
        savings=[{'branch_id': 1, 'client_id': 'pmcd-05', 'compulsory_amount': '40', 'voluntary_savings': '10'}],
    )
    rows = aggregators.field_collection_sheet(snapshot, TODAY)

    assert [row['loan_id'] for row in rows] == ['loan-05']
    row = rows[0]
    assert row['weeks_due'] == 3
    assert money(row['expected_payment']) == Decimal('1375.00')
    assert row['overdue_amount'] == row['expected_payment']
    assert row['comp_svg_bal'] == Decimal('40')
    assert row['vol_svg_bal'] == Decimal('10')


def test_portfolio_by_staff_totals():
    portfolio = aggregators.portfolio_by_staff(build(), today=TODAY)

    names = [entry['staff_name'] for entry in portfolio['staff']]
    assert names == ['Aminata Kamara', 'Mohamed Sesay']
    assert portfolio['staff'][0]['totals']['count'] == 2
    assert portfolio['totals']['count'] == 3
    assert portfolio['totals']['principal'] == Decimal('15000')


def test_portfolio_by_group():
    portfolio = aggregators.portfolio_by_group(build(), today=TODAY)
    groups = {group['group_name']: group for group in portfolio['groups']}

    assert groups['Unity']['count'] == 2
    assert groups['Hope']['count'] == 1
    assert len(groups['Hope']['loans']) == 1


def test_staff_dashboard():
    summary = aggregators.staff_dashboard(build(), 'Aminata Kamara', TODAY)

    assert summary['total_clients'] == 3
    assert summary['active_loans'] == 2
    assert summary['total_principal'] == Decimal('10000')
    assert summary['total_repaid'] == Decimal('2291.65')
    assert summary['repayment_ratio'] == Decimal('22.9')
    assert summary['overdue_count'] == 1


def test_expense_summary():
    expenses = [
        {'expense_name': 'Fuel', 'amount': '20', 'expense_date': date(2024, 5, 2)},
        {'expense_name': 'Fuel', 'amount': '30', 'expense_date': date(2024, 5, 9)},
        {'expense_name': 'Stationery', 'amount': '15', 'expense_date': date(2024, 4, 1)},
    ]
    summary = aggregators.expense_summary(expenses, date(2024, 5, 1), date(2024, 5, 31))

    assert summary['categories'] == [{'expense_name': 'Fuel', 'amount': Decimal('50')}]
    assert summary['total'] == Decimal('50')


def test_rent_amortization():
    schedule = aggregators.rent_amortization({'total_amount': '1200', 'start_date': date(2024, 1, 15)}, date(2024, 4, 20))

    assert schedule['monthly_amortization'] == Decimal('100.00')
    assert schedule['months_elapsed'] == 3
    assert schedule['amortized_to_date'] == Decimal('300.00')
    assert schedule['remaining_prepaid'] == Decimal('900.00')
    assert schedule['closing_date'] == date(2025, 1, 15)


def test_trial_balance():
    record = loan('loan-01', 'pmcd-01', weeks_ago=1, processing_fee='100', it_fee='25')
    snapshot = Snapshot(
        loans=[record],
        payments=[payment(record, '400', date(2024, 4, 30)), payment(record, '458.33', date(2024, 5, 30))],
        withdrawals=[{'branch_id': 1, 'client_id': 'pmcd-01', 'amount': '60', 'date': date(2024, 5, 10)}],
    )
    entries = aggregators.trial_balance_entries(snapshot, date(2024, 5, 1), date(2024, 5, 31),
                                                manual={'Bank Charges': {'dr': '5'}})
    rows = {entry['label']: entry for entry in entries}

    assert rows['Repayment']['prev'] == Decimal('400')
    assert rows['Repayment']['cr'] == Decimal('458.33')
    assert rows['Saving Withdrawal']['dr'] == Decimal('60')
    assert rows['Bank Charges']['dr'] == Decimal('5')
    assert rows['LPF']['cr'] == Decimal('100')

    balance = aggregators.trial_balance(entries, cash_in_hand='1000', bank_balance='500')
    assert balance['total_dr'] == Decimal('65')
    assert balance['total_cr'] == Decimal('583.33')
    assert balance['grand_total'] == Decimal('1000') + Decimal('500') + Decimal('400') + Decimal('65') - Decimal('583.33')
    repayment = [row for row in balance['rows'] if row['label'] == 'Repayment'][0]
    assert repayment['net'] == Decimal('400') - Decimal('458.33')


def test_trial_balance_totals_include_opposite_side_entries():
    entries = aggregators.trial_balance_entries(Snapshot(), date(2024, 5, 1), date(2024, 5, 31),
                                                manual={'Repayment': {'dr': '40'}, 'Bank Charges': {'cr': '7'}})
    balance = aggregators.trial_balance(entries)

    assert balance['total_dr'] == Decimal('40')
    assert balance['total_cr'] == Decimal('7')
    assert balance['grand_total'] == sum((row['net'] for row in balance['rows']), Decimal('0'))
