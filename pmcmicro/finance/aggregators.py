"""Report aggregations over a branch snapshot.

Each function receives the records it needs (a ``Snapshot`` or plain lists)
plus explicit filters and returns rows ready for a template or CSV export.
Balances always come from ``compute_loan_metrics`` on the current loan terms.
Payments whose loan is missing from the snapshot are skipped everywhere.
"""
import logging
from collections import OrderedDict, defaultdict, namedtuple
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from dateutil.relativedelta import relativedelta
from pmcmicro.finance.calculator import (
    ZERO, HUNDRED, field, to_decimal, to_date, compute_loan_metrics
)

logger = logging.getLogger(__name__)

DISBURSED = 'Disbursed'

Snapshot = namedtuple('Snapshot', 'loans payments savings withdrawals expenses rents',
                      defaults=((), (), (), (), (), ()))

# Trial balance layout: debit rows then credit rows
TRIAL_BALANCE_DEBITS = ('Saving Withdrawal', 'Bank Charges')
TRIAL_BALANCE_CREDITS = ('Repayment', 'G-Fund', 'LPF', 'Risk Premium', 'IT Fees', 'Branch Cancel')


# Helpers

def loan_key(record):
    return (field(record, 'branch_id'), field(record, 'loan_id'))


def _same_staff(record, staff_name):
    if not staff_name:
        return True
    return (field(record, 'staff_name', '') or '').strip().lower() == staff_name.strip().lower()


def _in_range(value, start_date=None, end_date=None):
    if start_date is None and end_date is None:
        return True
    day = to_date(value)
    if day is None:
        return False
    if start_date and day < to_date(start_date):
        return False
    if end_date and day > to_date(end_date):
        return False
    return True


def _is_disbursed(loan):
    return (field(loan, 'loan_outcome') or DISBURSED) == DISBURSED


def _ordered(payments):
    """Payments sorted by date, insertion order breaking ties"""
    indexed = list(enumerate(payments))
    indexed.sort(key=lambda pair: (to_date(field(pair[1], 'date')) or date.min, pair[0]))
    return [payment for _, payment in indexed]


def index_loans(loans):
    return {loan_key(loan): loan for loan in loans}


def payments_by_loan(payments, loans_index=None):
    """Group payments per loan, dropping those whose loan is unknown"""
    grouped = defaultdict(list)
    skipped = 0
    for payment in payments:
        key = loan_key(payment)
        if loans_index is not None and key not in loans_index:
            skipped += 1
            continue
        grouped[key].append(payment)
    if skipped:
        logger.debug('Skipped %d payment(s) referencing unknown loans', skipped)
    return grouped


def totals(rows, *names):
    """Column sums over report rows"""
    return {name: sum((to_decimal(row.get(name)) for row in rows), ZERO) for name in names}


def group_payments(payments):
    """Group payments on branch, client, group and loan.

    Display fields come from the latest-dated payment of each group, while
    ``total_repayment_so_far`` sums every payment in the group.
    """
    groups = OrderedDict()
    for payment in _ordered(payments):
        key = '{}-{}-{}-{}'.format(field(payment, 'branch_id', ''), field(payment, 'client_id', ''),
                                   field(payment, 'group_id', ''), field(payment, 'loan_id', ''))
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                'key': key,
                'total_repayment_so_far': ZERO,
                'payment_count': 0,
                'payments': [],
            }
        group['total_repayment_so_far'] += to_decimal(field(payment, 'repayment_amount'))
        group['payment_count'] += 1
        group['payments'].append(payment)
        # ordered ascending, so the last one seen is the latest
        group.update({
            'branch_id': field(payment, 'branch_id'),
            'loan_id': field(payment, 'loan_id'),
            'client_id': field(payment, 'client_id'),
            'full_name': field(payment, 'full_name', ''),
            'staff_name': field(payment, 'staff_name', ''),
            'group_id': field(payment, 'group_id', ''),
            'group_name': field(payment, 'group_name', ''),
            'date': to_date(field(payment, 'date')),
            'repayment_amount': to_decimal(field(payment, 'repayment_amount')),
            'actual_amount': to_decimal(field(payment, 'actual_amount')),
            'loan_outstanding': to_decimal(field(payment, 'loan_outstanding')),
        })
    return list(groups.values())


def _loan_row(loan, payments, today):
    metrics = compute_loan_metrics(loan, payments, today=today)
    ordered = _ordered(payments)
    latest = ordered[-1] if ordered else None
    row = {
        'branch_id': field(loan, 'branch_id'),
        'loan_id': field(loan, 'loan_id'),
        'client_id': field(loan, 'client_id'),
        'client_name': field(loan, 'client_name', ''),
        'staff_name': field(loan, 'staff_name', ''),
        'group_id': field(loan, 'group_id', ''),
        'group_name': field(loan, 'group_name', ''),
        'loan_type': field(loan, 'loan_type', ''),
        'loan_outcome': field(loan, 'loan_outcome', DISBURSED),
        'disbursement_date': to_date(field(loan, 'disbursement_date')),
        'repayment_start_date': to_date(field(loan, 'repayment_start_date')),
        'last_payment_date': to_date(field(latest, 'date')) if latest is not None else None,
        'snapshot_outstanding': to_decimal(field(latest, 'loan_outstanding')) if latest is not None else None,
        'snapshot_weekly_amount': to_decimal(field(latest, 'actual_amount')) if latest is not None else None,
    }
    row.update(metrics)
    return row


def loan_rows(snapshot, today=None, staff_name=None, group_id=None, client_id=None,
              start_date=None, end_date=None, disbursed_only=True):
    """One metrics row per loan matching the filters, in staff/client order"""
    today = to_date(today) or date.today()
    loans_index = index_loans(snapshot.loans)
    grouped = payments_by_loan(snapshot.payments, loans_index)

    rows = []
    for loan in snapshot.loans:
        if disbursed_only and not _is_disbursed(loan):
            continue
        if not _same_staff(loan, staff_name):
            continue
        if group_id and field(loan, 'group_id') != group_id:
            continue
        if client_id and field(loan, 'client_id') != client_id:
            continue
        if not _in_range(field(loan, 'disbursement_date'), start_date, end_date):
            continue
        rows.append(_loan_row(loan, grouped.get(loan_key(loan), []), today))

    rows.sort(key=lambda r: ((r['staff_name'] or '').lower(), r['client_id'] or '', r['loan_id'] or ''))
    return rows


# Loan status reports

def overdue_loans(snapshot, today=None, staff_name=None, start_date=None, end_date=None):
    """Loans behind schedule that still carry a balance"""
    rows = []
    for row in loan_rows(snapshot, today, staff_name=staff_name, start_date=start_date, end_date=end_date):
        if not row['is_overdue'] or row['is_fully_paid']:
            continue
        scheduled_weeks = min(row['weeks_passed'], row['payment_weeks']) if row['payment_weeks'] > 0 else 0
        expected = row['weekly_amount'] * Decimal(scheduled_weeks)
        row['arrears_weeks'] = row['weeks_passed'] - row['payments_made']
        row['arrears_amount'] = max(ZERO, expected - row['total_repaid'])
        rows.append(row)
    return rows


def outstanding_balances(snapshot, today=None, staff_name=None, start_date=None, end_date=None):
    rows = loan_rows(snapshot, today, staff_name=staff_name, start_date=start_date, end_date=end_date)
    return [row for row in rows if not row['is_fully_paid'] and row['remaining_balance'] > ZERO]


def fully_paid_loans(snapshot, today=None, staff_name=None, start_date=None, end_date=None):
    rows = loan_rows(snapshot, today, staff_name=staff_name, start_date=start_date, end_date=end_date)
    return [row for row in rows if row['is_fully_paid'] and row['payments_made'] > 0]


def disbursed_loans(snapshot, start_date=None, end_date=None, staff_name=None, today=None):
    """Disbursement register, ordered by disbursement date"""
    rows = loan_rows(snapshot, today, staff_name=staff_name, start_date=start_date, end_date=end_date)
    for row, loan in zip(rows, _loans_for_rows(snapshot.loans, rows)):
        row['processing_fee'] = to_decimal(field(loan, 'processing_fee'))
        row['it_fee'] = to_decimal(field(loan, 'it_fee'))
        row['risk_premium'] = to_decimal(field(loan, 'risk_premium'))
        row['g_fund'] = to_decimal(field(loan, 'g_fund'))
    rows.sort(key=lambda r: (r['disbursement_date'] or date.min, r['loan_id'] or ''))
    return rows


def _loans_for_rows(loans, rows):
    loans_index = index_loans(loans)
    return [loans_index[(row['branch_id'], row['loan_id'])] for row in rows]


# Ledger reports

def payment_details(snapshot, start_date=None, end_date=None, staff_name=None):
    """Flat repayment ledger with the weekly amount recomputed per loan"""
    loans_index = index_loans(snapshot.loans)
    grouped = payments_by_loan(snapshot.payments, loans_index)

    rows = []
    for key, payments in grouped.items():
        loan = loans_index[key]
        if not _same_staff(loan, staff_name):
            continue
        metrics = compute_loan_metrics(loan, [])
        for payment in payments:
            if not _in_range(field(payment, 'date'), start_date, end_date):
                continue
            rows.append({
                'date': to_date(field(payment, 'date')),
                'branch_id': field(loan, 'branch_id'),
                'loan_id': field(loan, 'loan_id'),
                'client_id': field(loan, 'client_id'),
                'client_name': field(loan, 'client_name', ''),
                'full_name': field(loan, 'client_name', ''),
                'staff_name': field(loan, 'staff_name', ''),
                'group_id': field(loan, 'group_id', ''),
                'group_name': field(loan, 'group_name', ''),
                'repayment_amount': to_decimal(field(payment, 'repayment_amount')),
                'weekly_amount': metrics['weekly_amount'],
                'loan_outstanding': metrics['loan_outstanding'],
            })
    rows.sort(key=lambda r: (r['date'] or date.min, r['loan_id'] or ''))
    return rows


def client_report(snapshot, today=None, client_id=None, staff_name=None):
    """One row per client and loan with progress figures"""
    rows = loan_rows(snapshot, today, staff_name=staff_name, client_id=client_id)
    for row in rows:
        row['key'] = '{}-{}'.format(row['client_id'], row['loan_id'])
        if row['weekly_amount'] > ZERO:
            row['weeks_paid'] = int((row['total_repaid'] / row['weekly_amount']).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
        else:
            row['weeks_paid'] = 0
    return rows


def loan_payment_history(loan, payments):
    """Payments of one loan, oldest first, with the running balance"""
    metrics = compute_loan_metrics(loan, [])
    balance = metrics['loan_outstanding']
    repaid = ZERO
    history = []
    for number, payment in enumerate(_ordered(payments), start=1):
        amount = to_decimal(field(payment, 'repayment_amount'))
        repaid += amount
        balance -= amount
        history.append({
            'number': number,
            'payment_id': field(payment, 'id'),
            'date': to_date(field(payment, 'date')),
            'repayment_amount': amount,
            'total_repaid': repaid,
            'balance_after': balance,
            'snapshot_outstanding': to_decimal(field(payment, 'loan_outstanding')),
            'snapshot_weekly_amount': to_decimal(field(payment, 'actual_amount')),
        })
    return history


# Field collection

def savings_balances(savings, withdrawals, client_id=None):
    """Per client savings totals net of withdrawals"""
    balances = OrderedDict()

    def entry(record):
        key = (field(record, 'branch_id'), field(record, 'client_id'))
        if key not in balances:
            balances[key] = {
                'branch_id': key[0],
                'client_id': key[1],
                'client_name': field(record, 'client_name', ''),
                'compulsory': ZERO,
                'voluntary': ZERO,
                'withdrawn': ZERO,
            }
        return balances[key]

    for record in savings:
        if client_id and field(record, 'client_id') != client_id:
            continue
        row = entry(record)
        row['compulsory'] += to_decimal(field(record, 'compulsory_amount'))
        row['voluntary'] += to_decimal(field(record, 'voluntary_savings'))
    for record in withdrawals:
        if client_id and field(record, 'client_id') != client_id:
            continue
        entry(record)['withdrawn'] += to_decimal(field(record, 'amount'))

    for row in balances.values():
        row['total_savings'] = row['compulsory'] + row['voluntary']
        row['balance'] = row['total_savings'] - row['withdrawn']
    return list(balances.values())


def _months_running(start, as_of):
    if start is None:
        return 0
    delta = relativedelta(as_of, start)
    months = delta.years * 12 + delta.months + 1
    return months if months > 0 else 0


def field_collection_sheet(snapshot, as_of=None, staff_name=None):
    """Collection sheet for loans still being repaid.

    ``weeks_due`` counts whole weeks since the latest payment (or the
    repayment start when nothing was paid yet).
    """
    as_of = to_date(as_of) or date.today()
    savings = {(row['branch_id'], row['client_id']): row
               for row in savings_balances(snapshot.savings, snapshot.withdrawals)}

    rows = []
    for row in loan_rows(snapshot, as_of, staff_name=staff_name):
        if row['is_fully_paid']:
            continue
        since = row['last_payment_date'] or row['repayment_start_date']
        days = (as_of - since).days if since else 0
        weeks_due = days // 7 if days > 0 else 0
        expected = row['weekly_amount'] * Decimal(weeks_due)
        overdue_amount = max(ZERO, expected - row['total_repaid'])
        client_savings = savings.get((row['branch_id'], row['client_id']), {})
        row.update({
            'weeks_due': weeks_due,
            'expected_payment': expected,
            'overdue_amount': overdue_amount,
            'realise_amount': row['total_repaid'] - overdue_amount,
            'months': _months_running(row['repayment_start_date'], as_of),
            'comp_svg_bal': client_savings.get('compulsory', ZERO),
            'vol_svg_bal': client_savings.get('voluntary', ZERO),
        })
        rows.append(row)
    return rows


# Portfolio

PORTFOLIO_FIELDS = ('count', 'principal', 'actual_interest', 'loan_outstanding', 'remaining_balance')


def _empty_bucket(**extra):
    bucket = {name: ZERO for name in PORTFOLIO_FIELDS}
    bucket['count'] = 0
    bucket.update(extra)
    return bucket


def _add_to_bucket(bucket, row):
    bucket['count'] += 1
    for name in PORTFOLIO_FIELDS[1:]:
        bucket[name] += row[name]


def portfolio_by_staff(snapshot, start_date=None, end_date=None, staff_name=None, today=None):
    """Loans disbursed in the period grouped by staff, then by group"""
    staff = OrderedDict()
    grand = _empty_bucket()
    for row in loan_rows(snapshot, today, staff_name=staff_name, start_date=start_date, end_date=end_date):
        name = row['staff_name'] or 'Unassigned'
        entry = staff.setdefault(name, {'staff_name': name, 'groups': OrderedDict(), 'totals': _empty_bucket()})
        group = entry['groups'].setdefault(
            row['group_id'] or '',
            _empty_bucket(group_id=row['group_id'] or '', group_name=row['group_name'] or ''))
        _add_to_bucket(group, row)
        _add_to_bucket(entry['totals'], row)
        _add_to_bucket(grand, row)

    result = []
    for entry in staff.values():
        entry['groups'] = list(entry['groups'].values())
        result.append(entry)
    return {'staff': result, 'totals': grand}


def portfolio_by_group(snapshot, start_date=None, end_date=None, staff_name=None, group_id=None, today=None):
    groups = OrderedDict()
    grand = _empty_bucket()
    rows = loan_rows(snapshot, today, staff_name=staff_name, group_id=group_id,
                     start_date=start_date, end_date=end_date)
    rows.sort(key=lambda r: ((r['group_name'] or '').lower(), r['client_id'] or ''))
    for row in rows:
        name = row['group_name'] or 'No Group'
        bucket = groups.setdefault(name, _empty_bucket(group_name=name, group_id=row['group_id'] or '', loans=[]))
        bucket['loans'].append(row)
        _add_to_bucket(bucket, row)
        _add_to_bucket(grand, row)
    return {'groups': list(groups.values()), 'totals': grand}


def staff_dashboard(snapshot, staff_name, today=None):
    """Headline figures and per-loan progress for one loan officer"""
    rows = client_report(snapshot, today, staff_name=staff_name)
    all_loans = [loan for loan in snapshot.loans if _same_staff(loan, staff_name)]

    total_principal = sum((row['principal'] for row in rows), ZERO)
    total_repaid = sum((row['total_repaid'] for row in rows), ZERO)
    ratio = (total_repaid / total_principal * HUNDRED) if total_principal > ZERO else ZERO

    return {
        'staff_name': staff_name,
        'total_clients': len({field(loan, 'client_id') for loan in all_loans}),
        'active_loans': sum(1 for loan in all_loans if _is_disbursed(loan)),
        'total_principal': total_principal,
        'total_repaid': total_repaid,
        'repayment_ratio': ratio.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP),
        'overdue_count': sum(1 for row in rows if row['is_overdue'] and not row['is_fully_paid']),
        'loans': rows,
    }


# Accounts

def expense_summary(expenses, start_date=None, end_date=None):
    by_name = OrderedDict()
    for expense in sorted(expenses, key=lambda e: (field(e, 'expense_name', '') or '').lower()):
        if not _in_range(field(expense, 'expense_date'), start_date, end_date):
            continue
        name = field(expense, 'expense_name', '')
        by_name[name] = by_name.get(name, ZERO) + to_decimal(field(expense, 'amount'))
    return {
        'categories': [{'expense_name': name, 'amount': amount} for name, amount in by_name.items()],
        'total': sum(by_name.values(), ZERO),
    }


def rent_amortization(rent, as_of=None):
    """Monthly write-off of one prepaid rent record"""
    as_of = to_date(as_of) or date.today()
    total = to_decimal(field(rent, 'total_amount'))
    start = to_date(field(rent, 'start_date'))
    monthly = (total / Decimal('12')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    if start is None or as_of < start:
        months = 0
    else:
        delta = relativedelta(as_of, start)
        months = min(12, delta.years * 12 + delta.months)
    amortized = total if months >= 12 else monthly * months
    return {
        'total_amount': total,
        'start_date': start,
        'closing_date': start + relativedelta(years=1) if start else None,
        'monthly_amortization': monthly,
        'months_elapsed': months,
        'amortized_to_date': amortized,
        'remaining_prepaid': total - amortized,
    }


def _ledger_amounts(snapshot, start_date, end_date):
    loans_index = index_loans(snapshot.loans)
    loans = [loan for loan in snapshot.loans
             if _is_disbursed(loan) and _in_range(field(loan, 'disbursement_date'), start_date, end_date)]
    payments = [payment for payment in snapshot.payments
                if loan_key(payment) in loans_index and _in_range(field(payment, 'date'), start_date, end_date)]
    withdrawals = [w for w in snapshot.withdrawals if _in_range(field(w, 'date'), start_date, end_date)]

    def loan_sum(name):
        return sum((to_decimal(field(loan, name)) for loan in loans), ZERO)

    return {
        'Saving Withdrawal': sum((to_decimal(field(w, 'amount')) for w in withdrawals), ZERO),
        'Repayment': sum((to_decimal(field(p, 'repayment_amount')) for p in payments), ZERO),
        'G-Fund': loan_sum('g_fund'),
        'LPF': loan_sum('processing_fee'),
        'Risk Premium': loan_sum('risk_premium'),
        'IT Fees': loan_sum('it_fee'),
    }


def trial_balance_entries(snapshot, start_date, end_date=None, manual=None):
    """Trial balance rows prefilled from the ledger.

    ``prev`` holds the amount booked before ``start_date``; the period amount
    goes to ``dr`` for debit rows and ``cr`` for credit rows. ``manual`` maps a
    label to a dict of overrides for rows the ledger does not track, such as
    bank charges.
    """
    start = to_date(start_date)
    before = None
    if start is not None:
        before = start - relativedelta(days=1)
    previous = _ledger_amounts(snapshot, None, before) if before else {}
    current = _ledger_amounts(snapshot, start, end_date)
    manual = manual or {}

    entries = []
    for label in TRIAL_BALANCE_DEBITS + TRIAL_BALANCE_CREDITS:
        side = 'dr' if label in TRIAL_BALANCE_DEBITS else 'cr'
        entry = {'label': label, 'side': side, 'prev': previous.get(label, ZERO), 'dr': ZERO, 'cr': ZERO}
        entry[side] = current.get(label, ZERO)
        for name, value in manual.get(label, {}).items():
            if name in ('prev', 'dr', 'cr'):
                entry[name] = to_decimal(value)
        entries.append(entry)
    return entries


def trial_balance(entries, cash_in_hand=0, bank_balance=0):
    """Row nets and the grand total of a trial balance"""
    rows = []
    for entry in entries:
        row = dict(entry)
        row['prev'] = to_decimal(entry.get('prev'))
        row['dr'] = to_decimal(entry.get('dr'))
        row['cr'] = to_decimal(entry.get('cr'))
        row['net'] = row['prev'] + row['dr'] - row['cr']
        rows.append(row)

    total_prev = sum((row['prev'] for row in rows), ZERO)
    # both columns count, manual entries may book a row on its opposite side
    total_dr = sum((row['dr'] for row in rows), ZERO)
    total_cr = sum((row['cr'] for row in rows), ZERO)
    cash = to_decimal(cash_in_hand)
    bank = to_decimal(bank_balance)
    return {
        'rows': rows,
        'cash_in_hand': cash,
        'bank_balance': bank,
        'total_prev': total_prev,
        'total_dr': total_dr,
        'total_cr': total_cr,
        'grand_total': cash + bank + (total_prev + total_dr) - total_cr,
    }
