"""Flat-interest balance and amortization calculations for weekly loans.

Every function here is pure: no database access, no request state. Loan terms
and payments may be model instances or plain mappings, so the same code serves
the repayment ledger, the report aggregators and the tests.

Numeric inputs follow a parse-or-default policy: blanks, ``None`` and
malformed values count as zero instead of raising, so a half-filled record
never breaks a report.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')

# Installments are collected in whole cents, so a schedule can fall short of
# the total by up to a cent per installment and still be settled.
SETTLEMENT_TOLERANCE_PER_WEEK = Decimal('0.01')

STATUS_PAID_OFF = 'Paid Off'
STATUS_IN_PROGRESS = 'In Progress'


def field(record, name, default=None):
    """Read ``name`` from a model instance or a mapping"""
    if record is None:
        return default
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def to_decimal(value, default=ZERO):
    """Coerce ``value`` to Decimal, falling back to ``default``"""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, str):
        value = value.strip().replace(',', '')
        if not value:
            return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    return result if result.is_finite() else default


def to_int(value, default=0):
    """Coerce ``value`` to int (truncating), falling back to ``default``"""
    number = to_decimal(value, default=None)
    if number is None:
        return default
    return int(number)


def to_date(value):
    """Coerce ``value`` to a date, or None when it cannot be read"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
        except ValueError:
            return None
    return None


def money(value):
    """Round to cents for display and storage"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def actual_interest(principal, interest_rate):
    return to_decimal(principal) * to_decimal(interest_rate) / HUNDRED


def loan_outstanding(principal, interest_rate):
    """Total amount due over the life of the loan"""
    return to_decimal(principal) + actual_interest(principal, interest_rate)


def weekly_amount(principal, interest_rate, payment_weeks):
    """Fixed weekly installment; zero when the term is not positive"""
    weeks = to_int(payment_weeks)
    if weeks <= 0:
        return ZERO
    return loan_outstanding(principal, interest_rate) / Decimal(weeks)


def total_repaid(payments):
    return sum((to_decimal(field(p, 'repayment_amount')) for p in payments), ZERO)


def remaining_balance(outstanding, repaid):
    return to_decimal(outstanding) - to_decimal(repaid)


def bal_p(weekly, payments_made_count, principal):
    """Scheduled collections to date less the principal"""
    return to_decimal(weekly) * Decimal(to_int(payments_made_count)) - to_decimal(principal)


def weeks_passed(start_date, today=None):
    """Whole weeks elapsed since ``start_date``; 0 before the start or when unknown"""
    start = to_date(start_date)
    if start is None:
        return 0
    today = to_date(today) or date.today()
    days = (today - start).days
    if days <= 0:
        return 0
    return days // 7


def is_overdue(outstanding, weeks_elapsed, payments_made_count):
    return to_decimal(outstanding) > ZERO and to_int(weeks_elapsed) > to_int(payments_made_count)


def is_fully_paid(repaid, outstanding, payment_weeks=0):
    tolerance = SETTLEMENT_TOLERANCE_PER_WEEK * max(to_int(payment_weeks), 0)
    return to_decimal(repaid) >= to_decimal(outstanding) - tolerance


def loan_status(repaid, outstanding, payment_weeks=0):
    if is_fully_paid(repaid, outstanding, payment_weeks):
        return STATUS_PAID_OFF
    return STATUS_IN_PROGRESS


def close_on_date(start_date, payment_weeks):
    """Date of the last scheduled installment, or None"""
    start = to_date(start_date)
    weeks = to_int(payment_weeks)
    if start is None or weeks <= 0:
        return None
    return start + timedelta(days=weeks * 7)


def compute_loan_metrics(terms, payments, today=None):
    """Derive every balance figure for one loan.

    ``terms`` carries ``principal``, ``interest_rate``, ``payment_weeks`` and
    ``repayment_start_date``; ``payments`` are the ledger rows of that loan.
    Figures are recomputed from the current terms on every call, the snapshot
    columns stored on payment rows are ignored.
    """
    payments = list(payments or [])
    principal = to_decimal(field(terms, 'principal'))
    rate = to_decimal(field(terms, 'interest_rate'))
    weeks = to_int(field(terms, 'payment_weeks'))
    start = field(terms, 'repayment_start_date')

    outstanding = loan_outstanding(principal, rate)
    weekly = weekly_amount(principal, rate, weeks)
    repaid = total_repaid(payments)
    made = len(payments)
    elapsed = weeks_passed(start, today)

    return {
        'principal': principal,
        'interest_rate': rate,
        'payment_weeks': weeks,
        'actual_interest': actual_interest(principal, rate),
        'loan_outstanding': outstanding,
        'weekly_amount': weekly,
        'total_repaid': repaid,
        'remaining_balance': remaining_balance(outstanding, repaid),
        'payments_made': made,
        'weeks_passed': elapsed,
        'is_overdue': is_overdue(outstanding, elapsed, made),
        'bal_p': bal_p(weekly, made, principal),
        'is_fully_paid': is_fully_paid(repaid, outstanding, weeks),
        'status': loan_status(repaid, outstanding, weeks),
        'close_on': close_on_date(start, weeks),
    }
