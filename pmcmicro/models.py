"""Database models for PMC Micro"""
from datetime import datetime, date
from dateutil.relativedelta import relativedelta
from decimal import Decimal, ROUND_HALF_UP
from pmcmicro import db, login_manager
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))

# Organisation Models
class Company(db.Model):
    """Company operating one or more branches"""
    __tablename__ = 'companies'

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(200), nullable=False)
    short_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    status = db.Column(db.String(20), default='active')  # active, inactive
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    branches = db.relationship('Branch', backref='company', lazy='dynamic')

    def __repr__(self):
        return f'<Company {self.short_code}>'

class Branch(db.Model):
    """Branch model for multi-branch support"""
    __tablename__ = 'branches'

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.String(20), unique=True, nullable=False, index=True)
    branch_name = db.Column(db.String(200), nullable=False)
    branch_location = db.Column(db.String(200))
    branch_manager = db.Column(db.String(200))
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = db.relationship('User', backref='branch', lazy='dynamic')

    def __repr__(self):
        return f'<Branch {self.branch_name}>'

# User and Authentication Models
class User(UserMixin, db.Model):
    """Login account for head office, branch and staff users"""
    __tablename__ = 'users'

    ROLES = ('admin', 'ceo', 'branch', 'staff')

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(200), nullable=False)
    user_code = db.Column(db.String(20))
    role = db.Column(db.String(20), nullable=False, default='branch')  # admin, ceo, branch, staff
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=True)  # Null for admin and ceo
    staff_name = db.Column(db.String(200))  # Portfolio shown to staff users
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def sees_all_branches(self):
        return self.role in ('admin', 'ceo')

    @property
    def can_write(self):
        """CEO accounts are read-only"""
        return self.role in ('admin', 'branch', 'staff')

    def has_role(self, *roles):
        return self.role in roles

    def __repr__(self):
        return f'<User {self.username}>'

class StaffMember(db.Model):
    """Loan officer registered at a branch"""
    __tablename__ = 'staff_members'
    __table_args__ = (db.UniqueConstraint('branch_id', 'staff_id', name='uq_staff_branch'),)

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.String(30), nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    gender = db.Column(db.String(10))
    date_of_birth = db.Column(db.Date)
    place_of_birth = db.Column(db.String(100))
    nationality = db.Column(db.String(100))
    telephone = db.Column(db.String(20))
    address = db.Column(db.Text)
    registration_date = db.Column(db.Date, default=date.today)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    branch = db.relationship('Branch', backref=db.backref('staff_members', lazy='dynamic'))

    @property
    def age(self):
        """Age in whole years"""
        if not self.date_of_birth:
            return None
        return relativedelta(date.today(), self.date_of_birth).years

    def __repr__(self):
        return f'<StaffMember {self.full_name}>'

# Client Models
class Group(db.Model):
    """Solidarity group of clients"""
    __tablename__ = 'groups'
    __table_args__ = (db.UniqueConstraint('branch_id', 'group_id', name='uq_group_branch'),)

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.String(30), nullable=False, index=True)
    group_name = db.Column(db.String(200), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Group {self.group_id}>'

class Client(db.Model):
    """Borrower and saver"""
    __tablename__ = 'clients'
    __table_args__ = (db.UniqueConstraint('branch_id', 'client_id', name='uq_client_branch'),)

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(30), nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    gender = db.Column(db.String(10))
    telephone = db.Column(db.String(20))
    address = db.Column(db.Text)
    group_id = db.Column(db.String(30))
    registration_date = db.Column(db.Date, default=date.today)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Client {self.client_id}>'

# Loan Models
class Loan(db.Model):
    """Loan disbursed to a client"""
    __tablename__ = 'loans'
    __table_args__ = (db.UniqueConstraint('branch_id', 'loan_id', name='uq_loan_branch'),)

    OUTCOMES = ('Disbursed', 'Pending', 'Rejected', 'Cancelled')

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.String(30), nullable=False, index=True)
    client_id = db.Column(db.String(30), nullable=False, index=True)
    client_name = db.Column(db.String(200))
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    staff_name = db.Column(db.String(200), index=True)
    group_id = db.Column(db.String(30))
    group_name = db.Column(db.String(200))
    loan_outcome = db.Column(db.String(20), default='Disbursed')
    loan_type = db.Column(db.String(50))

    principal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # percent, flat
    payment_weeks = db.Column(db.Integer, nullable=False, default=0)

    # Charges collected at disbursement
    processing_fee = db.Column(db.Numeric(15, 2), default=0)
    it_fee = db.Column(db.Numeric(15, 2), default=0)
    risk_premium = db.Column(db.Numeric(15, 2), default=0)
    g_fund = db.Column(db.Numeric(15, 2), default=0)

    disbursement_date = db.Column(db.Date, index=True)
    repayment_start_date = db.Column(db.Date)

    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def metrics(self, payments, today=None):
        """Balance figures recomputed from the current terms"""
        from pmcmicro.finance.calculator import compute_loan_metrics
        return compute_loan_metrics(self, payments, today=today)

    def __repr__(self):
        return f'<Loan {self.loan_id}>'

class Payment(db.Model):
    """Repayment ledger entry with a snapshot of the loan at entry time"""
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.String(30), nullable=False, index=True)
    client_id = db.Column(db.String(30), nullable=False, index=True)
    full_name = db.Column(db.String(200))
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    staff_name = db.Column(db.String(200))
    group_id = db.Column(db.String(30))
    group_name = db.Column(db.String(200))
    date = db.Column(db.Date, nullable=False, index=True)
    repayment_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    # Snapshot of the loan when the payment was taken
    actual_amount = db.Column(db.Numeric(15, 2))
    loan_outstanding = db.Column(db.Numeric(15, 2))
    principal = db.Column(db.Numeric(15, 2))
    interest_rate = db.Column(db.Numeric(5, 2))
    payment_weeks = db.Column(db.Integer)
    repayment_start_date = db.Column(db.Date)
    loan_outcome = db.Column(db.String(20))
    loan_type = db.Column(db.String(50))

    collected_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Payment {self.loan_id} {self.date}>'

# Savings Models
class Savings(db.Model):
    """Compulsory and voluntary savings deposit"""
    __tablename__ = 'savings'

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(30), nullable=False, index=True)
    client_name = db.Column(db.String(200))
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, default=date.today)
    compulsory_amount = db.Column(db.Numeric(15, 2), default=0)
    voluntary_savings = db.Column(db.Numeric(15, 2), default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Savings {self.client_id} {self.date}>'

class Withdrawal(db.Model):
    """Savings withdrawal"""
    __tablename__ = 'withdrawals'

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(30), nullable=False, index=True)
    client_name = db.Column(db.String(200))
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, default=date.today)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Withdrawal {self.client_id} {self.amount}>'

# Accounts Models
class ExpenseCategory(db.Model):
    __tablename__ = 'expense_categories'
    __table_args__ = (db.UniqueConstraint('branch_id', 'expense_name', name='uq_expense_category_branch'),)

    id = db.Column(db.Integer, primary_key=True)
    expense_name = db.Column(db.String(100), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)

    def __repr__(self):
        return f'<ExpenseCategory {self.expense_name}>'

class ActualExpense(db.Model):
    __tablename__ = 'actual_expenses'

    id = db.Column(db.Integer, primary_key=True)
    expense_name = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    expense_date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.Text)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<ActualExpense {self.expense_name} {self.amount}>'

class OfficeRentPrepaid(db.Model):
    """Office rent paid a year in advance and amortized monthly"""
    __tablename__ = 'office_rent_prepaid'

    id = db.Column(db.Integer, primary_key=True)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def monthly_amortization(self):
        total = Decimal(str(self.total_amount or 0))
        return (total / Decimal('12')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @property
    def closing_date(self):
        return self.start_date + relativedelta(years=1)

    def __repr__(self):
        return f'<OfficeRentPrepaid {self.total_amount}>'

# Activity Log Model
class ActivityLog(db.Model):
    """Activity log for audit trail"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), index=True)
    action = db.Column(db.String(100), nullable=False)
    entity_type = db.Column(db.String(50))  # loan, payment, client, savings, etc.
    entity_id = db.Column(db.Integer)
    description = db.Column(db.Text)
    ip_address = db.Column(db.String(50))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<ActivityLog {self.action}>'
