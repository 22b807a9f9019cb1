"""Loan forms"""
from flask_wtf import FlaskForm
from wtforms import SelectField, DecimalField, IntegerField, DateField, SubmitField
from wtforms.validators import DataRequired, InputRequired, Optional, NumberRange
from datetime import date

LOAN_TYPE_CHOICES = [
    ('', 'Select'),
    ('Individual', 'Individual Loan'),
    ('Group', 'Group Loan'),
    ('Business', 'Business Loan'),
    ('Emergency', 'Emergency Loan')
]

OUTCOME_CHOICES = [
    ('Disbursed', 'Disbursed'),
    ('Pending', 'Pending'),
    ('Rejected', 'Rejected'),
    ('Cancelled', 'Cancelled')
]

class LoanForm(FlaskForm):
    """Loan disbursement form"""
    client_id = SelectField('Client', validators=[DataRequired()], choices=[])
    staff_name = SelectField('Loan Officer', validators=[DataRequired()], choices=[])
    loan_type = SelectField('Loan Type', choices=LOAN_TYPE_CHOICES, validators=[DataRequired()])
    loan_outcome = SelectField('Loan Outcome', choices=OUTCOME_CHOICES, default='Disbursed')

    principal = DecimalField('Principal', validators=[InputRequired(), NumberRange(min=0)], places=2)
    interest_rate = DecimalField('Interest Rate (%)', validators=[InputRequired(), NumberRange(min=0, max=100)], places=2)
    payment_weeks = IntegerField('Payment Weeks', validators=[DataRequired(), NumberRange(min=1, max=260)])

    processing_fee = DecimalField('Processing Fee (LPF)', validators=[Optional(), NumberRange(min=0)], places=2, default=0)
    it_fee = DecimalField('IT Fee', validators=[Optional(), NumberRange(min=0)], places=2, default=0)
    risk_premium = DecimalField('Risk Premium', validators=[Optional(), NumberRange(min=0)], places=2, default=0)
    g_fund = DecimalField('G-Fund', validators=[Optional(), NumberRange(min=0)], places=2, default=0)

    disbursement_date = DateField('Disbursement Date', validators=[DataRequired()], default=date.today)
    repayment_start_date = DateField('Repayment Start Date', validators=[DataRequired()])

    submit = SubmitField('Save Loan')

    def validate(self, extra_validators=None):
        if not super(LoanForm, self).validate(extra_validators=extra_validators):
            return False
        if self.repayment_start_date.data < self.disbursement_date.data:
            self.repayment_start_date.errors.append('Repayment cannot start before disbursement.')
            return False
        return True

class PaymentForm(FlaskForm):
    """Repayment entry form"""
    date = DateField('Payment Date', validators=[DataRequired()], default=date.today)
    repayment_amount = DecimalField('Repayment Amount', validators=[DataRequired(), NumberRange(min=0.01)], places=2)
    submit = SubmitField('Record Payment')
