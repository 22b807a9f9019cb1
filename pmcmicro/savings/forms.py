"""Savings and withdrawal forms"""
from flask_wtf import FlaskForm
from wtforms import SelectField, DecimalField, DateField, SubmitField
from wtforms.validators import DataRequired, Optional, NumberRange, ValidationError
from datetime import date

class SavingsForm(FlaskForm):
    """Savings deposit form"""
    client_id = SelectField('Client', validators=[DataRequired()], choices=[])
    date = DateField('Date', validators=[DataRequired()], default=date.today)
    compulsory_amount = DecimalField('Compulsory Savings', validators=[Optional(), NumberRange(min=0)], places=2, default=0)
    voluntary_savings = DecimalField('Voluntary Savings', validators=[Optional(), NumberRange(min=0)], places=2, default=0)
    submit = SubmitField('Save Deposit')

    def validate_voluntary_savings(self, field):
        if not (self.compulsory_amount.data or 0) and not (field.data or 0):
            raise ValidationError('Enter a compulsory or voluntary amount.')

class WithdrawalForm(FlaskForm):
    """Savings withdrawal form"""
    client_id = SelectField('Client', validators=[DataRequired()], choices=[])
    date = DateField('Date', validators=[DataRequired()], default=date.today)
    amount = DecimalField('Amount', validators=[DataRequired(), NumberRange(min=0.01, message='Amount must be greater than zero')], places=2)
    submit = SubmitField('Record Withdrawal')
