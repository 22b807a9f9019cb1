"""Accounts forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, SelectField, DecimalField, DateField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, Optional, NumberRange, Length
from datetime import date

class ExpenseCategoryForm(FlaskForm):
    expense_name = StringField('Expense Name', validators=[DataRequired(), Length(max=100)])
    submit = SubmitField('Add Category')

class ExpenseForm(FlaskForm):
    """Actual expense entry"""
    expense_name = SelectField('Expense', validators=[DataRequired()], choices=[])
    amount = DecimalField('Amount', validators=[DataRequired(), NumberRange(min=0.01)], places=2)
    expense_date = DateField('Date', validators=[DataRequired()], default=date.today)
    description = TextAreaField('Description', validators=[Optional()])
    submit = SubmitField('Record Expense')

class RentPrepaidForm(FlaskForm):
    """Office rent paid for a year in advance"""
    total_amount = DecimalField('Total Amount', validators=[DataRequired(), NumberRange(min=0.01)], places=2)
    start_date = DateField('Start Date', validators=[DataRequired()], default=date.today)
    submit = SubmitField('Save Prepaid Rent')
