"""Staff registration forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, DateField, SelectField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, Optional, Length
from datetime import date

class StaffMemberForm(FlaskForm):
    """Loan officer registration form"""
    staff_id = StringField('Staff ID', validators=[DataRequired(), Length(max=30)])
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=200)])
    gender = SelectField('Gender', choices=[('', 'Select'), ('male', 'Male'), ('female', 'Female')], validators=[Optional()])
    date_of_birth = DateField('Date of Birth', validators=[Optional()])
    place_of_birth = StringField('Place of Birth', validators=[Optional(), Length(max=100)])
    nationality = StringField('Nationality', validators=[Optional(), Length(max=100)])
    telephone = StringField('Telephone', validators=[Optional(), Length(max=20)])
    address = TextAreaField('Address', validators=[Optional()])
    registration_date = DateField('Registration Date', validators=[Optional()], default=date.today)
    submit = SubmitField('Save Staff Member')
