"""Administration forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, BooleanField, SubmitField
from wtforms.validators import DataRequired, Optional, Length, EqualTo, ValidationError
from pmcmicro.models import User, Branch, Company

ROLE_CHOICES = [
    ('branch', 'Branch User'),
    ('staff', 'Staff (Loan Officer)'),
    ('ceo', 'CEO (Read Only)'),
    ('admin', 'Administrator')
]

class CompanyForm(FlaskForm):
    """Company registration form"""
    company_name = StringField('Company Name', validators=[DataRequired(), Length(max=200)])
    short_code = StringField('Short Code', validators=[DataRequired(), Length(max=20)])
    status = SelectField('Status', choices=[('active', 'Active'), ('inactive', 'Inactive')], default='active')
    submit = SubmitField('Save Company')

    def validate_short_code(self, field):
        field.data = field.data.strip().upper()
        if Company.query.filter_by(short_code=field.data).first():
            raise ValidationError('Short code already in use.')

class BranchForm(FlaskForm):
    """Branch form"""
    branch_id = StringField('Branch Code', validators=[DataRequired(), Length(max=20)])
    branch_name = StringField('Branch Name', validators=[DataRequired(), Length(max=200)])
    branch_location = StringField('Location', validators=[Optional(), Length(max=200)])
    branch_manager = StringField('Branch Manager', validators=[Optional(), Length(max=200)])
    company_id = SelectField('Company', coerce=int, validators=[Optional()])
    is_active = BooleanField('Active', default=True)

    submit = SubmitField('Save Branch')

    def __init__(self, *args, **kwargs):
        super(BranchForm, self).__init__(*args, **kwargs)
        self.company_id.choices = [(0, '-- No Company --')] + [
            (c.id, f'{c.short_code} - {c.company_name}')
            for c in Company.query.filter_by(status='active').order_by(Company.company_name).all()
        ]

class UserForm(FlaskForm):
    """User account form"""
    username = StringField('Username', validators=[DataRequired(), Length(max=80)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8)])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(),
        EqualTo('password', message='Passwords must match')
    ])
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=200)])
    user_code = StringField('User Code', validators=[Optional(), Length(max=20)])
    role = SelectField('Role', choices=ROLE_CHOICES, validators=[DataRequired()])
    branch_id = SelectField('Branch', coerce=int, validators=[Optional()])
    staff_name = StringField('Staff Name (staff accounts)', validators=[Optional(), Length(max=200)])
    is_active = BooleanField('Active', default=True)

    submit = SubmitField('Create User')

    def __init__(self, *args, **kwargs):
        super(UserForm, self).__init__(*args, **kwargs)
        self.branch_id.choices = [(0, '-- Select Branch --')] + [
            (b.id, f'{b.branch_id} - {b.branch_name}')
            for b in Branch.query.filter_by(is_active=True).order_by(Branch.branch_name).all()
        ]

    def validate_username(self, field):
        if User.query.filter_by(username=field.data).first():
            raise ValidationError('Username already exists.')

    def validate(self, extra_validators=None):
        if not super(UserForm, self).validate(extra_validators=extra_validators):
            return False
        if self.role.data in ('branch', 'staff') and not self.branch_id.data:
            self.branch_id.errors.append('Branch and staff accounts need a branch.')
            return False
        if self.role.data == 'staff' and not (self.staff_name.data or '').strip():
            self.staff_name.errors.append('Staff accounts need the staff name they collect for.')
            return False
        return True
