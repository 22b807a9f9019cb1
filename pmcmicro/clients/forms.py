"""Client and group forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, DateField, SelectField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, Optional, Length
from datetime import date

class ClientForm(FlaskForm):
    """Client registration form"""
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=200)])
    gender = SelectField('Gender', choices=[('', 'Select'), ('male', 'Male'), ('female', 'Female')], validators=[Optional()])
    telephone = StringField('Telephone', validators=[Optional(), Length(max=20)])
    address = TextAreaField('Address', validators=[Optional()])
    group_id = SelectField('Group', validators=[Optional()], choices=[])
    registration_date = DateField('Registration Date', validators=[Optional()], default=date.today)
    submit = SubmitField('Register Client')

class BulkClientForm(FlaskForm):
    """Register many clients from a list of names"""
    names = TextAreaField('Client Names (one per line or comma separated)', validators=[DataRequired()])
    group_id = SelectField('Group', validators=[Optional()], choices=[])
    submit = SubmitField('Register Clients')

class GroupForm(FlaskForm):
    """Group registration form"""
    group_id = StringField('Group ID', validators=[DataRequired(), Length(max=30)])
    group_name = StringField('Group Name', validators=[DataRequired(), Length(max=200)])
    submit = SubmitField('Save Group')

def group_choices(branch_id):
    """Select options for the groups of a branch"""
    from pmcmicro.models import Group
    groups = Group.query.filter_by(branch_id=branch_id).order_by(Group.group_name).all()
    return [('', '-- No Group --')] + [(g.group_id, f'{g.group_id} - {g.group_name}') for g in groups]
