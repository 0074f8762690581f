from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import (
    BooleanField, DateTimeField, DecimalField, IntegerField, PasswordField, StringField, TextAreaField
)
from wtforms.validators import (
    AnyOf, DataRequired, Email, InputRequired, Length, NumberRange, Optional, ValidationError
)

from entitlements import Role
from models import Activity, Company, Opportunity, Plan
from services.exceptions import ValidationFailed
from utils import camel_to_snake, format_phone_number

DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%d',
]


class JsonForm(FlaskForm):
    """Form fed from a JSON body. CSRF is checked globally by CSRFProtect."""

    class Meta:
        csrf = False


def validate_phone(form, field):
    if field.data and format_phone_number(field.data) is None:
        raise ValidationError('Not a valid phone number.')


def parse_json(form_class, payload, partial=False):
    """
    Validate a JSON payload with a form.

    Keys may be camelCase or snake_case. JSON null counts as empty. With
    partial=True only the keys present in the payload are validated and
    returned, so updates leave the other columns alone.

    Returns:
        dict of cleaned field values (snake_case keys)

    Raises:
        ValidationFailed: details map field name to error messages
    """
    if not isinstance(payload, dict):
        raise ValidationFailed('Request body must be a JSON object')

    formdata = MultiDict()
    present = set()
    for key, value in payload.items():
        key = camel_to_snake(key)
        if value is None:
            value = ''
        elif isinstance(value, bool):
            pass
        elif isinstance(value, (int, float)):
            value = str(value)
        elif not isinstance(value, str):
            continue
        formdata.add(key, value)
        present.add(key)

    form = form_class(formdata=formdata)
    if partial:
        for name in list(form._fields):
            if name not in present:
                del form[name]

    if not form.validate():
        raise ValidationFailed(details=form.errors)

    data = {}
    for name, field in form._fields.items():
        value = field.data
        if isinstance(value, str):
            value = value.strip() or None
        data[name] = value
    return data


class LoginForm(JsonForm):
    email = StringField('Email', validators=[
        DataRequired(message='Please enter your email'), Email()
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Please enter your password')
    ])


class UserForm(JsonForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20), validate_phone])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=128)])
    role = StringField('Role', validators=[Optional(), AnyOf(Role.ALL)])
    business_account_id = IntegerField('Business Account', validators=[Optional()])


class UserUpdateForm(JsonForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20), validate_phone])
    password = PasswordField('Password', validators=[Optional(), Length(min=8, max=128)])
    role = StringField('Role', validators=[DataRequired(), AnyOf(Role.ALL)])
    is_active = BooleanField('Active')


class PermissionOverrideForm(JsonForm):
    can_view = BooleanField('Can view')
    can_create = BooleanField('Can create')
    can_edit = BooleanField('Can edit')
    can_delete = BooleanField('Can delete')
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=1000)])


class CompanyForm(JsonForm):
    name = StringField('Company Name', validators=[DataRequired(), Length(max=200)])
    status = StringField('Status', validators=[Optional(), AnyOf(Company.STATUSES)])
    contact_name = StringField('Contact Name', validators=[Optional(), Length(max=200)])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20), validate_phone])
    website = StringField('Website', validators=[Optional(), Length(max=255)])
    industry = StringField('Industry', validators=[Optional(), Length(max=120)])
    owner_id = IntegerField('Owner', validators=[Optional()])
    business_account_id = IntegerField('Business Account', validators=[Optional()])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        # At least one way to reach the company; updates are checked on the merged row
        if self.email is not None and self.phone is not None:
            if not (self.email.data or '').strip() and not (self.phone.data or '').strip():
                self.email.errors.append('Provide an email or a phone number.')
                return False
        return True


class OpportunityForm(JsonForm):
    company_id = IntegerField('Company', validators=[InputRequired()])
    seller_id = IntegerField('Seller', validators=[Optional()])
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    type = StringField('Type', validators=[Optional(), AnyOf(Opportunity.TYPES)])
    status = StringField('Status', validators=[Optional(), AnyOf(Opportunity.STATUSES)])
    estimated_close_date = DateTimeField('Estimated Close Date', format=DATETIME_FORMATS,
                                         validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])
    business_account_id = IntegerField('Business Account', validators=[Optional()])


class ActivityForm(JsonForm):
    opportunity_id = IntegerField('Opportunity', validators=[InputRequired()])
    type = StringField('Type', validators=[DataRequired(), AnyOf(Activity.TYPES)])
    details = TextAreaField('Details', validators=[Optional()])
    activity_date = DateTimeField('Activity Date', format=DATETIME_FORMATS, validators=[DataRequired()])
    is_task = BooleanField('Is Task')
    reminder_date = DateTimeField('Reminder Date', format=DATETIME_FORMATS, validators=[Optional()])


class PlanForm(JsonForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    description = TextAreaField('Description', validators=[Optional()])
    status = StringField('Status', validators=[Optional(), AnyOf(Plan.STATUSES)])
    monthly_price = DecimalField('Monthly Price', places=2, validators=[Optional(), NumberRange(min=0)])
    annual_price = DecimalField('Annual Price', places=2, validators=[Optional(), NumberRange(min=0)])
    trial_days = IntegerField('Trial Days', validators=[Optional(), NumberRange(min=0)])
    is_default = BooleanField('Default Plan')
    display_order = IntegerField('Display Order', validators=[Optional()])


class PlanModuleForm(JsonForm):
    is_included = BooleanField('Included')
    item_limit = IntegerField('Item Limit', validators=[Optional(), NumberRange(min=0)])
    can_create = BooleanField('Can create')
    can_edit = BooleanField('Can edit')
    can_delete = BooleanField('Can delete')


class BusinessAccountForm(JsonForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    plan_id = IntegerField('Plan', validators=[Optional()])
    is_active = BooleanField('Active')
    admin_name = StringField('Admin Name', validators=[Optional(), Length(max=120)])
    admin_email = StringField('Admin Email', validators=[Optional(), Email(), Length(max=120)])
    admin_password = PasswordField('Admin Password', validators=[Optional(), Length(min=8, max=128)])
    admin_phone = StringField('Admin Phone', validators=[Optional(), Length(max=20), validate_phone])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        admin_fields = [f for f in (self.admin_name, self.admin_email, self.admin_password) if f is not None]
        if any(f.data for f in admin_fields) and not all(f.data for f in admin_fields):
            for f in admin_fields:
                if not f.data:
                    f.errors.append('Required when creating the first admin.')
            return False
        return True


class ChangePlanForm(JsonForm):
    plan_id = IntegerField('Plan', validators=[InputRequired()])


class ModuleOverrideForm(JsonForm):
    is_disabled = BooleanField('Disabled')


def parse_request(form_class, partial=False):
    """Validate the current request's JSON body with a form. See parse_json()."""
    return parse_json(form_class, request.get_json(silent=True) or {}, partial=partial)
