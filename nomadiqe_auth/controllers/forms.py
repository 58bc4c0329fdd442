"""Payload validation for the JSON API."""

from typing import Any

from flask import current_app
from wtforms import Form, PasswordField, StringField, ValidationError
from wtforms.validators import AnyOf, DataRequired, EqualTo, Length, \
    Optional, Regexp, URL

from ..domain import SELECTABLE_ROLES
from ..services.passwords import MAX_PASSWORD_BYTES
from ..services.profiles import DOCUMENT_TYPES
from .util import StringListField

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'
USERNAME_PATTERN = r'^[a-zA-Z0-9_]+$'
CODE_PATTERN = r'^[0-9]{6}$'
PROVIDERS = ('google', 'facebook', 'apple')
MAX_INTERESTS = 20


def email_field() -> StringField:
    return StringField('Email', validators=[
        DataRequired('Email is required'),
        Length(max=320),
        Regexp(EMAIL_PATTERN, message='Invalid email address')
    ])


def password_length(form: Form, field: Any) -> None:
    """Enforce the configured minimum password length."""
    minimum = int(current_app.config['PASSWORD_MIN_LENGTH'])
    if field.data and len(field.data) < minimum:
        raise ValidationError(
            f'Password must be at least {minimum} characters long')


def password_bytes(form: Form, field: Any) -> None:
    """bcrypt only considers the first 72 bytes, not characters."""
    if field.data and len(field.data.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValidationError('Password is too long')


def password_field() -> PasswordField:
    return PasswordField('Password', validators=[
        DataRequired('Password is required'),
        password_length,
        password_bytes
    ])


class SignUpForm(Form):
    """Create an account with e-mail and password."""

    email = email_field()
    password = password_field()
    name = StringField('Name', validators=[Optional(), Length(max=100)])


class SignInForm(Form):
    """Sign in with e-mail and password."""

    email = StringField('Email', validators=[DataRequired('Email is required')])
    password = PasswordField('Password',
                             validators=[DataRequired('Password is required')])


class EmailForm(Form):
    """Any request that only carries an e-mail address."""

    email = email_field()


class VerifyCodeForm(Form):
    email = email_field()
    code = StringField('Code', validators=[
        DataRequired('Code is required'),
        Regexp(CODE_PATTERN, message='The code must be 6 digits')
    ])


class TokenPasswordForm(Form):
    """Set a password using a token received by e-mail."""

    email = email_field()
    token = StringField('Token', validators=[DataRequired('Token is required')])
    password = password_field()


class AddPasswordForm(Form):
    """Add a password to the signed-in account."""

    password = password_field()
    confirm_password = PasswordField('Confirm password', validators=[
        DataRequired('Please confirm the password'),
        EqualTo('password', message='Passwords do not match')
    ])


class ProviderCallbackForm(Form):
    """Identity asserted by a provider after it authenticated the user."""

    provider = StringField('Provider', validators=[
        DataRequired(), AnyOf(PROVIDERS, message='Unknown provider')
    ])
    provider_account_id = StringField('Provider account',
                                      validators=[DataRequired(),
                                                  Length(max=255)])
    email = email_field()
    name = StringField('Name', validators=[Optional(), Length(max=255)])


class RoleForm(Form):
    role = StringField('Role', validators=[
        DataRequired('Role is required'),
        AnyOf([role.value for role in SELECTABLE_ROLES],
              message='Invalid role selected')
    ])


class ProfileForm(Form):
    """Profile setup."""

    full_name = StringField('Full name', validators=[
        DataRequired('Full name is required'),
        Length(min=2, max=100,
               message='Full name must be between 2 and 100 characters')
    ])
    username = StringField('Username', validators=[
        DataRequired('Username is required'),
        Length(min=3, max=30,
               message='Username must be between 3 and 30 characters'),
        Regexp(USERNAME_PATTERN, message='Username can only contain '
                                         'letters, numbers, and underscores')
    ])
    bio = StringField('Bio', validators=[
        Optional(),
        Length(max=500, message='Bio must be at most 500 characters')
    ])
    profile_picture = StringField('Profile picture', validators=[
        Optional(), URL(message='Profile picture must be a URL')
    ])


class InterestsForm(Form):
    interests = StringListField('Interests')

    def validate_interests(self, field: StringListField) -> None:
        if not field.data:
            raise ValidationError('Please select at least one interest')
        if len(field.data) > MAX_INTERESTS:
            raise ValidationError(
                f'Please select at most {MAX_INTERESTS} interests')


class IdentityForm(Form):
    document_type = StringField('Document type', validators=[
        DataRequired('Document type is required'),
        AnyOf(DOCUMENT_TYPES, message='Invalid document type')
    ])
    document_url = StringField('Document', validators=[
        DataRequired('Document is required'),
        URL(message='Document must be a URL')
    ])


class StepForm(Form):
    step = StringField('Step', validators=[DataRequired('Step is required')])
