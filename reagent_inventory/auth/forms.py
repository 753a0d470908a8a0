from flask import current_app
from flask_wtf import FlaskForm
from wtforms import (
    StringField,
    PasswordField,
    BooleanField,
    SubmitField
)
from wtforms.validators import DataRequired, Email, EqualTo, ValidationError
from reagent_inventory.models import User


def password_length(form, field):
    """Enforce MIN_PASSWORD_LENGTH from the app config."""
    minimum = current_app.config.get('MIN_PASSWORD_LENGTH', 6)
    if field.data and len(field.data) < minimum:
        raise ValidationError(f'Password must be at least {minimum} characters')


class LoginForm(FlaskForm):
    """Form for user login.

    Fields:
        email: Account email
        password: Password field
        remember_me: Remember login checkbox
        submit: Submit button
    """
    email = StringField(
        'Email',
        validators=[DataRequired(message='Email is required')]
    )
    password = PasswordField(
        'Password',
        validators=[DataRequired(message='Password is required')]
    )
    remember_me = BooleanField('Remember Me')
    submit = SubmitField('Sign In')


class SignupForm(FlaskForm):
    """Self registration; the first account becomes the administrator."""
    full_name = StringField('Full Name', validators=[DataRequired()])
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired(), password_length])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(),
        EqualTo('password', message='Passwords do not match')
    ])
    submit = SubmitField('Create Account')

    def validate_email(self, field):
        if User.query.filter_by(email=field.data.strip().lower()).first():
            raise ValidationError('An account with this email already exists')
