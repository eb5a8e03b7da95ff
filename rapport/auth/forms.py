from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length, ValidationError
from sqlalchemy import func

from rapport.models import User


def strong_password(_, field):
    value = field.data or ""
    if (
        len(value) < 8
        or not any(c.islower() for c in value)
        or not any(c.isupper() for c in value)
        or not any(c.isdigit() for c in value)
        or all(c.isalnum() for c in value)
    ):
        raise ValidationError(
            "Password must be at least 8 characters long and contain an uppercase letter, "
            "a lowercase letter, a digit and a special character."
        )


def _email_taken(email: str) -> bool:
    return User.query.filter(func.lower(User.email) == email).first() is not None


class RegistrationForm(FlaskForm):
    first_name = StringField("First name", validators=[DataRequired(), Length(max=120)])
    last_name = StringField("Last name", validators=[DataRequired(), Length(max=120)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), strong_password])
    confirm_password = PasswordField("Confirm password", validators=[DataRequired(), EqualTo("password")])

    def validate_email(self, field):
        email = (field.data or "").strip().lower()
        if _email_taken(email):
            raise ValidationError("Email already registered.")
        field.data = email


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired()])
    password = PasswordField("Password", validators=[DataRequired()])

    def validate_email(self, field):
        field.data = (field.data or "").strip().lower()


class PasswordForm(FlaskForm):
    old_password = PasswordField("Current password", validators=[DataRequired()])
    new_password = PasswordField("New password", validators=[DataRequired(), strong_password])
    confirm_password = PasswordField("Confirm password", validators=[DataRequired(), EqualTo("new_password")])


class EmailForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])

    def __init__(self, original_email: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.original_email_lower = (original_email or "").lower()

    def validate_email(self, field):
        email = (field.data or "").strip().lower()
        if email == self.original_email_lower:
            raise ValidationError("This is already your email address.")
        if _email_taken(email):
            raise ValidationError("Email already registered.")
        field.data = email
