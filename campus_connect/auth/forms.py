from __future__ import annotations

from wtforms import PasswordField, StringField
from wtforms.validators import DataRequired, Length

from ..validation import JsonForm, as_text, strip_text


class SignupForm(JsonForm):
    username = StringField(
        "Username",
        filters=[strip_text],
        validators=[Length(min=3, message="Username must be at least 3 characters"), Length(max=80)],
    )
    password = PasswordField(
        "Password",
        filters=[as_text],
        validators=[Length(min=6, message="Password must be at least 6 characters"), Length(max=128)],
    )


class LoginForm(JsonForm):
    username = StringField("Username", filters=[strip_text], validators=[DataRequired(), Length(max=80)])
    password = PasswordField("Password", filters=[as_text], validators=[DataRequired(), Length(max=128)])
