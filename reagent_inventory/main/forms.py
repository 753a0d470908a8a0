from flask_wtf import FlaskForm
from wtforms import (
    StringField,
    IntegerField,
    PasswordField,
    TextAreaField,
    SubmitField
)
from wtforms.validators import DataRequired, EqualTo, NumberRange, Optional, Length
from reagent_inventory.auth.forms import password_length


class StockTransactionForm(FlaskForm):
    """
    Quantity and reason for a withdrawal or an addition.
    Withdrawals are capped at the reagent's current stock.
    """
    quantity = IntegerField('Quantity', default=1, validators=[
        DataRequired(message='Quantity is required'),
        NumberRange(min=1, message="Quantity must be at least 1")
    ])
    reason = TextAreaField('Reason', validators=[Optional(), Length(max=500)])
    submit = SubmitField('Confirm')

    def __init__(self, *args, max_quantity=None, **kwargs):
        super().__init__(*args, **kwargs)

        if max_quantity is not None:
            self.quantity.validators = list(self.quantity.validators) + [
                NumberRange(max=max_quantity,
                            message=f"Only {max_quantity} available")
            ]


class ActionForm(FlaskForm):
    """Body-less POST form used for buttons (mark read, delete, toggle)."""
    submit = SubmitField('Submit')


class ProfileForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=32)])
    save_profile = SubmitField('Save Profile')


class PasswordForm(FlaskForm):
    current_password = PasswordField('Current Password', validators=[DataRequired()])
    new_password = PasswordField('New Password', validators=[DataRequired(), password_length])
    confirm_password = PasswordField('Confirm New Password', validators=[
        DataRequired(),
        EqualTo('new_password', message='Passwords do not match')
    ])
    update_password = SubmitField('Update Password')
