from flask_wtf import FlaskForm
from wtforms import (
    StringField,
    IntegerField,
    TextAreaField,
    SelectField,
    BooleanField,
    PasswordField,
    SubmitField
)
from wtforms.fields import DateField
from wtforms.validators import (
    DataRequired, InputRequired, Email, NumberRange, Optional, Length,
    ValidationError
)
from reagent_inventory.auth.forms import password_length
from reagent_inventory.models import Category, Machine, Reagent, User


class CategoryForm(FlaskForm):
    name = StringField('Category Name', validators=[DataRequired(), Length(max=100)])
    description = TextAreaField('Description')
    has_machines = BooleanField('Reagents are grouped by machine')
    color = StringField('Color', default='#3b82f6', validators=[Optional(), Length(max=20)])
    submit = SubmitField('Save Category')


class MachineForm(FlaskForm):
    name = StringField('Machine Name', validators=[DataRequired(), Length(max=100)])
    category_id = SelectField('Category', coerce=int, validators=[DataRequired()])
    description = TextAreaField('Description')
    submit = SubmitField('Save Machine')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Only categories that group reagents by machine can own machines
        self.category_id.choices = [
            (c.id, c.name)
            for c in Category.active().filter_by(has_machines=True).all()
        ]


class ReagentForm(FlaskForm):
    """
    Form for adding or editing a reagent.
    Stock itself is never edited here; it only changes through transactions.
    """
    name = StringField('Reagent Name', validators=[DataRequired(), Length(max=200)])
    category_id = SelectField('Category', coerce=int, validators=[DataRequired()])
    machine_id = SelectField('Machine', coerce=int, default=0, validate_choice=False)
    unit = SelectField(
        'Unit',
        choices=[(u, u) for u in Reagent.UNITS],
        validators=[DataRequired()]
    )
    minimum_stock = IntegerField('Minimum Stock', default=5, validators=[
        InputRequired(),
        NumberRange(min=0, message="Minimum stock must be 0 or greater")
    ])
    storage_condition = SelectField(
        'Storage Condition',
        choices=[(s, s) for s in Reagent.STORAGE_CONDITIONS],
        validators=[DataRequired()]
    )
    expiry_date = DateField('Expiry Date', validators=[Optional()])
    lot_number = StringField('Lot Number', validators=[Optional(), Length(max=50)])
    remarks = TextAreaField('Remarks')
    submit = SubmitField('Save Reagent')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.category_id.choices = [
            (c.id, c.name) for c in Category.active().all()
        ]
        self.machine_id.choices = [(0, '--- No machine ---')] + [
            (m.id, f"{m.category.name} - {m.name}")
            for m in Machine.active().all()
        ]


class UserForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=120)])
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired(), password_length])
    role = SelectField('Role', choices=[
        ('technician', 'Technician'),
        ('admin', 'Admin')
    ], validators=[DataRequired()])
    phone = StringField('Phone', validators=[Optional(), Length(max=32)])
    submit = SubmitField('Create User')

    def validate_email(self, field):
        if User.query.filter_by(email=field.data.strip().lower()).first():
            raise ValidationError('A user with this email already exists')
