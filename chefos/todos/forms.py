from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    DateField,
    IntegerField,
    SelectField,
    SelectMultipleField,
    StringField,
    TextAreaField,
)
from wtforms.validators import DataRequired, Length, NumberRange, Optional

PRIORITY_CHOICES = [("low", "Low"), ("medium", "Medium"), ("high", "High")]


class TodoForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[Optional()])
    priority = SelectField("Priority", choices=PRIORITY_CHOICES, default="medium")
    category = StringField("Category", validators=[Optional(), Length(max=50)])
    due_date = DateField("Due date", validators=[Optional()])


class RecurringRuleForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[Optional()])
    priority = SelectField("Priority", choices=PRIORITY_CHOICES, default="medium")
    category = StringField("Category", validators=[Optional(), Length(max=50)])
    recurrence_type = SelectField(
        "Recurrence",
        choices=[("daily", "Daily"), ("weekly", "Weekly"), ("monthly", "Monthly")],
        validators=[DataRequired()],
    )
    days_of_week = SelectMultipleField(
        "Days of week",
        choices=[(str(i), str(i)) for i in range(7)],
        validators=[Optional()],
    )
    day_of_month = IntegerField("Day of month", validators=[Optional(), NumberRange(1, 31)])
    delegate_to = IntegerField("Delegate to", validators=[Optional()])
    active = BooleanField("Active", default=True)


class DelegationForm(FlaskForm):
    delegated_to = IntegerField("Delegate to", validators=[DataRequired()])
