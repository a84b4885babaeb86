from flask_wtf import FlaskForm
from wtforms import DateField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from .models import URGENCY_LEVELS


class PrepListForm(FlaskForm):
    prep_date = DateField("Prep date", validators=[DataRequired()])
    name = StringField("Name", validators=[Optional(), Length(max=120)])
    venue_id = IntegerField("Venue", validators=[Optional()])
    notes = TextAreaField("Notes", validators=[Optional()])


class PrepItemForm(FlaskForm):
    task = StringField("Task", validators=[DataRequired(), Length(max=200)])
    quantity = StringField("Quantity", validators=[Optional(), Length(max=50)])
    station = StringField("Station", validators=[Optional(), Length(max=50)])
    urgency = SelectField(
        "Urgency", choices=[(u, u) for u in URGENCY_LEVELS], default="within_48h"
    )
