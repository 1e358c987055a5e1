from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, FloatField, IntegerField, DateField, TextAreaField, DecimalField
from wtforms.validators import DataRequired, Length, Optional, NumberRange, ValidationError
from models import VehicleStatus, DriverStatus


class JSONForm(FlaskForm):
    """Base for forms posted as JSON by API clients (bearer-token auth, no CSRF cookie)"""
    class Meta:
        csrf = False


class LoginForm(JSONForm):
    username = StringField('Username or Email', validators=[DataRequired(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired()])


class BookingForm(JSONForm):
    vehicle_id = IntegerField('Vehicle', validators=[DataRequired()])
    driver_id = IntegerField('Driver', validators=[DataRequired()])
    start_date = DateField('Start Date', validators=[DataRequired()])
    end_date = DateField('End Date', validators=[DataRequired()])
    purpose = TextAreaField('Purpose', validators=[DataRequired(), Length(max=500)])
    approver_level1_id = IntegerField('Level 1 Approver', validators=[DataRequired()])
    approver_level2_id = IntegerField('Level 2 Approver', validators=[DataRequired()])

    def validate_approver_level2_id(self, field):
        if field.data and field.data == self.approver_level1_id.data:
            raise ValidationError('Level 1 and level 2 approvers must be different users')


class ApprovalDecisionForm(JSONForm):
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=1000)])


class ResourceStatusForm(JSONForm):
    status = SelectField('Status', choices=[
        (VehicleStatus.AVAILABLE.value, 'Available'),
        (VehicleStatus.ON_DUTY.value, 'On Duty'),
        (VehicleStatus.SERVICE.value, 'In Service')
    ], validators=[DataRequired()])

    def __init__(self, kind='vehicle', *args, **kwargs):
        super().__init__(*args, **kwargs)
        if kind == 'driver':
            self.status.choices = [(s.value, s.value.replace('_', ' ').title()) for s in DriverStatus]


class FuelLogForm(JSONForm):
    vehicle_id = IntegerField('Vehicle', validators=[DataRequired()])
    amount = DecimalField('Amount (L)', places=2, validators=[NumberRange(min=0)])
    log_date = DateField('Date', validators=[DataRequired()])
    notes = TextAreaField('Notes', validators=[Optional()])


class ServiceLogForm(JSONForm):
    vehicle_id = IntegerField('Vehicle', validators=[DataRequired()])
    service_date = DateField('Service Date', validators=[DataRequired()])
    service_type = StringField('Service Type', validators=[DataRequired(), Length(max=100)])
    description = TextAreaField('Description', validators=[Optional()])
    cost = DecimalField('Cost', places=2, validators=[Optional(), NumberRange(min=0)], default=0)


class UsageLogForm(JSONForm):
    booking_id = IntegerField('Booking', validators=[DataRequired()])
    start_km = IntegerField('Start KM', validators=[NumberRange(min=0)])
    end_km = IntegerField('End KM', validators=[NumberRange(min=0)])
    fuel_used = FloatField('Fuel Used (L)', validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional()])

    def validate_end_km(self, field):
        if None not in (field.data, self.start_km.data) and field.data < self.start_km.data:
            raise ValidationError('End KM must be greater than or equal to Start KM')
