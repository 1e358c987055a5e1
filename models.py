
from datetime import date
import json
from app import db
from sqlalchemy import Index, CheckConstraint, UniqueConstraint
from sqlalchemy.ext.hybrid import hybrid_property
from enum import Enum
from timezone_utils import get_local_time_naive

# Enums for better data integrity
class UserRole(Enum):
    ADMIN = 'admin'
    APPROVER_LEVEL1 = 'approver_level1'
    APPROVER_LEVEL2 = 'approver_level2'
    EMPLOYEE = 'employee'

class UserStatus(Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'

class VehicleStatus(Enum):
    AVAILABLE = 'available'
    ON_DUTY = 'on_duty'
    SERVICE = 'service'

class DriverStatus(Enum):
    AVAILABLE = 'available'
    ON_DUTY = 'on_duty'

class BookingStatus(Enum):
    PENDING = 'pending'
    APPROVED_1 = 'approved_1'
    APPROVED = 'approved'
    REJECTED = 'rejected'

class ApprovalStatus(Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

class ResourceKind(Enum):
    VEHICLE = 'vehicle'
    DRIVER = 'driver'

# Role that carries the capability for each approval level
LEVEL_ROLES = {
    1: UserRole.APPROVER_LEVEL1,
    2: UserRole.APPROVER_LEVEL2,
}


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(100))

    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.EMPLOYEE, index=True)
    status = db.Column(db.Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE, index=True)

    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=get_local_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    # Relationships
    bookings = db.relationship('Booking', foreign_keys='Booking.user_id', backref='requester', lazy=True)
    assigned_approvals = db.relationship('Approval', foreign_keys='Approval.approver_id', backref='approver', lazy=True)

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def display_name(self):
        return self.full_name or self.username

    def has_level_capability(self, level):
        """True if the user holds the approver role for the given level"""
        return self.is_active and LEVEL_ROLES.get(level) == self.role

    def __repr__(self):
        return f'<User {self.username}>'


class Vehicle(db.Model):
    __tablename__ = 'vehicles'

    id = db.Column(db.Integer, primary_key=True)
    license_plate = db.Column(db.String(20), unique=True, nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False, default='passenger')  # passenger, cargo
    fuel_consumption = db.Column(db.Float)  # liters per km
    status = db.Column(db.Enum(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE, index=True)

    # Bumped under row lock whenever a booking is created for this vehicle
    booking_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=get_local_time_naive)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    # Relationships
    bookings = db.relationship('Booking', backref='vehicle', lazy=True)
    fuel_logs = db.relationship('FuelLog', backref='vehicle', lazy=True, cascade='all, delete-orphan')
    service_logs = db.relationship('ServiceLog', backref='vehicle', lazy=True, cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Vehicle {self.license_plate}>'


class Driver(db.Model):
    __tablename__ = 'drivers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    license_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    status = db.Column(db.Enum(DriverStatus), nullable=False, default=DriverStatus.AVAILABLE, index=True)

    booking_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=get_local_time_naive)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    # Relationships
    bookings = db.relationship('Booking', backref='driver', lazy=True)

    def __repr__(self):
        return f'<Driver {self.name}>'


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)

    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)
    purpose = db.Column(db.String(500), nullable=False)
    status = db.Column(db.Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)

    # Explicit cancellation (as opposed to rejection by an approver)
    cancelled_at = db.Column(db.DateTime)
    cancelled_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    created_at = db.Column(db.DateTime, default=get_local_time_naive, index=True)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    # Relationships
    approvals = db.relationship('Approval', backref='booking', lazy=True,
                                cascade='all, delete-orphan', order_by='Approval.level')
    usage_log = db.relationship('UsageLog', backref='booking', uselist=False, cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('end_date >= start_date', name='ck_booking_date_range'),
        Index('idx_booking_vehicle_dates', 'vehicle_id', 'start_date', 'end_date'),
        Index('idx_booking_driver_dates', 'driver_id', 'start_date', 'end_date'),
    )

    @property
    def is_cancelled(self):
        return self.cancelled_at is not None

    def get_approval(self, level):
        """Return the approval row for a level, or None"""
        for approval in self.approvals:
            if approval.level == level:
                return approval
        return None

    @classmethod
    def active_at(cls, on_date: date):
        """Approved bookings whose date range includes on_date"""
        return cls.query.filter(
            cls.start_date <= on_date,
            cls.end_date >= on_date,
            cls.status == BookingStatus.APPROVED
        )

    def __repr__(self):
        return f'<Booking {self.id} {self.status.value}>'


class Approval(db.Model):
    __tablename__ = 'approvals'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    approver_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)
    status = db.Column(db.Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)
    notes = db.Column(db.Text)

    # Whoever resolved it; may differ from the named approver
    acted_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    acted_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=get_local_time_naive, index=True)
    updated_at = db.Column(db.DateTime, default=get_local_time_naive, onupdate=get_local_time_naive)

    actor = db.relationship('User', foreign_keys=[acted_by])

    __table_args__ = (
        UniqueConstraint('booking_id', 'level', name='unique_booking_approval_level'),
        CheckConstraint('level IN (1, 2)', name='ck_approval_level'),
        Index('idx_approval_status_level', 'status', 'level'),
    )

    @property
    def is_resolved(self):
        return self.status != ApprovalStatus.PENDING

    def __repr__(self):
        return f'<Approval {self.id} L{self.level} {self.status.value}>'


class FuelLog(db.Model):
    __tablename__ = 'fuel_logs'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    log_date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=get_local_time_naive)


class ServiceLog(db.Model):
    __tablename__ = 'service_logs'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False, index=True)
    service_date = db.Column(db.Date, nullable=False, index=True)
    service_type = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=get_local_time_naive)


class UsageLog(db.Model):
    __tablename__ = 'usage_logs'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, unique=True)
    start_km = db.Column(db.Integer, nullable=False)
    end_km = db.Column(db.Integer, nullable=False)
    fuel_used = db.Column(db.Numeric(10, 2))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=get_local_time_naive)

    __table_args__ = (
        CheckConstraint('end_km >= start_km', name='ck_usage_km_range'),
    )

    @hybrid_property
    def distance(self):
        return self.end_km - self.start_km


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), index=True)

    # Action details
    action = db.Column(db.String(100), nullable=False, index=True)
    entity_type = db.Column(db.String(50), index=True)
    entity_id = db.Column(db.Integer)
    description = db.Column(db.Text)
    details = db.Column(db.Text)  # JSON

    # Outcome
    success = db.Column(db.Boolean, default=True)
    error_message = db.Column(db.Text)

    # Request context
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=get_local_time_naive, index=True)

    # Relationships
    user = db.relationship('User', backref='audit_logs')

    __table_args__ = (
        Index('idx_audit_date_user', 'created_at', 'user_id'),
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )

    def get_details(self):
        if self.details:
            try:
                return json.loads(self.details)
            except json.JSONDecodeError:
                return {}
        return {}
