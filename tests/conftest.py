"""
Pytest configuration and fixtures for the fleet booking service
"""

import os
from datetime import date, timedelta

import pytest

# Set test environment before importing app
os.environ.update({
    'FLASK_ENV': 'testing',
    'TESTING': 'true',
    'SESSION_SECRET': 'test_secret_key_for_testing_only_0123456789',
    'DATABASE_URL': 'sqlite:///:memory:',
    'APP_TIMEZONE': 'Asia/Kolkata',
    'DEMO_SEED': 'false',
})

from app import create_app, db
from models import (User, UserRole, UserStatus, Vehicle, VehicleStatus, Driver, DriverStatus,
                    Booking, BookingStatus, Approval, ApprovalStatus)
from services import BookingService, ApprovalService, NotificationService
import factory
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

# Fixed "today" for service-level tests so booking dates stay in the future
TODAY = date(2025, 5, 20)


@pytest.fixture(scope='function')
def app():
    """Create application for testing"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for testing"""
    yield db.session
    db.session.rollback()


# Factory classes for test data generation
class UserFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        model = User
        sqlalchemy_session = db.session
        sqlalchemy_session_persistence = "commit"

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.Sequence(lambda n: f"user{n}@test.com")
    password_hash = factory.LazyFunction(lambda: generate_password_hash('testpass123'))
    full_name = factory.Faker('name')
    role = UserRole.EMPLOYEE
    status = UserStatus.ACTIVE


class AdminUserFactory(UserFactory):
    role = UserRole.ADMIN
    username = factory.Sequence(lambda n: f"admin{n}")
    email = factory.Sequence(lambda n: f"admin{n}@test.com")


class Approver1Factory(UserFactory):
    role = UserRole.APPROVER_LEVEL1
    username = factory.Sequence(lambda n: f"approver1_{n}")
    email = factory.Sequence(lambda n: f"approver1_{n}@test.com")


class Approver2Factory(UserFactory):
    role = UserRole.APPROVER_LEVEL2
    username = factory.Sequence(lambda n: f"approver2_{n}")
    email = factory.Sequence(lambda n: f"approver2_{n}@test.com")


class VehicleFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        model = Vehicle
        sqlalchemy_session = db.session
        sqlalchemy_session_persistence = "commit"

    license_plate = factory.Sequence(lambda n: f"B {1000 + n} AB")
    type = 'passenger'
    fuel_consumption = 0.12
    status = VehicleStatus.AVAILABLE


class DriverFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        model = Driver
        sqlalchemy_session = db.session
        sqlalchemy_session_persistence = "commit"

    name = factory.Faker('name')
    license_number = factory.Sequence(lambda n: f"DL{n:08d}")
    status = DriverStatus.AVAILABLE


class BookingFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        model = Booking
        sqlalchemy_session = db.session
        sqlalchemy_session_persistence = "commit"

    requester = factory.SubFactory(UserFactory)
    vehicle = factory.SubFactory(VehicleFactory)
    driver = factory.SubFactory(DriverFactory)
    start_date = date(2025, 6, 1)
    end_date = date(2025, 6, 5)
    purpose = factory.Sequence(lambda n: f"Site visit {n}")
    status = BookingStatus.PENDING


class ApprovalFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        model = Approval
        sqlalchemy_session = db.session
        sqlalchemy_session_persistence = "commit"

    booking = factory.SubFactory(BookingFactory)
    approver = factory.SubFactory(Approver1Factory)
    level = 1
    status = ApprovalStatus.PENDING


def make_booking(approver1, approver2, status=BookingStatus.PENDING,
                 level1=ApprovalStatus.PENDING, level2=ApprovalStatus.PENDING, **kwargs):
    """Booking with both approval rows in the given states"""
    booking = BookingFactory(status=status, **kwargs)
    ApprovalFactory(booking=booking, approver=approver1, level=1, status=level1)
    ApprovalFactory(booking=booking, approver=approver2, level=2, status=level2)
    db.session.refresh(booking)
    return booking


# Fixtures for test data
@pytest.fixture
def employee(db_session):
    return UserFactory()


@pytest.fixture
def admin_user(db_session):
    return AdminUserFactory()


@pytest.fixture
def approver1(db_session):
    return Approver1Factory()


@pytest.fixture
def approver2(db_session):
    return Approver2Factory()


@pytest.fixture
def vehicle(db_session):
    return VehicleFactory()


@pytest.fixture
def driver(db_session):
    return DriverFactory()


@pytest.fixture
def notifications():
    return NotificationService()


@pytest.fixture
def booking_service(app, notifications):
    """BookingService with the clock frozen at TODAY"""
    return BookingService(clock=lambda: TODAY, notification_service=notifications)


@pytest.fixture
def approval_service(notifications):
    return ApprovalService(notification_service=notifications)


@pytest.fixture
def pending_booking(booking_service, employee, vehicle, driver, approver1, approver2):
    """Scenario A: a freshly requested booking"""
    return booking_service.create_booking(
        requester=employee,
        vehicle_id=vehicle.id,
        driver_id=driver.id,
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 5),
        purpose='Client meeting in Bandung',
        approver_level1_id=approver1.id,
        approver_level2_id=approver2.id
    )


@pytest.fixture
def auth_headers(app):
    """Build bearer-token headers for a user"""
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def future_dates():
    """(start, end) a week from the real current date, for API tests"""
    from timezone_utils import get_local_date
    start = get_local_date() + timedelta(days=7)
    return start, start + timedelta(days=2)
