"""
Unit tests for ResourceService
"""

import pytest
from datetime import date

from models import db, Vehicle, AuditLog, VehicleStatus, DriverStatus, ResourceKind, BookingStatus
from services.resource_service import ResourceService, parse_kind
from services.errors import NotFoundError, UnauthorizedError, ValidationError
from tests.conftest import TODAY, make_booking, VehicleFactory, DriverFactory


@pytest.mark.unit
class TestResourceService:

    @pytest.mark.parametrize('value, expected', [
        ('vehicle', ResourceKind.VEHICLE),
        ('vehicles', ResourceKind.VEHICLE),
        ('Driver', ResourceKind.DRIVER),
        (ResourceKind.DRIVER, ResourceKind.DRIVER),
    ])
    def test_parse_kind(self, value, expected):
        assert parse_kind(value) is expected

    def test_parse_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_kind('trucks-and-boats')

    def test_get_available_vehicles(self, db_session):
        VehicleFactory(license_plate='B 2 XX')
        VehicleFactory(license_plate='B 1 XX')
        VehicleFactory(status=VehicleStatus.SERVICE)
        VehicleFactory(status=VehicleStatus.ON_DUTY)

        plates = [v.license_plate for v in ResourceService().get_available('vehicle')]

        assert plates == ['B 1 XX', 'B 2 XX']

    def test_get_available_drivers(self, db_session):
        free = DriverFactory(name='Ann')
        DriverFactory(status=DriverStatus.ON_DUTY)

        assert ResourceService().get_available(ResourceKind.DRIVER) == [free]

    def test_get_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            ResourceService().get('driver', 77)

    def test_admin_sets_vehicle_to_service(self, vehicle, admin_user):
        updated = ResourceService().set_status('vehicle', vehicle.id, 'service', admin_user)

        assert updated.status == VehicleStatus.SERVICE
        audit = AuditLog.query.filter_by(action='status_update', entity_type='vehicle').one()
        assert audit.get_details() == {'old_status': 'available', 'new_status': 'service'}
        assert audit.user_id == admin_user.id

    def test_non_admin_cannot_set_status(self, vehicle, employee):
        with pytest.raises(UnauthorizedError):
            ResourceService().set_status('vehicle', vehicle.id, 'service', employee)
        assert db.session.get(Vehicle, vehicle.id).status == VehicleStatus.AVAILABLE

    def test_driver_has_no_service_status(self, driver, admin_user):
        with pytest.raises(ValidationError):
            ResourceService().set_status('driver', driver.id, 'service', admin_user)

    def test_set_status_unknown_resource(self, admin_user):
        with pytest.raises(NotFoundError):
            ResourceService().set_status('vehicle', 404, 'service', admin_user)

    def test_lock_bumps_version(self, vehicle):
        service = ResourceService()

        locked = service.lock_for_booking(ResourceKind.VEHICLE, vehicle.id)
        db.session.commit()

        assert locked.booking_version == 1
        assert service.lock_for_booking(ResourceKind.DRIVER, 555) is None

    def test_release_returns_on_duty_resources(self, db_session):
        vehicle = VehicleFactory(status=VehicleStatus.ON_DUTY)
        driver = DriverFactory(status=DriverStatus.ON_DUTY)
        service = ResourceService()

        assert service.release(ResourceKind.VEHICLE, vehicle, TODAY) is True
        assert service.release(ResourceKind.DRIVER, driver, TODAY) is True
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert driver.status == DriverStatus.AVAILABLE

    def test_release_skips_service_vehicle(self, db_session):
        vehicle = VehicleFactory(status=VehicleStatus.SERVICE)

        assert ResourceService().release(ResourceKind.VEHICLE, vehicle, TODAY) is False
        assert vehicle.status == VehicleStatus.SERVICE

    def test_release_skips_resource_with_active_booking(self, approver1, approver2):
        driver = DriverFactory(status=DriverStatus.ON_DUTY)
        make_booking(approver1, approver2, status=BookingStatus.APPROVED,
                     driver=driver, start_date=date(2025, 5, 19), end_date=date(2025, 5, 21))
        service = ResourceService()

        assert service.has_active_booking(ResourceKind.DRIVER, driver.id, TODAY)
        assert service.release(ResourceKind.DRIVER, driver, TODAY) is False
        assert not service.has_active_booking(ResourceKind.DRIVER, driver.id, date(2025, 5, 22))

    def test_release_by_id(self, db_session):
        vehicle = VehicleFactory(status=VehicleStatus.ON_DUTY)

        assert ResourceService().release('vehicle', vehicle.id, TODAY) is True
        db_session.commit()
        assert db.session.get(Vehicle, vehicle.id).status == VehicleStatus.AVAILABLE

    def test_release_missing(self, db_session):
        assert ResourceService().release(ResourceKind.VEHICLE, None) is False
        assert ResourceService().release(ResourceKind.DRIVER, 404, TODAY) is False
