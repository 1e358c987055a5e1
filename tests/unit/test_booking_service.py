"""
Unit tests for BookingService: creation, cancellation and queries
"""

import pytest
from datetime import date

from models import (db, Booking, Approval, AuditLog, BookingStatus, ApprovalStatus,
                    VehicleStatus, DriverStatus, UserStatus)
from services import BookingService
from services.errors import ValidationError, ConflictError, NotFoundError, UnauthorizedError
from tests.conftest import (TODAY, make_booking, UserFactory, Approver1Factory,
                            VehicleFactory, DriverFactory)


def _request(service, requester, vehicle, driver, approver1, approver2, **overrides):
    data = dict(
        requester=requester,
        vehicle_id=vehicle.id,
        driver_id=driver.id,
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 5),
        purpose='Client meeting',
        approver_level1_id=approver1.id,
        approver_level2_id=approver2.id,
    )
    data.update(overrides)
    return service.create_booking(**data)


@pytest.mark.unit
@pytest.mark.workflow
class TestCreateBooking:

    def test_scenario_a_creates_pending_booking_with_two_approvals(self, pending_booking,
                                                                   approver1, approver2):
        booking = db.session.get(Booking, pending_booking.id)

        assert booking.status == BookingStatus.PENDING
        assert [a.level for a in booking.approvals] == [1, 2]
        assert all(a.status == ApprovalStatus.PENDING for a in booking.approvals)
        assert booking.get_approval(1).approver_id == approver1.id
        assert booking.get_approval(2).approver_id == approver2.id

    def test_creation_does_not_touch_resource_status(self, pending_booking, vehicle, driver):
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert driver.status == DriverStatus.AVAILABLE

    def test_creation_is_audited_and_notified(self, pending_booking, notifications):
        audit = AuditLog.query.filter_by(action='create_booking', entity_id=pending_booking.id).one()
        assert audit.success is True
        assert audit.get_details()['vehicle_id'] == pending_booking.vehicle_id
        assert notifications.drain() == [
            {'message': 'Booking request submitted successfully!', 'severity': 'success'}
        ]

    def test_scenario_d_overlap_raises_conflict_and_creates_nothing(
            self, booking_service, pending_booking, employee, vehicle, approver1, approver2):
        other_driver = DriverFactory()
        bookings_before = Booking.query.count()
        approvals_before = Approval.query.count()

        with pytest.raises(ConflictError) as exc_info:
            _request(booking_service, employee, vehicle, other_driver, approver1, approver2,
                     start_date=date(2025, 6, 3), end_date=date(2025, 6, 7))

        assert exc_info.value.resources == ['vehicle']
        assert Booking.query.count() == bookings_before
        assert Approval.query.count() == approvals_before
        assert AuditLog.query.filter_by(action='booking_conflict', success=False).count() == 1

    def test_conflict_names_both_resources(self, booking_service, pending_booking, employee,
                                           vehicle, driver, approver1, approver2):
        with pytest.raises(ConflictError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     start_date=date(2025, 6, 5), end_date=date(2025, 6, 5))

        assert exc_info.value.resources == ['vehicle', 'driver']
        assert exc_info.value.to_dict()['resources'] == ['vehicle', 'driver']

    def test_adjacent_range_is_allowed(self, booking_service, pending_booking, employee,
                                       vehicle, driver, approver1, approver2):
        booking = _request(booking_service, employee, vehicle, driver, approver1, approver2,
                           start_date=date(2025, 6, 6), end_date=date(2025, 6, 8))
        assert booking.status == BookingStatus.PENDING

    def test_rejected_booking_frees_the_range(self, db_session, booking_service, pending_booking,
                                              employee, vehicle, driver, approver1, approver2):
        pending_booking.status = BookingStatus.REJECTED
        db_session.commit()

        booking = _request(booking_service, employee, vehicle, driver, approver1, approver2)
        assert booking.id != pending_booking.id

    def test_bumps_booking_version_of_locked_resources(self, pending_booking, vehicle, driver):
        assert vehicle.booking_version == 1
        assert driver.booking_version == 1

    @pytest.mark.parametrize('start, end, field', [
        (TODAY, date(2025, 6, 5), 'start_date'),
        (date(2025, 5, 1), date(2025, 6, 5), 'start_date'),
        (date(2025, 6, 5), date(2025, 6, 1), 'end_date'),
        (None, date(2025, 6, 5), 'start_date'),
        ('2025-13-01', date(2025, 6, 5), 'start_date'),
    ])
    def test_date_validation(self, booking_service, employee, vehicle, driver,
                             approver1, approver2, start, end, field):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     start_date=start, end_date=end)
        assert field in exc_info.value.field_errors

    def test_single_day_booking_starting_tomorrow(self, booking_service, employee, vehicle,
                                                  driver, approver1, approver2):
        tomorrow = date(2025, 5, 21)
        booking = _request(booking_service, employee, vehicle, driver, approver1, approver2,
                           start_date=tomorrow, end_date=tomorrow)
        assert booking.start_date == booking.end_date == tomorrow

    def test_iso_string_dates_are_accepted(self, booking_service, employee, vehicle, driver,
                                           approver1, approver2):
        booking = _request(booking_service, employee, vehicle, driver, approver1, approver2,
                           start_date='2025-06-01', end_date='2025-06-02')
        assert booking.end_date == date(2025, 6, 2)

    @pytest.mark.parametrize('purpose', ['', '   ', 'x' * 501])
    def test_purpose_validation(self, booking_service, employee, vehicle, driver,
                                approver1, approver2, purpose):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     purpose=purpose)
        assert 'purpose' in exc_info.value.field_errors

    def test_purpose_at_limit(self, booking_service, employee, vehicle, driver, approver1, approver2):
        booking = _request(booking_service, employee, vehicle, driver, approver1, approver2,
                           purpose='x' * 500)
        assert len(booking.purpose) == 500

    def test_same_approver_for_both_levels(self, booking_service, employee, vehicle, driver, approver1):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver1)
        assert 'approver_level2_id' in exc_info.value.field_errors

    def test_approver_without_level_role(self, booking_service, employee, vehicle, driver, approver2):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, employee, approver2)
        assert 'approver_level1_id' in exc_info.value.field_errors

    def test_swapped_approver_roles(self, booking_service, employee, vehicle, driver,
                                    approver1, approver2):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver2, approver1)
        errors = exc_info.value.field_errors
        assert 'approver_level1_id' in errors and 'approver_level2_id' in errors

    def test_inactive_approver(self, db_session, booking_service, employee, vehicle, driver, approver2):
        inactive = Approver1Factory(status=UserStatus.INACTIVE)
        with pytest.raises(ValidationError):
            _request(booking_service, employee, vehicle, driver, inactive, approver2)

    def test_missing_ids(self, booking_service, employee, vehicle, driver, approver1, approver2):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     vehicle_id=None, approver_level2_id=None)
        assert {'vehicle_id', 'approver_level2_id'} <= set(exc_info.value.field_errors)

    def test_unknown_vehicle(self, booking_service, employee, vehicle, driver, approver1, approver2):
        with pytest.raises(ValidationError) as exc_info:
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     vehicle_id=9999)
        assert 'vehicle_id' in exc_info.value.field_errors
        assert Booking.query.count() == 0

    def test_unknown_driver(self, booking_service, employee, vehicle, driver, approver1, approver2):
        with pytest.raises(ValidationError):
            _request(booking_service, employee, vehicle, driver, approver1, approver2,
                     driver_id=9999)
        assert Booking.query.count() == 0
        assert db.session.get(type(vehicle), vehicle.id).booking_version == 0


@pytest.mark.unit
@pytest.mark.workflow
class TestCancelBooking:

    def test_scenario_f_cancel_approved_1_releases_resources(self, db_session, booking_service,
                                                             approver1, approver2, employee):
        booking = make_booking(approver1, approver2, status=BookingStatus.APPROVED_1,
                               level1=ApprovalStatus.APPROVED, requester=employee)
        booking.vehicle.status = VehicleStatus.ON_DUTY
        booking.driver.status = DriverStatus.ON_DUTY
        db_session.commit()

        cancelled = booking_service.cancel_booking(booking.id, employee)

        assert cancelled.status == BookingStatus.REJECTED
        assert cancelled.cancelled_by == employee.id
        assert cancelled.cancelled_at is not None
        assert cancelled.vehicle.status == VehicleStatus.AVAILABLE
        assert cancelled.driver.status == DriverStatus.AVAILABLE
        assert AuditLog.query.filter_by(action='cancel_booking', entity_id=booking.id).count() == 1

    @pytest.mark.parametrize('status', [BookingStatus.PENDING, BookingStatus.APPROVED])
    def test_cancel_other_states(self, booking_service, approver1, approver2, employee, status):
        booking = make_booking(approver1, approver2, status=status, requester=employee)
        assert booking_service.cancel_booking(booking.id, employee).status == BookingStatus.REJECTED

    def test_admin_can_cancel_any_booking(self, booking_service, pending_booking, admin_user):
        cancelled = booking_service.cancel_booking(pending_booking.id, admin_user)
        assert cancelled.cancelled_by == admin_user.id

    def test_other_user_cannot_cancel(self, booking_service, pending_booking):
        stranger = UserFactory()
        with pytest.raises(UnauthorizedError):
            booking_service.cancel_booking(pending_booking.id, stranger)

        assert db.session.get(Booking, pending_booking.id).status == BookingStatus.PENDING
        assert AuditLog.query.filter_by(action='cancellation_attempt', success=False).count() == 1

    def test_cancel_twice_conflicts(self, booking_service, pending_booking, employee):
        booking_service.cancel_booking(pending_booking.id, employee)
        with pytest.raises(ConflictError):
            booking_service.cancel_booking(pending_booking.id, employee)

    def test_cancel_unknown_booking(self, booking_service, employee):
        with pytest.raises(NotFoundError):
            booking_service.cancel_booking(12345, employee)

    def test_service_vehicle_is_not_released(self, db_session, booking_service, pending_booking, employee):
        pending_booking.vehicle.status = VehicleStatus.SERVICE
        db_session.commit()

        cancelled = booking_service.cancel_booking(pending_booking.id, employee)
        assert cancelled.vehicle.status == VehicleStatus.SERVICE

    def test_resource_still_on_another_active_booking_keeps_status(self, db_session, approver1,
                                                                   approver2, employee):
        vehicle = VehicleFactory(status=VehicleStatus.ON_DUTY)
        active = make_booking(approver1, approver2, status=BookingStatus.APPROVED,
                              level1=ApprovalStatus.APPROVED, level2=ApprovalStatus.APPROVED,
                              vehicle=vehicle, start_date=date(2025, 5, 18), end_date=date(2025, 5, 25))
        later = make_booking(approver1, approver2, status=BookingStatus.APPROVED_1,
                             level1=ApprovalStatus.APPROVED, vehicle=vehicle, requester=employee,
                             start_date=date(2025, 6, 1), end_date=date(2025, 6, 2))

        service = BookingService(clock=lambda: TODAY)
        service.cancel_booking(later.id, employee)

        assert db.session.get(type(vehicle), vehicle.id).status == VehicleStatus.ON_DUTY
        assert active.status == BookingStatus.APPROVED

    def test_approvals_are_left_pending(self, booking_service, pending_booking, employee):
        booking_service.cancel_booking(pending_booking.id, employee)
        booking = db.session.get(Booking, pending_booking.id)
        assert all(a.status == ApprovalStatus.PENDING for a in booking.approvals)


@pytest.mark.unit
class TestBookingQueries:

    def test_get_booking(self, booking_service, pending_booking):
        assert booking_service.get_booking(pending_booking.id).id == pending_booking.id

    def test_get_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundError):
            booking_service.get_booking(404)

    def test_list_filters(self, db_session, booking_service, approver1, approver2, employee):
        mine = make_booking(approver1, approver2, requester=employee, purpose='Warehouse audit',
                            start_date=date(2025, 6, 10), end_date=date(2025, 6, 12))
        make_booking(approver1, approver2, purpose='Airport pickup', status=BookingStatus.REJECTED,
                     start_date=date(2025, 7, 1), end_date=date(2025, 7, 2))

        assert [b.id for b in booking_service.list_bookings(search='warehouse').items] == [mine.id]
        assert [b.id for b in booking_service.list_bookings(requester_id=employee.id).items] == [mine.id]
        assert booking_service.list_bookings(status='rejected').total == 1
        assert booking_service.list_bookings(date_from='2025-06-15').total == 1
        assert booking_service.list_bookings(date_to=date(2025, 6, 30)).total == 1
        assert booking_service.list_bookings().total == 2

    def test_search_by_plate_and_driver(self, booking_service, pending_booking, vehicle, driver):
        assert booking_service.list_bookings(search=vehicle.license_plate).total == 1
        assert booking_service.list_bookings(search=driver.name).total == 1

    def test_list_is_paginated_newest_first(self, approver1, approver2, booking_service):
        bookings = [make_booking(approver1, approver2) for _ in range(3)]

        page = booking_service.list_bookings(page=1, per_page=2)

        assert page.total == 3
        assert page.pages == 2
        assert [b.id for b in page.items] == [bookings[2].id, bookings[1].id]

    def test_invalid_status_filter(self, booking_service):
        with pytest.raises(ValidationError):
            booking_service.list_bookings(status='archived')

    def test_to_dict(self, booking_service, pending_booking):
        data = booking_service.to_dict(pending_booking)

        assert data['status'] == 'pending'
        assert data['approval_status'] == 'pending'
        assert data['start_date'] == '2025-06-01'
        assert [a['level'] for a in data['approvals']] == [1, 2]
