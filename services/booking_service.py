"""
Booking Service

Handles booking requests: creation with conflict detection and approval
chain setup, cancellation with resource release, and booking queries.
"""

from typing import Optional, Dict, Any, List, Callable, Union
import logging
from datetime import date, datetime
from sqlalchemy import or_
from models import (db, Booking, BookingStatus, Approval, ApprovalStatus, Vehicle,
                    Driver, User, ResourceKind, LEVEL_ROLES)
from .audit_service import AuditService
from .notification_service import NotificationService
from .resource_service import ResourceService
from .conflict_service import ConflictService
from .booking_status import apply_transition, approval_status
from .errors import (WorkflowError, NotFoundError, UnauthorizedError, ConflictError,
                     ValidationError)
from .transaction_helper import TransactionHelper
from timezone_utils import get_local_date, get_local_time_naive

logger = logging.getLogger(__name__)

MAX_PURPOSE_LENGTH = 500


def parse_date(value: Union[str, date, None], field: str) -> Optional[date]:
    """Accept a date or an ISO 'YYYY-MM-DD' string"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"Invalid date for {field}: {value}",
                              {field: ['Use the YYYY-MM-DD format']})


class BookingService:
    """Service class for booking lifecycle operations"""

    def __init__(self, clock: Optional[Callable[[], date]] = None,
                 audit_service: Optional[AuditService] = None,
                 notification_service: Optional[NotificationService] = None,
                 resource_service: Optional[ResourceService] = None,
                 conflict_service: Optional[ConflictService] = None):
        self.clock = clock or get_local_date
        self.audit_service = audit_service or AuditService()
        self.notification_service = notification_service or NotificationService()
        self.resource_service = resource_service or ResourceService(self.audit_service)
        self.conflict_service = conflict_service or ConflictService()

    def _validate_request(self, vehicle_id, driver_id, start_date, end_date, purpose,
                          approver_level1_id, approver_level2_id) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}
        today = self.clock()

        if not vehicle_id:
            errors.setdefault('vehicle_id', []).append('Vehicle is required')
        if not driver_id:
            errors.setdefault('driver_id', []).append('Driver is required')

        if start_date is None:
            errors.setdefault('start_date', []).append('Start date is required')
        elif start_date <= today:
            errors.setdefault('start_date', []).append('Start date must be after today')

        if end_date is None:
            errors.setdefault('end_date', []).append('End date is required')
        elif start_date is not None and end_date < start_date:
            errors.setdefault('end_date', []).append('End date must be on or after the start date')

        purpose = (purpose or '').strip()
        if not purpose:
            errors.setdefault('purpose', []).append('Purpose is required')
        elif len(purpose) > MAX_PURPOSE_LENGTH:
            errors.setdefault('purpose', []).append(
                f'Purpose must be at most {MAX_PURPOSE_LENGTH} characters')

        for level, approver_id in ((1, approver_level1_id), (2, approver_level2_id)):
            field = f'approver_level{level}_id'
            if not approver_id:
                errors.setdefault(field, []).append(f'Level {level} approver is required')
                continue
            approver = db.session.get(User, approver_id)
            if not approver or not approver.is_active:
                errors.setdefault(field, []).append(f'Level {level} approver not found')
            elif approver.role != LEVEL_ROLES[level]:
                errors.setdefault(field, []).append(
                    f'{approver.display_name} cannot approve at level {level}')

        if approver_level1_id and approver_level1_id == approver_level2_id:
            errors.setdefault('approver_level2_id', []).append(
                'Level 1 and level 2 approvers must be different users')

        return errors

    def create_booking(self, requester: User, vehicle_id: int, driver_id: int,
                       start_date: Union[str, date], end_date: Union[str, date],
                       purpose: str, approver_level1_id: int,
                       approver_level2_id: int) -> Booking:
        """
        Create a pending booking with its two pending approvals.

        The vehicle and driver rows are locked (vehicle first) before the
        conflict check, so concurrent requests for the same resource are
        serialized and the later one sees the earlier booking.

        Args:
            requester: User asking for the booking
            vehicle_id: Requested vehicle
            driver_id: Requested driver
            start_date: First day of the booking, must be after today
            end_date: Last day of the booking (inclusive)
            purpose: Free text, at most 500 characters
            approver_level1_id: User holding the level 1 approver role
            approver_level2_id: User holding the level 2 approver role

        Returns:
            The new Booking

        Raises:
            ValidationError: Bad input or unknown vehicle/driver/approver
            ConflictError: Vehicle and/or driver already booked in the range
        """
        start_date = parse_date(start_date, 'start_date')
        end_date = parse_date(end_date, 'end_date')

        errors = self._validate_request(vehicle_id, driver_id, start_date, end_date, purpose,
                                        approver_level1_id, approver_level2_id)
        if errors:
            raise ValidationError('Booking request is invalid', errors)

        try:
            with TransactionHelper.atomic('create_booking'):
                vehicle = self.resource_service.lock_for_booking(ResourceKind.VEHICLE, vehicle_id)
                if not vehicle:
                    raise ValidationError('Vehicle not found', {'vehicle_id': ['Vehicle not found']})
                driver = self.resource_service.lock_for_booking(ResourceKind.DRIVER, driver_id)
                if not driver:
                    raise ValidationError('Driver not found', {'driver_id': ['Driver not found']})

                collided = self.conflict_service.find_conflicts(vehicle_id, driver_id,
                                                                start_date, end_date)
                if collided:
                    raise ConflictError(
                        f"{' and '.join(k.capitalize() for k in collided)} already booked for the selected dates",
                        resources=collided
                    )

                booking = Booking()
                booking.user_id = requester.id
                booking.vehicle_id = vehicle_id
                booking.driver_id = driver_id
                booking.start_date = start_date
                booking.end_date = end_date
                booking.purpose = purpose.strip()
                booking.status = BookingStatus.PENDING

                for level, approver_id in ((1, approver_level1_id), (2, approver_level2_id)):
                    approval = Approval()
                    approval.level = level
                    approval.approver_id = approver_id
                    approval.status = ApprovalStatus.PENDING
                    booking.approvals.append(approval)

                db.session.add(booking)

        except ConflictError as e:
            self.audit_service.record(
                action='booking_conflict',
                entity_type='booking',
                description=e.message,
                details={'vehicle_id': vehicle_id, 'driver_id': driver_id,
                         'start_date': start_date, 'end_date': end_date,
                         'resources': e.resources},
                user_id=requester.id,
                success=False,
                error_message=e.message
            )
            self.notification_service.notify(e.message, 'error')
            raise

        self.audit_service.record(
            action='create_booking',
            entity_type='booking',
            entity_id=booking.id,
            description=f"Booking requested for {vehicle.license_plate} with {driver.name}",
            details={
                'vehicle_id': vehicle_id,
                'driver_id': driver_id,
                'start_date': start_date,
                'end_date': end_date,
                'approver_level1_id': approver_level1_id,
                'approver_level2_id': approver_level2_id
            },
            user_id=requester.id
        )
        self.notification_service.notify('Booking request submitted successfully!', 'success')
        logger.info(f"Booking {booking.id} created by user {requester.id} "
                    f"for vehicle {vehicle_id} / driver {driver_id} ({start_date} to {end_date})",
                    extra={'booking_id': booking.id})
        return booking

    def cancel_booking(self, booking_id: int, acting_user: User) -> Booking:
        """
        Cancel a booking on behalf of its requester or an administrator.

        The booking becomes rejected and its vehicle and driver are released
        in the same transaction.

        Raises:
            NotFoundError: Unknown booking
            UnauthorizedError: Acting user is neither requester nor admin
            ConflictError: Booking is already rejected
        """
        try:
            with TransactionHelper.atomic('cancel_booking'):
                booking = db.session.get(Booking, booking_id)
                if not booking:
                    raise NotFoundError('Booking not found')
                if booking.user_id != acting_user.id and not acting_user.is_admin:
                    raise UnauthorizedError('You can only cancel your own bookings')
                if booking.status == BookingStatus.REJECTED:
                    raise ConflictError('Booking is already rejected or cancelled')

                previous_status = booking.status
                apply_transition(booking, BookingStatus.REJECTED)
                booking.cancelled_at = get_local_time_naive()
                booking.cancelled_by = acting_user.id

                today = self.clock()
                released = []
                if self.resource_service.release(ResourceKind.VEHICLE, booking.vehicle, today):
                    released.append(ResourceKind.VEHICLE.value)
                if self.resource_service.release(ResourceKind.DRIVER, booking.driver, today):
                    released.append(ResourceKind.DRIVER.value)

        except WorkflowError as e:
            if not isinstance(e, NotFoundError):
                self.audit_service.record(
                    action='cancellation_attempt',
                    entity_type='booking',
                    entity_id=booking_id,
                    user_id=acting_user.id,
                    success=False,
                    error_message=e.message
                )
            self.notification_service.notify(e.message, 'error')
            raise

        self.audit_service.record(
            action='cancel_booking',
            entity_type='booking',
            entity_id=booking.id,
            description=f"Booking cancelled (was {previous_status.value})",
            details={'previous_status': previous_status.value, 'released': released},
            user_id=acting_user.id
        )
        self.notification_service.notify('Booking cancelled successfully!', 'success')
        logger.info(f"Booking {booking.id} cancelled by user {acting_user.id}, released: {released}",
                    extra={'booking_id': booking.id})
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFoundError('Booking not found')
        return booking

    def list_bookings(self, search: Optional[str] = None, status: Optional[str] = None,
                      date_from: Union[str, date, None] = None,
                      date_to: Union[str, date, None] = None,
                      requester_id: Optional[int] = None,
                      page: int = 1, per_page: int = 10):
        """
        Get bookings with search, status and date-range filters.

        Args:
            search: Substring of purpose, license plate or driver name
            status: Booking status value, e.g. 'approved_1'
            date_from: Only bookings starting on or after this date
            date_to: Only bookings ending on or before this date
            requester_id: Only bookings requested by this user
            page: 1-based page number
            per_page: Page size

        Returns:
            Flask-SQLAlchemy Pagination of Booking rows, newest first
        """
        query = Booking.query.join(Vehicle, Booking.vehicle_id == Vehicle.id) \
                             .join(Driver, Booking.driver_id == Driver.id)

        if search:
            pattern = f'%{search}%'
            query = query.filter(or_(
                Booking.purpose.ilike(pattern),
                Vehicle.license_plate.ilike(pattern),
                Driver.name.ilike(pattern)
            ))

        if status:
            try:
                query = query.filter(Booking.status == BookingStatus(status))
            except ValueError:
                allowed = ', '.join(s.value for s in BookingStatus)
                raise ValidationError(f"Invalid status filter '{status}'. Allowed: {allowed}",
                                      {'status': [f'Must be one of: {allowed}']})

        date_from = parse_date(date_from, 'date_from')
        date_to = parse_date(date_to, 'date_to')
        if date_from:
            query = query.filter(Booking.start_date >= date_from)
        if date_to:
            query = query.filter(Booking.end_date <= date_to)

        if requester_id:
            query = query.filter(Booking.user_id == requester_id)

        return query.order_by(Booking.created_at.desc(), Booking.id.desc()) \
                    .paginate(page=page, per_page=per_page, error_out=False)

    def to_dict(self, booking: Booking) -> Dict[str, Any]:
        """Serialize a booking with its approvals for the JSON API"""
        return {
            'id': booking.id,
            'requester': {'id': booking.requester.id, 'name': booking.requester.display_name},
            'vehicle': {'id': booking.vehicle.id, 'license_plate': booking.vehicle.license_plate},
            'driver': {'id': booking.driver.id, 'name': booking.driver.name},
            'start_date': booking.start_date.isoformat(),
            'end_date': booking.end_date.isoformat(),
            'purpose': booking.purpose,
            'status': booking.status.value,
            'approval_status': approval_status(booking),
            'cancelled': booking.is_cancelled,
            'cancelled_at': booking.cancelled_at.isoformat() if booking.cancelled_at else None,
            'cancelled_by': booking.cancelled_by,
            'created_at': booking.created_at.isoformat() if booking.created_at else None,
            'approvals': [
                {
                    'id': a.id,
                    'level': a.level,
                    'approver_id': a.approver_id,
                    'status': a.status.value,
                    'notes': a.notes,
                    'acted_by': a.acted_by,
                    'acted_at': a.acted_at.isoformat() if a.acted_at else None,
                }
                for a in booking.approvals
            ],
        }
