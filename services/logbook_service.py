"""
Logbook Service

Fuel, service and usage records for vehicles and completed bookings.
"""

from typing import Optional, List, Union
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from models import db, Vehicle, Booking, BookingStatus, FuelLog, ServiceLog, UsageLog, User
from .audit_service import AuditService
from .booking_service import parse_date
from .errors import NotFoundError, ConflictError, ValidationError
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)


def _parse_amount(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value}", {field: ['Must be a number']})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", {field: ['Must be at least 0']})
    return amount


class LogbookService:
    """Service class for vehicle logbooks"""

    def __init__(self, audit_service: Optional[AuditService] = None):
        self.audit_service = audit_service or AuditService()

    def _get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = db.session.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFoundError('Vehicle not found')
        return vehicle

    def add_fuel_log(self, vehicle_id: int, amount, log_date: Union[str, date],
                     notes: Optional[str] = None, acting_user: Optional[User] = None) -> FuelLog:
        """
        Record fuel added to a vehicle.

        Args:
            vehicle_id: Vehicle that was refuelled
            amount: Liters, must be >= 0
            log_date: Date of refuelling
            notes: Optional free text
            acting_user: User recording the entry
        """
        amount = _parse_amount(amount, 'amount')
        log_date = parse_date(log_date, 'log_date')
        if log_date is None:
            raise ValidationError('Log date is required', {'log_date': ['This field is required']})

        with TransactionHelper.atomic('add_fuel_log'):
            vehicle = self._get_vehicle(vehicle_id)
            fuel_log = FuelLog()
            fuel_log.vehicle_id = vehicle.id
            fuel_log.amount = amount
            fuel_log.log_date = log_date
            fuel_log.notes = notes
            db.session.add(fuel_log)

        self.audit_service.record(
            action='create_fuel_log',
            entity_type='fuel_log',
            entity_id=fuel_log.id,
            description=f"Fuel log of {amount} L for vehicle {vehicle_id}",
            details={'vehicle_id': vehicle_id, 'amount': amount, 'log_date': log_date},
            user_id=acting_user.id if acting_user else None
        )
        logger.info(f"Fuel log {fuel_log.id} added for vehicle {vehicle_id}")
        return fuel_log

    def add_service_log(self, vehicle_id: int, service_date: Union[str, date],
                        service_type: str, cost, description: Optional[str] = None,
                        acting_user: Optional[User] = None) -> ServiceLog:
        cost = _parse_amount(cost, 'cost')
        service_date = parse_date(service_date, 'service_date')
        if service_date is None:
            raise ValidationError('Service date is required', {'service_date': ['This field is required']})
        if not service_type or not service_type.strip():
            raise ValidationError('Service type is required', {'service_type': ['This field is required']})

        with TransactionHelper.atomic('add_service_log'):
            vehicle = self._get_vehicle(vehicle_id)
            service_log = ServiceLog()
            service_log.vehicle_id = vehicle.id
            service_log.service_date = service_date
            service_log.service_type = service_type.strip()
            service_log.description = description
            service_log.cost = cost
            db.session.add(service_log)

        self.audit_service.record(
            action='create_service_log',
            entity_type='service_log',
            entity_id=service_log.id,
            description=f"{service_log.service_type} service for vehicle {vehicle_id}",
            details={'vehicle_id': vehicle_id, 'cost': cost, 'service_date': service_date},
            user_id=acting_user.id if acting_user else None
        )
        logger.info(f"Service log {service_log.id} added for vehicle {vehicle_id}")
        return service_log

    def record_usage(self, booking_id: int, start_km: int, end_km: int,
                     fuel_used=None, notes: Optional[str] = None,
                     acting_user: Optional[User] = None) -> UsageLog:
        """
        Record odometer readings for an approved booking.

        When fuel_used is not given it is estimated from the distance and
        the vehicle's fuel consumption.

        Raises:
            NotFoundError: Unknown booking
            ValidationError: Bad odometer readings
            ConflictError: Booking not approved or already logged
        """
        try:
            start_km = int(start_km)
            end_km = int(end_km)
        except (TypeError, ValueError):
            raise ValidationError('Odometer readings must be whole numbers',
                                  {'start_km': ['Must be an integer'], 'end_km': ['Must be an integer']})
        if start_km < 0:
            raise ValidationError('Start km cannot be negative', {'start_km': ['Must be at least 0']})
        if end_km < start_km:
            raise ValidationError('End km must be greater than or equal to start km',
                                  {'end_km': ['Must be greater than or equal to start km']})

        with TransactionHelper.atomic('record_usage'):
            booking = db.session.get(Booking, booking_id)
            if not booking:
                raise NotFoundError('Booking not found')
            if booking.status != BookingStatus.APPROVED:
                raise ConflictError('Usage can only be recorded for approved bookings')
            if booking.usage_log is not None:
                raise ConflictError('Usage has already been recorded for this booking')

            if fuel_used is None or fuel_used == '':
                consumption = booking.vehicle.fuel_consumption or 0
                fuel_used = round(Decimal(end_km - start_km) * Decimal(str(consumption)), 2)
            else:
                fuel_used = _parse_amount(fuel_used, 'fuel_used')

            usage = UsageLog()
            usage.booking_id = booking.id
            usage.start_km = start_km
            usage.end_km = end_km
            usage.fuel_used = fuel_used
            usage.notes = notes
            db.session.add(usage)

        self.audit_service.record(
            action='create_usage_log',
            entity_type='usage_log',
            entity_id=usage.id,
            description=f"Usage of {end_km - start_km} km recorded for booking {booking_id}",
            details={'booking_id': booking_id, 'start_km': start_km, 'end_km': end_km,
                     'fuel_used': fuel_used},
            user_id=acting_user.id if acting_user else None
        )
        logger.info(f"Usage log {usage.id} recorded for booking {booking_id}")
        return usage

    def list_fuel_logs(self, vehicle_id: int) -> List[FuelLog]:
        self._get_vehicle(vehicle_id)
        return FuelLog.query.filter_by(vehicle_id=vehicle_id) \
                            .order_by(FuelLog.log_date.desc(), FuelLog.id.desc()).all()

    def list_service_logs(self, vehicle_id: int) -> List[ServiceLog]:
        self._get_vehicle(vehicle_id)
        return ServiceLog.query.filter_by(vehicle_id=vehicle_id) \
                               .order_by(ServiceLog.service_date.desc(), ServiceLog.id.desc()).all()

    def list_usage_logs(self, vehicle_id: int) -> List[UsageLog]:
        self._get_vehicle(vehicle_id)
        return UsageLog.query.join(Booking, UsageLog.booking_id == Booking.id) \
                             .filter(Booking.vehicle_id == vehicle_id) \
                             .order_by(Booking.start_date.desc(), UsageLog.id.desc()).all()
