"""
Resource Service

Resource directory for vehicles and drivers: availability queries, status
changes and the row locks that serialize booking creation per resource.
"""

from typing import Optional, List, Union
import logging
from datetime import date
from models import (db, Vehicle, Driver, Booking, BookingStatus, VehicleStatus,
                    DriverStatus, ResourceKind, User)
from .audit_service import AuditService
from .errors import NotFoundError, ValidationError, UnauthorizedError
from .transaction_helper import TransactionHelper
from timezone_utils import get_local_date

logger = logging.getLogger(__name__)

_MODELS = {
    ResourceKind.VEHICLE: Vehicle,
    ResourceKind.DRIVER: Driver,
}

_STATUS_ENUMS = {
    ResourceKind.VEHICLE: VehicleStatus,
    ResourceKind.DRIVER: DriverStatus,
}


def parse_kind(kind: Union[str, ResourceKind]) -> ResourceKind:
    """Accept 'vehicle'/'driver' (or plural) as well as ResourceKind members"""
    if isinstance(kind, ResourceKind):
        return kind
    try:
        return ResourceKind(str(kind).lower().rstrip('s'))
    except ValueError:
        raise ValidationError(f"Unknown resource kind: {kind}")


class ResourceService:
    """Service class for vehicle and driver availability"""

    def __init__(self, audit_service: Optional[AuditService] = None):
        self.audit_service = audit_service or AuditService()

    def get_available(self, kind: Union[str, ResourceKind]) -> List:
        """
        List resources of a kind whose status is available.

        Args:
            kind: 'vehicle' or 'driver'

        Returns:
            List of Vehicle or Driver rows
        """
        kind = parse_kind(kind)
        model = _MODELS[kind]
        available = _STATUS_ENUMS[kind].AVAILABLE
        order_by = model.license_plate if kind == ResourceKind.VEHICLE else model.name
        return model.query.filter(model.status == available).order_by(order_by).all()

    def get(self, kind: Union[str, ResourceKind], resource_id: int):
        kind = parse_kind(kind)
        resource = db.session.get(_MODELS[kind], resource_id)
        if not resource:
            raise NotFoundError(f"{kind.value.capitalize()} not found")
        return resource

    def set_status(self, kind: Union[str, ResourceKind], resource_id: int,
                   status: str, acting_user: Optional[User] = None):
        """
        Set a resource's status directly (maintenance, manual corrections).

        Args:
            kind: 'vehicle' or 'driver'
            resource_id: ID of the vehicle or driver
            status: New status value, e.g. 'service'
            acting_user: Admin performing the change (None for system jobs)

        Returns:
            The updated resource
        """
        kind = parse_kind(kind)
        if acting_user is not None and not acting_user.is_admin:
            raise UnauthorizedError("Only administrators can change resource status")

        try:
            new_status = _STATUS_ENUMS[kind](status)
        except ValueError:
            allowed = ', '.join(s.value for s in _STATUS_ENUMS[kind])
            raise ValidationError(f"Invalid {kind.value} status '{status}'. Allowed: {allowed}")

        with TransactionHelper.atomic(f'update_{kind.value}_status'):
            resource = self.get(kind, resource_id)
            old_status = resource.status
            resource.status = new_status

        self.audit_service.record(
            action='status_update',
            entity_type=kind.value,
            entity_id=resource_id,
            description=f"Changed {kind.value} status from {old_status.value} to {new_status.value}",
            details={'old_status': old_status.value, 'new_status': new_status.value},
            user_id=acting_user.id if acting_user else None
        )
        logger.info(f"{kind.value.capitalize()} {resource_id} status: {old_status.value} -> {new_status.value}",
                    extra={'resource_kind': kind.value, 'resource_id': resource_id})
        return resource

    def lock_for_booking(self, kind: ResourceKind, resource_id: int):
        """
        Lock a resource row for the rest of the current transaction.

        SELECT ... FOR UPDATE on databases that support it; bumping
        booking_version makes the write lock explicit on SQLite as well.
        Callers must lock the vehicle before the driver.
        """
        model = _MODELS[kind]
        resource = db.session.get(model, resource_id, with_for_update=True)
        if not resource:
            return None
        resource.booking_version = (resource.booking_version or 0) + 1
        db.session.flush()
        return resource

    def has_active_booking(self, kind: ResourceKind, resource_id: int,
                           on_date: Optional[date] = None) -> bool:
        on_date = on_date or get_local_date()
        column = Booking.vehicle_id if kind == ResourceKind.VEHICLE else Booking.driver_id
        return db.session.query(
            Booking.active_at(on_date).filter(column == resource_id).exists()
        ).scalar()

    def release(self, kind: Union[str, ResourceKind], resource, on_date: Optional[date] = None) -> bool:
        """
        Return a resource to available inside the caller's transaction.

        A vehicle under service, or a resource still covered by another
        active approved booking, keeps its status.

        Args:
            kind: 'vehicle' or 'driver'
            resource: Vehicle/Driver row or its id

        Returns:
            bool: True if the status was changed to available
        """
        kind = parse_kind(kind)
        if isinstance(resource, int):
            resource = db.session.get(_MODELS[kind], resource)
        if resource is None:
            return False
        if kind == ResourceKind.VEHICLE and resource.status == VehicleStatus.SERVICE:
            return False
        if self.has_active_booking(kind, resource.id, on_date):
            return False
        resource.status = _STATUS_ENUMS[kind].AVAILABLE
        return True
