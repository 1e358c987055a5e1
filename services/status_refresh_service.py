"""
Status Refresh Service

Recomputes vehicle and driver statuses from bookings: everything goes back
to available, then the resources of every approved booking covering today
are put on duty. Vehicles under service are left alone.
"""

from typing import Optional, Dict, Union
import logging
from datetime import date, datetime
from sqlalchemy import update
from models import db, Booking, Vehicle, Driver, VehicleStatus, DriverStatus
from .audit_service import AuditService
from .transaction_helper import TransactionHelper
from timezone_utils import get_local_date

logger = logging.getLogger(__name__)

CHUNK_SIZE = 100


class StatusRefreshService:
    """Periodic reconciliation of resource status with active bookings"""

    def __init__(self, audit_service: Optional[AuditService] = None):
        self.audit_service = audit_service or AuditService()

    def refresh(self, now: Union[date, datetime, None] = None) -> Dict[str, int]:
        """
        Reset and re-apply on-duty statuses in one transaction.

        Args:
            now: Reference date (defaults to today in the application timezone)

        Returns:
            dict: counts of reset and on-duty resources and active bookings
        """
        if now is None:
            today = get_local_date()
        elif isinstance(now, datetime):
            today = now.date()
        else:
            today = now

        counts = {
            'vehicles_reset': 0,
            'drivers_reset': 0,
            'active_bookings': 0,
            'vehicles_on_duty': 0,
            'drivers_on_duty': 0,
        }

        with TransactionHelper.atomic('refresh_resource_status'):
            counts['vehicles_reset'] = db.session.execute(
                update(Vehicle)
                .where(Vehicle.status != VehicleStatus.SERVICE)
                .values(status=VehicleStatus.AVAILABLE)
            ).rowcount
            counts['drivers_reset'] = db.session.execute(
                update(Driver).values(status=DriverStatus.AVAILABLE)
            ).rowcount

            active = Booking.active_at(today).order_by(Booking.id)
            offset = 0
            while True:
                chunk = active.offset(offset).limit(CHUNK_SIZE).all()
                if not chunk:
                    break
                counts['active_bookings'] += len(chunk)

                vehicle_ids = sorted({b.vehicle_id for b in chunk})
                driver_ids = sorted({b.driver_id for b in chunk})
                counts['vehicles_on_duty'] += db.session.execute(
                    update(Vehicle)
                    .where(Vehicle.id.in_(vehicle_ids), Vehicle.status == VehicleStatus.AVAILABLE)
                    .values(status=VehicleStatus.ON_DUTY)
                ).rowcount
                counts['drivers_on_duty'] += db.session.execute(
                    update(Driver)
                    .where(Driver.id.in_(driver_ids), Driver.status == DriverStatus.AVAILABLE)
                    .values(status=DriverStatus.ON_DUTY)
                ).rowcount

                offset += CHUNK_SIZE

        self.audit_service.record(
            action='refresh_status',
            entity_type='system',
            description=f"Resource statuses refreshed for {today.isoformat()}",
            details=counts
        )
        logger.info(f"Status refresh for {today}: {counts['active_bookings']} active bookings, "
                    f"{counts['vehicles_on_duty']} vehicles and {counts['drivers_on_duty']} drivers on duty")
        return counts
