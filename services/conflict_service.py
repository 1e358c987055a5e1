"""
Booking conflict detection.

A resource is double-booked when another non-rejected booking for it
overlaps the requested date range, bounds inclusive.
"""

from typing import Optional, List, Union
from datetime import date
import logging
from models import db, Booking, BookingStatus, ResourceKind
from .resource_service import parse_kind

logger = logging.getLogger(__name__)


class ConflictService:
    """Overlap checks for vehicles and drivers. Takes no locks."""

    @staticmethod
    def overlapping_bookings(resource_id: int, resource_kind: Union[str, ResourceKind],
                             start_date: date, end_date: date,
                             exclude_booking_id: Optional[int] = None):
        """Query of non-rejected bookings for the resource overlapping [start_date, end_date]"""
        kind = parse_kind(resource_kind)
        column = Booking.vehicle_id if kind == ResourceKind.VEHICLE else Booking.driver_id

        query = Booking.query.filter(
            column == resource_id,
            Booking.status != BookingStatus.REJECTED,
            Booking.start_date <= end_date,
            Booking.end_date >= start_date
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query

    def has_conflict(self, resource_id: int, resource_kind: Union[str, ResourceKind],
                     start_date: date, end_date: date,
                     exclude_booking_id: Optional[int] = None) -> bool:
        query = self.overlapping_bookings(resource_id, resource_kind, start_date,
                                          end_date, exclude_booking_id)
        return db.session.query(query.exists()).scalar()

    def find_conflicts(self, vehicle_id: int, driver_id: int, start_date: date,
                       end_date: date, exclude_booking_id: Optional[int] = None) -> List[str]:
        """
        Check vehicle and driver independently.

        Returns:
            List of colliding resource kinds, e.g. ['vehicle'] or ['vehicle', 'driver']
        """
        collided = []
        if self.has_conflict(vehicle_id, ResourceKind.VEHICLE, start_date, end_date, exclude_booking_id):
            collided.append(ResourceKind.VEHICLE.value)
        if self.has_conflict(driver_id, ResourceKind.DRIVER, start_date, end_date, exclude_booking_id):
            collided.append(ResourceKind.DRIVER.value)

        if collided:
            logger.info(f"Booking conflict for {', '.join(collided)} between {start_date} and {end_date}")
        return collided
