"""
Booking status machine and the read-side approval projection.
"""

from typing import Dict, Set
from models import Booking, BookingStatus, ApprovalStatus
from .errors import ConflictError

# approved -> rejected only happens through cancellation
_ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.APPROVED_1, BookingStatus.REJECTED},
    BookingStatus.APPROVED_1: {BookingStatus.APPROVED, BookingStatus.REJECTED},
    BookingStatus.APPROVED: {BookingStatus.REJECTED},
    BookingStatus.REJECTED: set(),
}

# Values returned by approval_status()
PENDING = 'pending'
APPROVED_LEVEL1 = 'approved_level1'
FULLY_APPROVED = 'fully_approved'
REJECTED = 'rejected'


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, set())


def validate_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise ConflictError if current -> target is not an allowed move."""
    if not can_transition(current, target):
        raise ConflictError(
            f"Invalid booking status transition: {current.value} -> {target.value}"
        )


def apply_transition(booking: Booking, target: BookingStatus) -> None:
    validate_transition(booking.status, target)
    booking.status = target


def approval_status(booking: Booking) -> str:
    """
    Summarize a booking's approvals for display. Not stored.

    A level-2 approval wins outright; an approved level 1 without a level-2
    row counts as fully approved for single-level bookings.
    """
    level1 = booking.get_approval(1)
    level2 = booking.get_approval(2)

    if level2 is not None and level2.status == ApprovalStatus.APPROVED:
        return FULLY_APPROVED
    if level1 is not None and level1.status == ApprovalStatus.APPROVED:
        if level2 is not None and level2.status != ApprovalStatus.REJECTED:
            return APPROVED_LEVEL1
        if level2 is None:
            return FULLY_APPROVED
    if any(a.status == ApprovalStatus.REJECTED for a in booking.approvals):
        return REJECTED
    return PENDING
