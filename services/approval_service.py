"""
Approval Service

Two-level approval workflow for bookings. Level 1 moves a booking to
approved_1, level 2 completes it; a rejection at either level rejects the
booking. Every decision, including refused attempts, is audited.
"""

from typing import Optional, Dict, Any
import logging
from models import db, Approval, ApprovalStatus, Booking, BookingStatus, User, LEVEL_ROLES
from .audit_service import AuditService
from .notification_service import NotificationService
from .booking_status import apply_transition
from .errors import (WorkflowError, NotFoundError, UnauthorizedError, ConflictError,
                     PreconditionFailedError, InternalError)
from .transaction_helper import TransactionHelper
from timezone_utils import get_local_time_naive

logger = logging.getLogger(__name__)

# Audit action names per decision
_ACTIONS = {
    'approve': {
        'success': 'approve',
        'unauthorized': 'unauthorized_approval_attempt',
        'refused': 'approval_attempt',
        'error': 'approval_error',
    },
    'reject': {
        'success': 'reject',
        'unauthorized': 'unauthorized_rejection_attempt',
        'refused': 'rejection_attempt',
        'error': 'rejection_error',
    },
}


class ApprovalService:
    """Service class for the booking approval chain"""

    def __init__(self, audit_service: Optional[AuditService] = None,
                 notification_service: Optional[NotificationService] = None):
        self.audit_service = audit_service or AuditService()
        self.notification_service = notification_service or NotificationService()

    def approve(self, approval_id: int, acting_user: User, notes: Optional[str] = None) -> Approval:
        """
        Approve one level of a booking.

        Args:
            approval_id: ID of the approval to resolve
            acting_user: User holding the role for the approval's level
            notes: Optional approver comment

        Returns:
            The resolved Approval

        Raises:
            NotFoundError: Unknown approval
            UnauthorizedError: User lacks the level's approver role
            ConflictError: Approval already resolved or booking already rejected
            PreconditionFailedError: Level 2 acting before level 1 approved
        """
        return self._decide('approve', approval_id, acting_user, notes)

    def reject(self, approval_id: int, acting_user: User, notes: Optional[str] = None) -> Approval:
        """
        Reject one level of a booking. The booking is rejected regardless of
        the other level's state.

        Raises:
            NotFoundError, UnauthorizedError, ConflictError, PreconditionFailedError
        """
        return self._decide('reject', approval_id, acting_user, notes)

    def _decide(self, decision: str, approval_id: int, acting_user: User,
                notes: Optional[str]) -> Approval:
        actions = _ACTIONS[decision]
        try:
            with TransactionHelper.atomic(decision):
                approval = self._load_for_decision(approval_id, acting_user, decision)
                booking = approval.booking
                old_booking_status = booking.status

                if decision == 'approve':
                    self._apply_approval(approval, booking)
                else:
                    self._apply_rejection(approval, booking)

                approval.notes = notes
                approval.acted_by = acting_user.id
                approval.acted_at = get_local_time_naive()
                db.session.flush()

                result = {
                    'booking_id': booking.id,
                    'level': approval.level,
                    'old_booking_status': old_booking_status.value,
                    'new_booking_status': booking.status.value,
                }

        except UnauthorizedError as e:
            self._record_failure(actions['unauthorized'], approval_id, acting_user, e)
            raise
        except InternalError as e:
            self._record_failure(actions['error'], approval_id, acting_user, e)
            raise
        except (ConflictError, PreconditionFailedError) as e:
            self._record_failure(actions['refused'], approval_id, acting_user, e)
            raise
        except WorkflowError as e:
            self.notification_service.notify(e.message, 'error')
            raise

        self.audit_service.record(
            action=actions['success'],
            entity_type='approval',
            entity_id=approval_id,
            description=f"Level {result['level']} {decision}d booking {result['booking_id']}",
            details=dict(result, notes=notes),
            user_id=acting_user.id
        )
        if decision == 'approve':
            self.notification_service.notify('Approval processed successfully!', 'success')
        else:
            self.notification_service.notify('Approval rejected successfully!', 'success')

        logger.info(f"Approval {approval_id} (level {result['level']}) {decision}d by user {acting_user.id}; "
                    f"booking {result['booking_id']}: {result['old_booking_status']} -> "
                    f"{result['new_booking_status']}",
                    extra={'booking_id': result['booking_id'], 'approval_id': approval_id,
                           'approval_level': result['level']})
        return db.session.get(Approval, approval_id)

    def _load_for_decision(self, approval_id: int, acting_user: User, decision: str) -> Approval:
        approval = db.session.get(Approval, approval_id)
        if not approval:
            raise NotFoundError('Approval not found')

        if not acting_user.has_level_capability(approval.level):
            raise UnauthorizedError(f"You are not authorized to {decision} this request.")

        if approval.is_resolved:
            raise ConflictError(f"This approval has already been {approval.status.value}")

        booking = approval.booking
        if approval.level == 2:
            self._check_level1(booking, decision)
        if booking.status == BookingStatus.REJECTED:
            raise ConflictError('Booking has already been rejected or cancelled')

        return approval

    @staticmethod
    def _check_level1(booking: Booking, decision: str) -> None:
        """Level 2 may approve only after level 1 approved, and reject once level 1 acted."""
        level1 = booking.get_approval(1)
        level1_status = level1.status if level1 is not None else ApprovalStatus.PENDING
        if decision == 'approve' and level1_status != ApprovalStatus.APPROVED:
            raise PreconditionFailedError('Level 1 approval must complete first')
        if level1_status == ApprovalStatus.PENDING:
            raise PreconditionFailedError('Level 1 approval must complete first')
        if level1_status == ApprovalStatus.REJECTED:
            raise ConflictError('Booking already rejected by level 1')

    def _apply_approval(self, approval: Approval, booking: Booking) -> None:
        target = BookingStatus.APPROVED if approval.level == 2 else BookingStatus.APPROVED_1
        approval.status = ApprovalStatus.APPROVED
        apply_transition(booking, target)

    def _apply_rejection(self, approval: Approval, booking: Booking) -> None:
        approval.status = ApprovalStatus.REJECTED
        apply_transition(booking, BookingStatus.REJECTED)

    def _record_failure(self, action: str, approval_id: int, acting_user: User,
                        error: WorkflowError) -> None:
        self.audit_service.record(
            action=action,
            entity_type='approval',
            entity_id=approval_id,
            description=error.message,
            details={'role': acting_user.role.value, 'error': error.code},
            user_id=acting_user.id,
            success=False,
            error_message=error.message
        )
        self.notification_service.notify(error.message, 'error')
        logger.warning(f"{action} on approval {approval_id} by user {acting_user.id}: {error.message}")

    def pending_for(self, user: User, search: Optional[str] = None,
                    page: int = 1, per_page: int = 8):
        """
        Get the pending approvals a user can act on, newest first.

        Args:
            user: Approver whose inbox to build
            search: Substring of the booking purpose
            page: 1-based page number
            per_page: Page size

        Returns:
            Flask-SQLAlchemy Pagination of Approval rows
        """
        levels = [level for level in LEVEL_ROLES if user.has_level_capability(level)]

        query = Approval.query.join(Booking, Approval.booking_id == Booking.id).filter(
            Approval.status == ApprovalStatus.PENDING,
            Approval.level.in_(levels),
            Booking.status != BookingStatus.REJECTED
        )
        if search:
            query = query.filter(Booking.purpose.ilike(f'%{search}%'))

        return query.order_by(Approval.created_at.desc(), Approval.id.desc()) \
                    .paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def to_dict(approval: Approval) -> Dict[str, Any]:
        booking = approval.booking
        return {
            'id': approval.id,
            'booking_id': approval.booking_id,
            'level': approval.level,
            'status': approval.status.value,
            'approver_id': approval.approver_id,
            'notes': approval.notes,
            'acted_by': approval.acted_by,
            'acted_by_name': approval.actor.display_name if approval.actor else None,
            'acted_at': approval.acted_at.isoformat() if approval.acted_at else None,
            'booking': {
                'purpose': booking.purpose,
                'status': booking.status.value,
                'start_date': booking.start_date.isoformat(),
                'end_date': booking.end_date.isoformat(),
                'vehicle': booking.vehicle.license_plate,
                'driver': booking.driver.name,
                'requester': booking.requester.display_name,
            },
        }
