"""
Transaction Helper Service

Every multi-step workflow mutation (booking + approvals, approval + booking
status, cancellation + resource release) runs inside one of these boundaries:
commit on success, full rollback on any failure.
"""

from contextlib import contextmanager
import logging
from sqlalchemy.exc import SQLAlchemyError
from app import db
from .errors import WorkflowError, InternalError

logger = logging.getLogger(__name__)


class TransactionHelper:
    """Helper class for managing database transactions safely"""

    @staticmethod
    @contextmanager
    def atomic(operation_name: str):
        """
        Run a block in a single transaction.

        Business errors are re-raised unchanged after rollback; database
        errors are rolled back and reported as InternalError.

        Usage:
            with TransactionHelper.atomic('approve'):
                approval.status = ApprovalStatus.APPROVED
                booking.status = BookingStatus.APPROVED_1
        """
        try:
            yield db.session
            db.session.commit()
        except WorkflowError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Transaction '{operation_name}' rolled back: {str(e)}")
            raise InternalError(f"Failed to {operation_name.replace('_', ' ')}: database error") from e
        except Exception:
            db.session.rollback()
            logger.exception(f"Unexpected error in transaction '{operation_name}'")
            raise
