"""
Service Layer Architecture

Business logic for the fleet booking workflow, kept out of the route
handlers so it can be called from the JSON API, the CLI and the scheduler
alike. Services provide:

1. **Transaction Management**: Atomic operations with full rollback
2. **Typed Errors**: WorkflowError subclasses instead of status tuples
3. **Testability**: Collaborators and the clock are injectable

Services Architecture:
- **BookingService**: Booking creation, cancellation and queries
- **ApprovalService**: Two-level approval chain and approver inbox
- **ConflictService**: Overlap detection for vehicles and drivers
- **ResourceService**: Vehicle/driver availability, status changes, row locks
- **StatusRefreshService**: Periodic reconciliation of on-duty statuses
- **LogbookService**: Fuel, service and usage records
- **NotificationService**: User-facing (message, severity) outcomes
- **AuditService**: Centralized audit logging
"""

from .errors import (WorkflowError, NotFoundError, UnauthorizedError,
                     PreconditionFailedError, ConflictError, ValidationError, InternalError)
from .transaction_helper import TransactionHelper
from .audit_service import AuditService
from .notification_service import NotificationService
from .resource_service import ResourceService
from .conflict_service import ConflictService
from .booking_service import BookingService
from .approval_service import ApprovalService
from .status_refresh_service import StatusRefreshService
from .logbook_service import LogbookService

__all__ = [
    'WorkflowError',
    'NotFoundError',
    'UnauthorizedError',
    'PreconditionFailedError',
    'ConflictError',
    'ValidationError',
    'InternalError',
    'TransactionHelper',
    'AuditService',
    'NotificationService',
    'ResourceService',
    'ConflictService',
    'BookingService',
    'ApprovalService',
    'StatusRefreshService',
    'LogbookService'
]
