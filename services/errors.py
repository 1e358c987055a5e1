"""
Workflow error taxonomy.

Raised by the service layer and translated into JSON responses by the
application error handler. None of these are retried: they describe
business-rule outcomes, not transient faults.
"""

from typing import Optional, Dict, List, Any


class WorkflowError(Exception):
    """Base class for all booking workflow failures."""

    code = 'WORKFLOW_ERROR'
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': self.code,
            'message': self.message,
        }


class NotFoundError(WorkflowError):
    """Booking, approval or resource does not exist."""
    code = 'NOT_FOUND'
    http_status = 404


class UnauthorizedError(WorkflowError):
    """Acting user lacks the role required for the action."""
    code = 'UNAUTHORIZED'
    http_status = 403


class PreconditionFailedError(WorkflowError):
    """An ordering rule was violated, e.g. level 2 acting before level 1."""
    code = 'PRECONDITION_FAILED'
    http_status = 412


class ConflictError(WorkflowError):
    """Double-booked resource, already-resolved approval or redundant rejection."""
    code = 'CONFLICT'
    http_status = 409

    def __init__(self, message: str, resources: Optional[List[str]] = None):
        super().__init__(message)
        self.resources = resources or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.resources:
            data['resources'] = self.resources
        return data


class ValidationError(WorkflowError):
    """Malformed dates or missing/invalid fields."""
    code = 'VALIDATION_ERROR'
    http_status = 422

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field_errors:
            data['errors'] = self.field_errors
        return data


class InternalError(WorkflowError):
    """Database failure inside a transaction; the transaction was rolled back."""
    code = 'INTERNAL_ERROR'
    http_status = 500
