"""
Audit Service

Audit sink for booking workflow events. Records are written after the
business transaction has finished, in their own short commit, so a failure
to log never rolls back the business change it describes.
"""

from typing import Optional, Dict, Any, List
import logging
import json
from flask import request, has_request_context
from sqlalchemy.exc import SQLAlchemyError
from models import db, AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for centralized audit logging"""

    @staticmethod
    def record(action: str,
               entity_type: Optional[str] = None,
               entity_id: Optional[int] = None,
               description: Optional[str] = None,
               details: Optional[Dict[str, Any]] = None,
               user_id: Optional[int] = None,
               success: bool = True,
               error_message: Optional[str] = None) -> bool:
        """
        Record an audit event. Fire-and-forget: never raises.

        Args:
            action: Action performed (e.g., 'approve', 'unauthorized_approval_attempt')
            entity_type: Type of entity affected (e.g., 'booking', 'approval')
            entity_id: ID of the affected entity
            description: Human readable summary
            details: Additional structured details
            user_id: ID of the acting user (None for system jobs)
            success: Whether the action succeeded
            error_message: Failure reason for unsuccessful attempts

        Returns:
            bool: True if the record was stored
        """
        try:
            audit = AuditLog()
            audit.user_id = user_id
            audit.action = action
            audit.entity_type = entity_type
            audit.entity_id = entity_id
            audit.description = description
            audit.details = json.dumps(details, default=str) if details else None
            audit.success = success
            audit.error_message = error_message

            if has_request_context():
                audit.ip_address = request.remote_addr
                audit.user_agent = request.headers.get('User-Agent', '')[:255]

            db.session.add(audit)
            db.session.commit()
            logger.debug(f"Audit logged: {action} by user {user_id}")
            return True

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error logging audit action '{action}': {str(e)}")
            return False

    @staticmethod
    def get_entity_history(entity_type: str, entity_id: int, limit: int = 50) -> List[AuditLog]:
        """
        Get audit history for a specific entity, newest first.
        """
        return AuditLog.query.filter_by(entity_type=entity_type, entity_id=entity_id) \
                             .order_by(AuditLog.created_at.desc(), AuditLog.id.desc()) \
                             .limit(limit).all()

    @staticmethod
    def get_recent_activities(limit: int = 20, action: Optional[str] = None) -> List[AuditLog]:
        """
        Get recent system-wide activities, optionally filtered by action.
        """
        query = AuditLog.query
        if action:
            query = query.filter(AuditLog.action == action)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
