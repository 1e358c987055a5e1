"""
Notification Service

Notification sink for workflow outcomes. Each outcome produces a
(message, severity) pair; delivery is left to the caller, which receives
the collected pairs (the JSON API returns them under 'notifications').
"""

from typing import List, Dict
import logging

logger = logging.getLogger(__name__)

SEVERITIES = ('success', 'info', 'warning', 'error')

_LOG_LEVELS = {
    'success': logging.INFO,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.WARNING,
}


class NotificationService:
    """Collects user-facing notifications for the current operation"""

    def __init__(self):
        self.outbox: List[Dict[str, str]] = []

    def notify(self, message: str, severity: str = 'info') -> None:
        if severity not in SEVERITIES:
            raise ValueError(f"Unknown notification severity: {severity}")
        self.outbox.append({'message': message, 'severity': severity})
        logger.log(_LOG_LEVELS[severity], f"Notification [{severity}]: {message}")

    def drain(self) -> List[Dict[str, str]]:
        """Return and clear the pending notifications"""
        messages, self.outbox = self.outbox, []
        return messages
