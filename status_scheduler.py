"""
Resource Status Scheduler

Background loop that keeps vehicle and driver statuses in line with
approved bookings by running the status refresh every
STATUS_REFRESH_MINUTES minutes.
"""

import time
import logging
import schedule
from contextlib import contextmanager
from app import create_app
from services.status_refresh_service import StatusRefreshService
from services.errors import WorkflowError

logger = logging.getLogger(__name__)


class StatusScheduler:
    """
    Background scheduler for resource status refresh
    """

    def __init__(self, app=None):
        self.app = app or create_app()
        self.interval_minutes = self.app.config['STATUS_REFRESH_MINUTES']
        self.running = False

    @contextmanager
    def app_context(self):
        """Provide Flask application context for database operations"""
        with self.app.app_context():
            yield

    def run_status_refresh(self):
        """Run one status refresh; failures are logged and retried on the next tick"""
        with self.app_context():
            try:
                counts = StatusRefreshService().refresh()
                logger.info(f"Scheduled status refresh completed: {counts}")
                return counts
            except WorkflowError as e:
                logger.error(f"Scheduled status refresh failed: {e.message}")
                return None

    def setup_schedule(self):
        schedule.every(self.interval_minutes).minutes.do(self.run_status_refresh)
        logger.info(f"Status refresh scheduled every {self.interval_minutes} minute(s)")

    def run(self):
        """Run the scheduler"""
        logger.info("Starting resource status scheduler")

        self.setup_schedule()
        self.run_status_refresh()

        self.running = True

        try:
            while self.running:
                schedule.run_pending()
                time.sleep(1)

        except KeyboardInterrupt:
            logger.info("Scheduler stopped by user")
        finally:
            self.running = False
            schedule.clear()
            logger.info("Resource status scheduler stopped")

    def stop(self):
        """Stop the scheduler"""
        self.running = False


def main():
    """Main entry point for the scheduler"""
    scheduler = StatusScheduler()

    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted by user")
        scheduler.stop()


if __name__ == '__main__':
    main()
