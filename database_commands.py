#!/usr/bin/env python3
"""
Database Management Commands for Fleet Booking

Usage:
    python database_commands.py --help
    python database_commands.py init-db
    python database_commands.py seed-demo
    python database_commands.py refresh-status
    python database_commands.py status
"""

import os
import sys
import argparse
import logging
from sqlalchemy import text, func
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash
from app import create_app, db
from utils.config_validator import check_production_readiness

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEMO_USERS = [
    {'username': 'admin', 'email': 'admin@fleetbooking.local', 'full_name': 'Admin',
     'password': 'Admin@1234', 'role': 'admin'},
    {'username': 'approver1', 'email': 'approver1@fleetbooking.local', 'full_name': 'Approver Level 1',
     'password': 'Approver1@1234', 'role': 'approver_level1'},
    {'username': 'approver2', 'email': 'approver2@fleetbooking.local', 'full_name': 'Approver Level 2',
     'password': 'Approver2@1234', 'role': 'approver_level2'},
    {'username': 'employee', 'email': 'employee@fleetbooking.local', 'full_name': 'Employee',
     'password': 'Employee@1234', 'role': 'employee'},
]

DEMO_VEHICLES = [
    {'license_plate': 'B 1234 AB', 'type': 'passenger', 'fuel_consumption': 0.12},
    {'license_plate': 'B 5678 CD', 'type': 'passenger', 'fuel_consumption': 0.15},
    {'license_plate': 'B 9012 EF', 'type': 'cargo', 'fuel_consumption': 0.20},
    {'license_plate': 'B 3456 GH', 'type': 'cargo', 'fuel_consumption': 0.25},
    {'license_plate': 'B 7890 IJ', 'type': 'passenger', 'fuel_consumption': 0.10},
]

DEMO_DRIVERS = [
    {'name': 'John Doe', 'license_number': 'DL12345678'},
    {'name': 'Jane Smith', 'license_number': 'DL87654321'},
    {'name': 'Robert Johnson', 'license_number': 'DL56781234'},
    {'name': 'Emily Davis', 'license_number': 'DL43218765'},
]


def seed_demo_data():
    """
    Create demo users for every role plus a few vehicles and drivers.
    Existing rows (matched by username, plate or license number) are kept.

    Returns:
        dict: number of rows created per table
    """
    from models import User, UserRole, Vehicle, Driver

    created = {'users': 0, 'vehicles': 0, 'drivers': 0}
    try:
        for data in DEMO_USERS:
            if User.query.filter_by(username=data['username']).first():
                continue
            user = User()
            user.username = data['username']
            user.email = data['email']
            user.full_name = data['full_name']
            user.password_hash = generate_password_hash(data['password'])
            user.role = UserRole(data['role'])
            db.session.add(user)
            created['users'] += 1

        for data in DEMO_VEHICLES:
            if Vehicle.query.filter_by(license_plate=data['license_plate']).first():
                continue
            db.session.add(Vehicle(**data))
            created['vehicles'] += 1

        for data in DEMO_DRIVERS:
            if Driver.query.filter_by(license_number=data['license_number']).first():
                continue
            db.session.add(Driver(**data))
            created['drivers'] += 1

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Demo seed failed: {str(e)}")
        raise

    logger.info(f"Demo data seeded: {created}")
    return created


def setup_app_context():
    """Setup Flask application context for database operations."""
    # Set a temporary SESSION_SECRET for CLI operations if not set
    if not os.environ.get('SESSION_SECRET'):
        os.environ['SESSION_SECRET'] = 'cli_temp_secret_not_for_production'

    app = create_app()
    return app.app_context()


def cmd_init_db(args):
    """Create all tables."""
    with setup_app_context():
        db.create_all()
        print("✅ Database tables created")


def cmd_seed_demo(args):
    """Insert demo users, vehicles and drivers."""
    with setup_app_context():
        created = seed_demo_data()
        print(f"✅ Demo data seeded: {created['users']} users, "
              f"{created['vehicles']} vehicles, {created['drivers']} drivers")


def cmd_refresh_status(args):
    """Recompute vehicle and driver statuses from today's approved bookings."""
    with setup_app_context():
        from services.status_refresh_service import StatusRefreshService

        counts = StatusRefreshService().refresh()
        print(f"✅ Statuses refreshed: {counts['active_bookings']} active bookings, "
              f"{counts['vehicles_on_duty']} vehicles and {counts['drivers_on_duty']} drivers on duty")


def cmd_status(args):
    """Display database connection and table statistics."""
    with setup_app_context():
        from models import User, Vehicle, Driver, Booking, Approval, AuditLog

        print("=" * 60)
        print("DATABASE STATUS REPORT")
        print("=" * 60)

        try:
            db.session.execute(text('SELECT 1'))
            print("Connection Status: ✅ HEALTHY")
        except SQLAlchemyError as e:
            print("Connection Status: ❌ FAILED")
            print(f"Connection Error: {str(e)}")
            sys.exit(1)

        print(f"  Engine: {db.engine.url.get_backend_name()}")
        print("\nTable Statistics:")
        for model in (User, Vehicle, Driver, Booking, Approval, AuditLog):
            print(f"  {model.__tablename__}: {model.query.count()} records")

        print("\nBookings by status:")
        rows = db.session.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        for status, count in rows:
            print(f"  {status.value}: {count}")

        readiness = check_production_readiness()
        print(f"\nProduction Ready: {'✅ YES' if readiness['production_ready'] else '⚠️ NO'}")
        for issue in readiness['issues']:
            print(f"  Issue: {issue}")
        for recommendation in readiness['recommendations']:
            print(f"  Recommendation: {recommendation}")


def main():
    """Main command line interface."""
    parser = argparse.ArgumentParser(
        description="Database Management Commands for Fleet Booking",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    subparsers.add_parser('init-db', help='Create database tables')
    subparsers.add_parser('seed-demo', help='Insert demo users, vehicles and drivers')
    subparsers.add_parser('refresh-status', help='Refresh vehicle and driver statuses')
    subparsers.add_parser('status', help='Display database status')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        'init-db': cmd_init_db,
        'seed-demo': cmd_seed_demo,
        'refresh-status': cmd_refresh_status,
        'status': cmd_status,
    }

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error occurred")
        print(f"❌ Unexpected error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
