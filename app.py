import os
import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix
from datetime import datetime, timedelta, timezone
from utils.logging_config import setup_logging


class Base(DeclarativeBase):
    pass

db = SQLAlchemy(model_class=Base)
csrf = CSRFProtect()
jwt = JWTManager()

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    # Create the app
    app = Flask(__name__)
    setup_logging(app)
    # Enforce SESSION_SECRET requirement
    app.secret_key = os.environ.get("SESSION_SECRET")
    if not app.secret_key:
        raise RuntimeError("SESSION_SECRET environment variable is required but not set")
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # CORS for the JSON API (restricted origins)
    production_origins = os.environ.get('ALLOWED_ORIGINS', '').split(',')
    allowed_origins = [origin.strip() for origin in production_origins if origin.strip()]
    if not allowed_origins:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    CORS(app, origins=allowed_origins,
         supports_credentials=False,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"])

    # Configure the database - use PostgreSQL in production, SQLite for development
    database_url = os.environ.get("DATABASE_URL") or "sqlite:///fleet_booking.db"

    if database_url.startswith(("postgresql://", "postgres://")):
        # Ensure psycopg2 driver is specified
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        database_url = database_url.replace("postgresql://", "postgresql+psycopg2://", 1)

        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 280,
            "pool_pre_ping": True,
            "max_overflow": 15,
            "pool_timeout": 20,
            "connect_args": {
                "connect_timeout": 10,
                "application_name": "fleet_booking",
            }
        }
    else:
        # Fallback to SQLite for local development
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_pre_ping": True,
        }

    # JWT Configuration
    app.config['JWT_SECRET_KEY'] = app.secret_key
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.environ.get('JWT_ACCESS_TOKEN_HOURS', 8)))
    app.config['JWT_ALGORITHM'] = 'HS256'

    # Workflow configuration
    app.config['STATUS_REFRESH_MINUTES'] = int(os.environ.get('STATUS_REFRESH_MINUTES', 1))
    app.config['BOOKINGS_PER_PAGE'] = 10
    app.config['APPROVALS_PER_PAGE'] = 8

    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    csrf.init_app(app)
    jwt.init_app(app)

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        from models import User
        return db.session.get(User, int(jwt_payload['sub']))

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'success': False, 'error': 'AUTH_REQUIRED', 'message': reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'success': False, 'error': 'INVALID_TOKEN', 'message': reason}), 401

    # Register blueprints
    from auth import auth_bp
    from booking_routes import booking_bp
    from approval_routes import approval_bp
    from fleet_routes import fleet_bp

    # JSON API authenticates with bearer tokens, not cookies
    for blueprint in (auth_bp, booking_bp, approval_bp, fleet_bp):
        csrf.exempt(blueprint)

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(booking_bp, url_prefix='/api/bookings')
    app.register_blueprint(approval_bp, url_prefix='/api/approvals')
    app.register_blueprint(fleet_bp, url_prefix='/api/fleet')

    from services.errors import WorkflowError

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Resource not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error(f"Unhandled error: {str(error)}")
        return jsonify({'success': False, 'error': 'INTERNAL_ERROR', 'message': 'Internal server error'}), 500

    # Create tables
    with app.app_context():
        import models  # noqa: F401
        db.create_all()

        # Only create demo data if explicitly enabled
        if os.environ.get('DEMO_SEED', 'false').lower() == 'true':
            from database_commands import seed_demo_data
            seed_demo_data()

    # Health check endpoint for deployment
    @app.route('/health')
    def health():
        """Simple health check endpoint for deployment readiness"""
        return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()}, 200

    logger.info("Fleet booking application created")
    return app
