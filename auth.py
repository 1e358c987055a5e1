from functools import wraps
from flask import Blueprint, jsonify, g
from flask_jwt_extended import jwt_required, create_access_token, current_user
from werkzeug.security import check_password_hash
from sqlalchemy import or_
from models import User, LEVEL_ROLES, db
from forms import LoginForm
from services.audit_service import AuditService
from services.errors import UnauthorizedError, ValidationError
from timezone_utils import get_local_time_naive
import logging

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def get_current_user():
    """User loaded from the bearer token of the current request"""
    return current_user


def has_level_capability(user, level):
    """True if the user holds the approver role for the given approval level"""
    return user is not None and user.has_level_capability(level)


def role_required(*roles):
    """
    Require a valid access token and one of the given roles.

    Usage:
        @fleet_bp.route('/refresh-status', methods=['POST'])
        @role_required(UserRole.ADMIN)
        def refresh_status():
            ...
    """
    def decorator(f):
        @wraps(f)
        @jwt_required()
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if user is None or not user.is_active:
                raise UnauthorizedError('Account is inactive or no longer exists')
            if roles and user.role not in roles:
                raise UnauthorizedError('You do not have permission to perform this action')
            g.current_user_id = user.id
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def user_to_dict(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'full_name': user.full_name,
        'role': user.role.value,
        'approval_levels': [level for level in LEVEL_ROLES if has_level_capability(user, level)],
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Check username/email and password, then issue an access token"""
    form = LoginForm()
    if not form.validate():
        raise ValidationError('Username and password are required', form.errors)

    login_name = form.username.data.strip()
    user = User.query.filter(
        or_(User.username == login_name, User.email == login_name.lower())
    ).first()

    if not user or not check_password_hash(user.password_hash, form.password.data):
        AuditService.record(
            action='login_failed',
            entity_type='user',
            entity_id=user.id if user else None,
            success=False,
            error_message='Invalid credentials'
        )
        logger.warning(f"Failed login attempt for '{login_name}'")
        return jsonify({
            'success': False,
            'error': 'INVALID_CREDENTIALS',
            'message': 'Invalid username or password'
        }), 401

    if not user.is_active:
        AuditService.record(action='login_blocked', entity_type='user', entity_id=user.id,
                            user_id=user.id, success=False, error_message='Account inactive')
        return jsonify({
            'success': False,
            'error': 'ACCOUNT_INACTIVE',
            'message': 'Your account has been deactivated'
        }), 403

    user.last_login = get_local_time_naive()
    db.session.commit()

    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.role.value}
    )
    AuditService.record(action='login', entity_type='user', entity_id=user.id, user_id=user.id)
    logger.info(f"User {user.username} logged in")

    return jsonify({
        'success': True,
        'message': 'Authentication successful',
        'access_token': access_token,
        'user': user_to_dict(user)
    }), 200


@auth_bp.route('/me', methods=['GET'])
@role_required()
def me():
    return jsonify({'success': True, 'user': user_to_dict(get_current_user())})

