"""
Configuration validation for the fleet booking service
Checks the environment variables read by create_app()
"""
import os
import logging
import pytz
from typing import Dict, List, Tuple, Any

logger = logging.getLogger(__name__)

TRUE_VALUES = ('true', '1', 'yes')


def _positive_int(name: str, default: int, issues: List[str]) -> None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return
    try:
        if int(raw) < 1:
            issues.append(f"{name} must be at least 1 (default {default})")
    except ValueError:
        issues.append(f"{name} must be a whole number, got '{raw}'")


def validate_flask_config() -> Tuple[bool, List[str]]:
    """
    Validate secrets and token settings.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    session_secret = os.getenv('SESSION_SECRET')
    if not session_secret:
        issues.append("Missing SESSION_SECRET environment variable")
    elif len(session_secret) < 32:
        issues.append("SESSION_SECRET should be at least 32 characters for security")

    _positive_int('JWT_ACCESS_TOKEN_HOURS', 8, issues)

    if os.getenv('DEBUG', 'False').lower() in TRUE_VALUES:
        issues.append("DEBUG mode is enabled - should be disabled in production")

    return len(issues) == 0, issues


def validate_workflow_config() -> Tuple[bool, List[str]]:
    """
    Validate database, timezone and scheduler settings.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    database_url = os.getenv('DATABASE_URL', '')
    if database_url and not database_url.startswith(('sqlite://', 'postgresql://', 'postgres://',
                                                     'postgresql+psycopg2://')):
        issues.append("DATABASE_URL must be a sqlite:// or postgresql:// URL")

    tz_name = os.getenv('APP_TIMEZONE')
    if tz_name:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            issues.append(f"APP_TIMEZONE '{tz_name}' is not a known timezone")

    _positive_int('STATUS_REFRESH_MINUTES', 1, issues)

    return len(issues) == 0, issues


def check_production_readiness() -> Dict[str, Any]:
    """
    Comprehensive check of deployment readiness.

    Returns:
        dict: Status information including issues and recommendations
    """
    flask_valid, flask_issues = validate_flask_config()
    workflow_valid, workflow_issues = validate_workflow_config()

    all_issues = flask_issues + workflow_issues
    using_sqlite = not os.getenv('DATABASE_URL', '').startswith(('postgresql', 'postgres'))

    result = {
        'production_ready': len(all_issues) == 0 and not using_sqlite,
        'flask_configured': flask_valid,
        'workflow_configured': workflow_valid,
        'using_sqlite': using_sqlite,
        'demo_seed': os.getenv('DEMO_SEED', 'false').lower() in TRUE_VALUES,
        'issues': all_issues,
        'recommendations': []
    }

    if using_sqlite:
        result['recommendations'].append("Use PostgreSQL for production; SQLite serializes all bookings")
    if result['demo_seed']:
        result['recommendations'].append("Disable DEMO_SEED outside development")
    if all_issues:
        result['recommendations'].append("Address configuration issues before deploying to production")

    if result['production_ready']:
        logger.info("CONFIG: Production readiness check PASSED")
    else:
        logger.warning(f"CONFIG: Production readiness check FAILED - Issues: {len(all_issues)}")
        for issue in all_issues:
            logger.warning(f"CONFIG: Issue - {issue}")

    return result
