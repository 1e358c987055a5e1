import os
from datetime import datetime
import pytz

DEFAULT_TIMEZONE = 'Asia/Kolkata'


def get_app_timezone():
    """Timezone used for 'today' and 'now' decisions (APP_TIMEZONE env)"""
    return pytz.timezone(os.environ.get('APP_TIMEZONE', DEFAULT_TIMEZONE))


def get_local_time_naive():
    """Get current local time as naive datetime for database storage"""
    return datetime.now(get_app_timezone()).replace(tzinfo=None)


def get_local_date():
    """Get today's date in the application timezone"""
    return datetime.now(get_app_timezone()).date()
