# trucktrack/decorators.py
from functools import wraps
from flask_login import current_user
from trucktrack.exceptions import Forbidden
from trucktrack.logging_config import setup_logging
from trucktrack.roles import Role, can_access, can_write

logger = setup_logging()


def capability_required(section, write=False):
    """Reject callers whose role cannot open ``section`` (or write to it)."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            role = current_user.role
            if not can_access(role, section) or (write and not can_write(role)):
                logger.warning(f"User {current_user.username} ({role}) denied {'write' if write else 'read'} access to {section}.")
                raise Forbidden()
            return view_func(*args, **kwargs)
        return wrapped
    return decorator


def master_admin_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if current_user.role != Role.MASTER_ADMIN.value:
            logger.warning(f"User {current_user.username} denied master admin access.")
            raise Forbidden()
        return view_func(*args, **kwargs)
    return wrapped
