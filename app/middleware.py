"""Middleware for caller identity and the administrator gate."""
from functools import wraps
from flask import session, g, current_app
from app.database import get_session
from app.exceptions import PermissionDeniedError
from app.services.auth_service import is_admin


def load_current_user():
    """
    Load the caller's identity into g (Flask's per-request global).

    Called before each request. Sets g.user_id from the signed session and
    g.is_admin from the `admins` table.
    """
    g.user_id = session.get('user_id')
    g.is_admin = False

    if g.user_id:
        g.is_admin = is_admin(get_session(), g.user_id)


def require_admin(f):
    """
    Decorator: Require the caller to be an administrator.

    Raises PermissionDeniedError (403) otherwise; the app error handler
    turns it into a JSON body.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('is_admin'):
            current_app.logger.warning(
                f"Admin access denied for user_id={g.get('user_id')} on {f.__name__}"
            )
            raise PermissionDeniedError()
        return f(*args, **kwargs)

    return decorated_function
