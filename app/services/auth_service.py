"""
Administrator predicate.

Authentication itself happens at the hosted auth provider, which leaves the
caller's user id in the signed session. Authorization is a single question:
does that user id have a row in `admins`?
"""
import logging
from app.models import Admin
from app.exceptions import ValidationFailedError
from app.database import commit_or_raise

logger = logging.getLogger(__name__)


def is_admin(session, user_id) -> bool:
    """Evaluated on every request; no caching."""
    if not user_id:
        return False
    return session.get(Admin, str(user_id)) is not None


def grant_admin(session, user_id: str) -> bool:
    """
    Mark a user id as administrator.

    Returns:
        True if a row was created, False if the user was already an admin
    """
    user_id = (user_id or '').strip()
    if not user_id:
        raise ValidationFailedError('user_id is required')

    if is_admin(session, user_id):
        return False

    session.add(Admin(user_id=user_id))
    commit_or_raise(session, duplicate_message=f'{user_id} is already an administrator')
    logger.info('Administrator granted: %s', user_id)
    return True


def revoke_admin(session, user_id: str) -> bool:
    """Returns True if a row was removed."""
    admin = session.get(Admin, (user_id or '').strip())
    if not admin:
        return False

    session.delete(admin)
    commit_or_raise(session)
    logger.info('Administrator revoked: %s', user_id)
    return True
