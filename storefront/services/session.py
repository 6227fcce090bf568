"""
Per-user API session

The session is an explicit object kept in ``context.user_data``. Services
receive it as an argument; nothing reads auth state from globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from telegram.ext import ContextTypes

from storefront.models import User
from storefront.utils.constants import CacheSettings
from storefront.utils.error_handler import ApiError

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


def user_scope(user_id: str) -> str:
    """Cache namespace for one user's private reads"""
    return f"user:{user_id}"


@dataclass
class Session:
    """Bearer token plus the user it belongs to"""

    token: Optional[str] = None
    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.user.is_admin

    @property
    def cache_scope(self) -> str:
        """Cache namespace for this session's private reads"""
        if self.is_authenticated:
            return user_scope(self.user.id)
        return CacheSettings.PUBLIC_SCOPE


ANONYMOUS = Session()


def get_session(context: ContextTypes.DEFAULT_TYPE) -> Session:
    """Session for the current user; anonymous when nobody is logged in"""
    if context.user_data is None:
        return ANONYMOUS
    return context.user_data.get(SESSION_KEY) or ANONYMOUS


def start_session(context: ContextTypes.DEFAULT_TYPE, session: Session) -> Session:
    context.user_data[SESSION_KEY] = session
    logger.info("Session started for user %s", session.user.id if session.user else None)
    return session


def end_session(context: ContextTypes.DEFAULT_TYPE) -> Optional[Session]:
    """Drop the session and any per-user flow state; returns the old session"""
    if context.user_data is None:
        return None
    session = context.user_data.pop(SESSION_KEY, None)
    # checkout drafts and forms belong to the session
    context.user_data.clear()
    if session is not None:
        logger.info("Session ended for user %s", session.user.id if session.user else None)
    return session


def require_authenticated(session: Optional[Session]) -> Session:
    """Raise an AUTH ApiError unless ``session`` is logged in"""
    if session is None or not session.is_authenticated:
        raise ApiError.unauthorized()
    return session


def require_admin(session: Optional[Session]) -> Session:
    require_authenticated(session)
    if not session.is_admin:
        raise ApiError.unauthorized("Admin access required")
    return session
