"""
Authentication service
"""

import logging

from storefront.models import User, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session
from storefront.utils.error_handler import ApiError

logger = logging.getLogger(__name__)


class AuthService:
    """Login, registration and session refresh against the API"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def login(self, email: str, password: str) -> Session:
        response = await self.api.post(
            "/auth/login", json={"email": email.strip(), "password": password}
        )
        session = self._session_from(response.data)
        logger.info("User %s logged in", session.user.id)
        return session

    async def register(self, email: str, password: str, first_name: str, last_name: str) -> Session:
        response = await self.api.post(
            "/auth/register",
            json={
                "email": email.strip(),
                "password": password,
                "firstName": first_name.strip(),
                "lastName": last_name.strip(),
            },
        )
        session = self._session_from(response.data)
        logger.info("User %s registered", session.user.id)
        return session

    async def refresh_user(self, session: Session) -> Session:
        """Re-read the current user for an existing token"""
        if not session.token:
            raise ApiError.unauthorized()
        response = await self.api.get("/auth/me", session=session)
        return Session(token=session.token, user=parse_payload(User.from_dict, response.data))

    def logout(self, session: Session) -> None:
        if session.is_authenticated:
            self.cache.clear_scope(session.cache_scope)
            logger.info("User %s logged out", session.user.id)

    @staticmethod
    def _session_from(data) -> Session:
        def build(payload) -> Session:
            return Session(token=payload["token"], user=User.from_dict(payload["user"]))

        return parse_payload(build, data)
