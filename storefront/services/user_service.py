"""
Profile and address book service
"""

import logging
from typing import Any, Dict, List

from storefront.models import Address, User, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session, require_authenticated
from storefront.utils.constants import AuthSettings
from storefront.utils.error_handler import ApiError

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "zipCode", "country")


class UserService:
    """Service for the logged-in user's profile and saved addresses"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def get_profile(self, session: Session) -> User:
        require_authenticated(session)

        async def fetch() -> User:
            response = await self.api.get("/users/profile", session=session)
            return parse_payload(User.from_dict, response.data)

        return await self.cache.get_or_fetch(session.cache_scope, "profile", fetch)

    async def update_profile(self, session: Session, **changes: str) -> User:
        """Update ``first_name`` / ``last_name``; returns the fresh user"""
        require_authenticated(session)
        payload = {}
        if changes.get("first_name"):
            payload["firstName"] = changes["first_name"].strip()
        if changes.get("last_name"):
            payload["lastName"] = changes["last_name"].strip()
        if not payload:
            raise ApiError.invalid("Nothing to update")

        response = await self.api.patch("/users/profile", session=session, json=payload)
        self.cache.invalidate_for("profile.update", session.cache_scope)
        user = parse_payload(User.from_dict, response.data)
        # keep the session's copy in step with the API
        session.user = user
        return user

    async def change_password(self, session: Session, current_password: str, new_password: str) -> None:
        """PATCH the password; a wrong current password comes back as a VALIDATION error"""
        require_authenticated(session)
        if not current_password:
            raise ApiError.invalid("Current password is required")
        if not AuthSettings.MIN_PASSWORD_LENGTH <= len(new_password) <= AuthSettings.MAX_PASSWORD_LENGTH:
            raise ApiError.invalid(
                f"New password must be {AuthSettings.MIN_PASSWORD_LENGTH} to "
                f"{AuthSettings.MAX_PASSWORD_LENGTH} characters"
            )

        await self.api.patch(
            "/users/change-password",
            session=session,
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        logger.info("User %s changed their password", session.user.id)

    async def list_addresses(self, session: Session) -> List[Address]:
        require_authenticated(session)

        async def fetch() -> List[Address]:
            response = await self.api.get("/users/addresses", session=session)
            return parse_payload(lambda data: [Address.from_dict(item) for item in data or []], response.data)

        return await self.cache.get_or_fetch(session.cache_scope, "addresses", fetch)

    async def get_default_address(self, session: Session) -> Address | None:
        addresses = await self.list_addresses(session)
        for address in addresses:
            if address.is_default:
                return address
        return addresses[0] if addresses else None

    async def create_address(self, session: Session, data: Dict[str, Any]) -> Address:
        require_authenticated(session)
        missing = [name for name in ADDRESS_FIELDS if not str(data.get(name) or "").strip()]
        if missing:
            raise ApiError.invalid("Missing address fields: " + ", ".join(missing), missing=missing)

        response = await self.api.post("/users/addresses", session=session, json=data)
        self.cache.invalidate_for("address.create", session.cache_scope)
        return parse_payload(Address.from_dict, response.data)

    async def update_address(self, session: Session, address_id: str, changes: Dict[str, Any]) -> Address:
        require_authenticated(session)
        response = await self.api.patch(f"/users/addresses/{address_id}", session=session, json=changes)
        self.cache.invalidate_for("address.update", session.cache_scope)
        return parse_payload(Address.from_dict, response.data)

    async def set_default_address(self, session: Session, address_id: str) -> Address:
        return await self.update_address(session, address_id, {"isDefault": True})

    async def delete_address(self, session: Session, address_id: str) -> None:
        require_authenticated(session)
        await self.api.delete(f"/users/addresses/{address_id}", session=session)
        self.cache.invalidate_for("address.delete", session.cache_scope)
