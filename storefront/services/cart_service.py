"""
Cart management service
"""

import logging
from typing import Tuple

from storefront.checkout.pricing import PricingSummary, compute_summary
from storefront.models import CartSnapshot, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session, require_authenticated

logger = logging.getLogger(__name__)

CART_KEY = "cart"


class CartService:
    """Service for cart operations; the API owns the cart"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def get_cart(self, session: Session, refresh: bool = False) -> CartSnapshot:
        """Current cart; ``refresh`` bypasses the cache"""
        require_authenticated(session)

        async def fetch() -> CartSnapshot:
            response = await self.api.get("/cart", session=session)
            return parse_payload(CartSnapshot.from_dict, response.data)

        return await self.cache.get_or_fetch(session.cache_scope, CART_KEY, fetch, refresh=refresh)

    async def get_summary(self, session: Session, refresh: bool = False) -> Tuple[CartSnapshot, PricingSummary]:
        cart = await self.get_cart(session, refresh=refresh)
        return cart, compute_summary(cart.lines)

    async def add_item(self, session: Session, product_id: str, quantity: int = 1) -> CartSnapshot:
        require_authenticated(session)
        response = await self.api.post(
            "/cart/items", session=session, json={"productId": product_id, "quantity": quantity}
        )
        self.cache.invalidate_for("cart.add", session.cache_scope)
        logger.info("Added %s x %s to cart of user %s", quantity, product_id, session.user.id)
        return parse_payload(CartSnapshot.from_dict, response.data)

    async def update_quantity(self, session: Session, product_id: str, quantity: int) -> CartSnapshot:
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            return await self.remove_item(session, product_id)
        require_authenticated(session)
        response = await self.api.put(
            f"/cart/items/{product_id}", session=session, json={"quantity": quantity}
        )
        self.cache.invalidate_for("cart.update", session.cache_scope)
        return parse_payload(CartSnapshot.from_dict, response.data)

    async def remove_item(self, session: Session, product_id: str) -> CartSnapshot:
        require_authenticated(session)
        response = await self.api.delete(f"/cart/items/{product_id}", session=session)
        self.cache.invalidate_for("cart.remove", session.cache_scope)
        return parse_payload(CartSnapshot.from_dict, response.data)

    async def clear(self, session: Session) -> None:
        require_authenticated(session)
        await self.api.delete("/cart", session=session)
        self.cache.invalidate_for("cart.clear", session.cache_scope)
        logger.info("Cleared cart of user %s", session.user.id)
