"""
Order service
"""

import logging
from typing import Any, Dict, List

from storefront.models import Order, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session, require_authenticated
from storefront.utils.error_handler import ApiError
from storefront.utils.logger import PerformanceLogger

logger = logging.getLogger(__name__)


class OrderService:
    """Customer order history, placement and cancellation"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def list_orders(self, session: Session) -> List[Order]:
        require_authenticated(session)

        async def fetch() -> List[Order]:
            response = await self.api.get("/orders", session=session)
            return parse_payload(lambda data: [Order.from_dict(item) for item in data or []], response.data)

        return await self.cache.get_or_fetch(session.cache_scope, "orders", fetch)

    async def get_order(self, session: Session, order_id: str) -> Order:
        require_authenticated(session)

        async def fetch() -> Order:
            response = await self.api.get(f"/orders/{order_id}", session=session)
            return parse_payload(Order.from_dict, response.data)

        return await self.cache.get_or_fetch(session.cache_scope, f"order:{order_id}", fetch)

    async def create_order(self, session: Session, payload: Dict[str, Any]) -> Order:
        """Place an order; the cart and order history are stale afterwards"""
        require_authenticated(session)
        with PerformanceLogger("create_order", logger, {"user_id": session.user.id}):
            response = await self.api.post("/orders", session=session, json=payload)
        # the API may have created the order even if we fail to read it back
        self.cache.invalidate_for("order.create", session.cache_scope)
        order = parse_payload(Order.from_dict, response.data)
        logger.info("Order %s created for user %s", order.order_number, session.user.id)
        return order

    async def cancel_order(self, session: Session, order: Order) -> Order:
        require_authenticated(session)
        if not order.can_cancel:
            raise ApiError.invalid(
                f"Order {order.order_number} can no longer be cancelled", status=order.status.value
            )
        response = await self.api.patch(f"/orders/{order.id}/cancel", session=session)
        self.cache.invalidate_for("order.cancel", session.cache_scope)
        logger.info("Order %s cancelled by user %s", order.order_number, session.user.id)
        return parse_payload(Order.from_dict, response.data)
