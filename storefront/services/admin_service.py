"""
Admin console service
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.models import (
    ORDER_STATUS_TRANSITIONS,
    Order,
    OrderStatus,
    Product,
    ProductQuery,
    money_to_wire,
    parse_payload,
)
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.services.session import Session, require_admin, user_scope
from storefront.utils.constants import CatalogSettings
from storefront.utils.error_handler import ApiError

logger = logging.getLogger(__name__)


@dataclass
class DashboardStats:
    total_products: int
    total_orders: int
    pending_orders: int
    delivered_orders: int
    revenue: Decimal


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class AdminService:
    """Product and order management for admin sessions"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    # ------------------------------ products -------------------------------

    async def list_products(self, session: Session) -> List[Product]:
        require_admin(session)
        query = ProductQuery(limit=CatalogSettings.ADMIN_PAGE_SIZE, include_inactive=True)

        async def fetch() -> List[Product]:
            response = await self.api.get("/products", session=session, params=query.to_params())
            return parse_payload(lambda data: [Product.from_dict(item) for item in data or []], response.data)

        return await self.cache.get_or_fetch(session.cache_scope, "admin.products", fetch)

    async def get_product(self, session: Session, product_id: str) -> Product:
        require_admin(session)
        response = await self.api.get(f"/products/{product_id}", session=session)
        return parse_payload(Product.from_dict, response.data)

    async def create_product(
        self,
        session: Session,
        name: str,
        price: Decimal,
        stock: int,
        sku: str,
        description: str = "",
        category_id: Optional[str] = None,
    ) -> Product:
        require_admin(session)
        if not name.strip():
            raise ApiError.invalid("Product name is required")
        if price <= 0:
            raise ApiError.invalid("Price must be greater than zero", price=str(price))
        if stock < 0:
            raise ApiError.invalid("Stock cannot be negative", stock=stock)

        payload: Dict[str, Any] = {
            "name": name.strip(),
            "slug": slugify(name),
            "description": description.strip(),
            "price": money_to_wire(price),
            "sku": sku.strip(),
            "stock": stock,
            "isActive": True,
        }
        if category_id:
            payload["categoryId"] = category_id

        response = await self.api.post("/products", session=session, json=payload)
        self.cache.invalidate_for("product.create", session.cache_scope)
        product = parse_payload(Product.from_dict, response.data)
        logger.info("Admin %s created product %s", session.user.id, product.id)
        return product

    async def update_product(self, session: Session, product_id: str, changes: Dict[str, Any]) -> Product:
        """Send a partial update; ``Decimal`` values go out as decimal strings"""
        require_admin(session)
        payload = {
            key: money_to_wire(value) if isinstance(value, Decimal) else value
            for key, value in changes.items()
        }
        response = await self.api.put(f"/products/{product_id}", session=session, json=payload)
        self.cache.invalidate_for("product.update", session.cache_scope)
        return parse_payload(Product.from_dict, response.data)

    async def set_product_active(self, session: Session, product_id: str, active: bool) -> Product:
        return await self.update_product(session, product_id, {"isActive": active})

    async def delete_product(self, session: Session, product_id: str) -> None:
        require_admin(session)
        await self.api.delete(f"/products/{product_id}", session=session)
        self.cache.invalidate_for("product.delete", session.cache_scope)
        logger.info("Admin %s deleted product %s", session.user.id, product_id)

    # ------------------------------- orders --------------------------------

    async def list_orders(self, session: Session, status: Optional[OrderStatus] = None) -> List[Order]:
        """All orders (the API returns every order to admins), optionally filtered"""
        require_admin(session)

        async def fetch() -> List[Order]:
            response = await self.api.get("/orders", session=session)
            return parse_payload(lambda data: [Order.from_dict(item) for item in data or []], response.data)

        orders = await self.cache.get_or_fetch(session.cache_scope, "admin.orders", fetch)
        if status is None:
            return orders
        return [order for order in orders if order.status is status]

    async def update_order_status(self, session: Session, order: Order, status: OrderStatus) -> Order:
        require_admin(session)
        if status not in ORDER_STATUS_TRANSITIONS[order.status]:
            raise ApiError.invalid(
                f"Cannot move order {order.order_number} from {order.status.value} to {status.value}",
                current=order.status.value,
                requested=status.value,
            )
        response = await self.api.patch(
            f"/orders/{order.id}/status", session=session, json={"status": status.value}
        )
        self.cache.invalidate_for("order.update_status", session.cache_scope)
        if order.customer_id:
            self.cache.invalidate_for("order.status_changed", user_scope(order.customer_id))
        logger.info("Admin %s moved order %s to %s", session.user.id, order.order_number, status.value)
        return parse_payload(Order.from_dict, response.data)

    async def dashboard(self, session: Session) -> DashboardStats:
        require_admin(session)
        products = await self.api.get("/products", session=session, params={"page": 1, "limit": 1})
        orders = await self.list_orders(session)

        meta = products.meta or {}
        return DashboardStats(
            total_products=int(meta.get("total") or len(products.data or [])),
            total_orders=len(orders),
            pending_orders=sum(1 for order in orders if order.status is OrderStatus.PENDING),
            delivered_orders=sum(1 for order in orders if order.status is OrderStatus.DELIVERED),
            revenue=sum(
                (order.total for order in orders if order.status is not OrderStatus.CANCELLED),
                Decimal("0"),
            ),
        )
