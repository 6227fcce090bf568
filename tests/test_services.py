"""
Tests for the API-backed services
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from telegram.error import TelegramError

from storefront.container import Container
from storefront.models import Order, OrderStatus, ProductQuery
from storefront.services.admin_service import AdminService, slugify
from storefront.services.auth_service import AuthService
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService
from storefront.services.query_cache import QueryCache
from storefront.services.review_service import ReviewService
from storefront.services.session import ANONYMOUS
from storefront.services.user_service import UserService
from storefront.utils.error_handler import ApiError, ErrorKind
from tests.conftest import envelope, order_payload

CART_BODY = {
    "items": [
        {"product": {"id": "p-1", "name": "Mug", "price": "12.50", "stock": 4}, "quantity": 2},
    ],
    "totalItems": 2,
}


class Router:
    """MockTransport handler answering by ``(method, path)``"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path.replace("/api", "", 1))
        status, body = self.routes[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path.endswith(path)]


@pytest.fixture
def cache():
    return QueryCache(default_ttl=60)


class TestAuthService:
    """Test AuthService"""

    async def test_login_builds_session(self, api_factory, cache):
        router = Router({
            ("POST", "/auth/login"): (200, envelope({"token": "t-1", "user": {"id": "u-1", "email": "jane@example.com"}})),
        })
        service = AuthService(api_factory(router), cache)

        session = await service.login(" jane@example.com ", "secret")

        assert session.token == "t-1"
        assert session.user.email == "jane@example.com"
        assert json.loads(router.requests[0].content) == {"email": "jane@example.com", "password": "secret"}

    async def test_bad_credentials_are_auth_errors(self, api_factory, cache):
        router = Router({("POST", "/auth/login"): (401, {"success": False, "error": {"message": "Invalid credentials"}})})

        with pytest.raises(ApiError) as exc_info:
            await AuthService(api_factory(router), cache).login("jane@example.com", "wrong")
        assert exc_info.value.kind is ErrorKind.AUTH

    async def test_login_without_token_is_malformed(self, api_factory, cache):
        router = Router({("POST", "/auth/login"): (200, envelope({"user": {"id": "u-1", "email": "x@y.z"}}))})

        with pytest.raises(ApiError) as exc_info:
            await AuthService(api_factory(router), cache).login("x@y.z", "pw")
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"

    def test_logout_clears_user_scope(self, cache, session):
        cache.set(session.cache_scope, "cart", "c")
        cache.set("public", "products", "p")

        AuthService(MagicMock(), cache).logout(session)

        assert cache.get(session.cache_scope, "cart") is None
        assert cache.get("public", "products") == "p"


class TestCartService:
    """Test CartService"""

    async def test_get_cart_is_cached(self, api_factory, cache, session):
        router = Router({("GET", "/cart"): (200, envelope(CART_BODY))})
        service = CartService(api_factory(router), cache)

        cart = await service.get_cart(session)
        await service.get_cart(session)

        assert cart.lines[0].unit_price == Decimal("12.50")
        assert cart.total_item_count == 2
        assert len(router.calls("GET", "/cart")) == 1

    async def test_refresh_refetches(self, api_factory, cache, session):
        router = Router({("GET", "/cart"): (200, envelope(CART_BODY))})
        service = CartService(api_factory(router), cache)

        await service.get_cart(session)
        await service.get_cart(session, refresh=True)

        assert len(router.calls("GET", "/cart")) == 2

    async def test_add_item_invalidates_cart(self, api_factory, cache, session):
        router = Router({
            ("GET", "/cart"): (200, envelope(CART_BODY)),
            ("POST", "/cart/items"): (200, envelope(CART_BODY)),
        })
        service = CartService(api_factory(router), cache)

        await service.get_cart(session)
        await service.add_item(session, "p-1", 1)
        await service.get_cart(session)

        assert len(router.calls("GET", "/cart")) == 2
        assert json.loads(router.calls("POST", "/cart/items")[0].content) == {"productId": "p-1", "quantity": 1}

    async def test_zero_quantity_removes_line(self, api_factory, cache, session):
        router = Router({("DELETE", "/cart/items/p-1"): (200, envelope({"items": []}))})

        cart = await CartService(api_factory(router), cache).update_quantity(session, "p-1", 0)

        assert cart.is_empty
        assert len(router.calls("DELETE", "/cart/items/p-1")) == 1

    async def test_guest_is_rejected_without_a_request(self, api_factory, cache):
        router = Router({})

        with pytest.raises(ApiError) as exc_info:
            await CartService(api_factory(router), cache).get_cart(ANONYMOUS)
        assert exc_info.value.kind is ErrorKind.AUTH
        assert router.requests == []

    async def test_summary_uses_cart_lines(self, api_factory, cache, session):
        router = Router({("GET", "/cart"): (200, envelope(CART_BODY))})

        cart, summary = await CartService(api_factory(router), cache).get_summary(session)

        assert summary.subtotal == Decimal("25.00")
        assert summary.shipping_fee == Decimal("10.00")


class TestProductService:
    """Test ProductService"""

    async def test_list_products_sends_filters_and_caches(self, api_factory, cache):
        router = Router({
            ("GET", "/products"): (
                200,
                envelope(
                    [{"id": "p-1", "name": "Mug", "price": 12.5, "stock": 3}],
                    meta={"page": 1, "limit": 5, "total": 1, "totalPages": 1},
                ),
            ),
        })
        service = ProductService(api_factory(router), cache)
        query = ProductQuery(limit=5).with_filters(search="mug", min_price=10, sort="price_asc")

        page = await service.list_products(query)
        await service.list_products(query)

        assert page.products[0].price == Decimal("12.5")
        assert not page.has_next
        params = router.requests[0].url.params
        assert params["search"] == "mug"
        assert params["minPrice"] == "10"
        assert len(router.requests) == 1


class TestOrderService:
    """Test OrderService"""

    async def test_create_order_invalidates_cart_and_orders(self, api_factory, cache, session):
        router = Router({("POST", "/orders"): (201, envelope(order_payload()))})
        cache.set(session.cache_scope, "cart", "stale cart")
        cache.set(session.cache_scope, "orders", "stale orders")

        order = await OrderService(api_factory(router), cache).create_order(session, {"items": []})

        assert order.order_number == "ORD-1001"
        assert order.total == Decimal("69.94")
        assert cache.get(session.cache_scope, "cart") is None
        assert cache.get(session.cache_scope, "orders") is None

    async def test_cart_invalidated_even_when_response_is_unreadable(self, api_factory, cache, session):
        router = Router({("POST", "/orders"): (201, envelope({"orderNumber": "no id"}))})
        cache.set(session.cache_scope, "cart", "stale cart")

        with pytest.raises(ApiError):
            await OrderService(api_factory(router), cache).create_order(session, {"items": []})
        assert cache.get(session.cache_scope, "cart") is None

    async def test_order_total_aliases(self):
        order = Order.from_dict(order_payload(total=None, totalAmount="12.00"))
        assert order.total == Decimal("12.00")

    async def test_cancel_refused_locally_for_shipped_orders(self, api_factory, cache, session):
        router = Router({})
        order = Order.from_dict(order_payload(status="SHIPPED"))

        with pytest.raises(ApiError) as exc_info:
            await OrderService(api_factory(router), cache).cancel_order(session, order)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert router.requests == []

    async def test_cancel_pending_order(self, api_factory, cache, session):
        router = Router({("PATCH", "/orders/o-1/cancel"): (200, envelope(order_payload(status="CANCELLED")))})

        cancelled = await OrderService(api_factory(router), cache).cancel_order(
            session, Order.from_dict(order_payload())
        )
        assert cancelled.status is OrderStatus.CANCELLED


class TestUserService:
    """Test UserService"""

    async def test_update_profile_refreshes_session_user(self, api_factory, cache, session):
        router = Router({
            ("PATCH", "/users/profile"): (200, envelope({"id": "u-1", "email": "jane@example.com", "firstName": "Janet"})),
        })

        user = await UserService(api_factory(router), cache).update_profile(session, first_name=" Janet ")

        assert user.first_name == "Janet"
        assert session.user.first_name == "Janet"
        assert json.loads(router.requests[0].content) == {"firstName": "Janet"}

    async def test_update_profile_with_nothing_is_local_error(self, api_factory, cache, session):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await UserService(api_factory(router), cache).update_profile(session)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert router.requests == []

    async def test_create_address_validates_locally(self, api_factory, cache, session):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await UserService(api_factory(router), cache).create_address(session, {"street": "1 Main St"})
        assert exc_info.value.context["missing"] == ["city", "state", "zipCode", "country"]
        assert router.requests == []

    async def test_default_address_prefers_flagged(self, api_factory, cache, session):
        addresses = [
            {"id": "a-1", "street": "1 First St", "city": "A", "state": "S", "zipCode": "1", "country": "US"},
            {"id": "a-2", "street": "2 Second St", "city": "B", "state": "S", "zipCode": "2", "country": "US", "isDefault": True},
        ]
        router = Router({("GET", "/users/addresses"): (200, envelope(addresses))})

        address = await UserService(api_factory(router), cache).get_default_address(session)
        assert address.id == "a-2"

    async def test_change_password_sends_both_passwords(self, api_factory, cache, session):
        router = Router({("PATCH", "/users/change-password"): (200, envelope(None))})

        await UserService(api_factory(router), cache).change_password(session, "old-secret", "new-secret-1")

        assert json.loads(router.requests[0].content) == {
            "currentPassword": "old-secret",
            "newPassword": "new-secret-1",
        }
        assert router.requests[0].headers["Authorization"] == "Bearer customer-token"

    async def test_wrong_current_password_is_validation_error(self, api_factory, cache, session):
        router = Router({
            ("PATCH", "/users/change-password"): (
                400, {"success": False, "error": {"message": "Current password is incorrect"}},
            ),
        })

        with pytest.raises(ApiError) as exc_info:
            await UserService(api_factory(router), cache).change_password(session, "wrong", "new-secret-1")
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.message == "Current password is incorrect"

    @pytest.mark.parametrize("new_password", ["short", "x" * 101])
    async def test_new_password_length_checked_locally(self, api_factory, cache, session, new_password):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await UserService(api_factory(router), cache).change_password(session, "old-secret", new_password)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert router.requests == []

    async def test_change_password_requires_login(self, api_factory, cache):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await UserService(api_factory(router), cache).change_password(ANONYMOUS, "old-secret", "new-secret-1")
        assert exc_info.value.kind is ErrorKind.AUTH


class TestReviewService:
    """Test ReviewService"""

    @pytest.mark.parametrize("rating", [0, 6])
    async def test_rating_out_of_range(self, api_factory, cache, session, rating):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await ReviewService(api_factory(router), cache).create_review(session, "p-1", rating)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert router.requests == []

    async def test_new_review_invalidates_public_reviews(self, api_factory, cache, session):
        router = Router({
            ("POST", "/reviews"): (201, envelope({"id": "r-1", "productId": "p-1", "rating": 5, "user": {"firstName": "Jane"}})),
        })
        cache.set("public", "reviews:p-1", [])

        review = await ReviewService(api_factory(router), cache).create_review(session, "p-1", 5, "Great")

        assert review.author_name == "Jane"
        assert cache.get("public", "reviews:p-1") is None

    async def test_edit_sends_only_changed_fields(self, api_factory, cache, session):
        router = Router({
            ("PATCH", "/reviews/r-1"): (200, envelope({"id": "r-1", "productId": "p-1", "rating": 3, "userId": "u-1"})),
        })
        cache.set("public", "reviews:p-1", [])
        cache.set("public", "product:p-1", "detail")

        review = await ReviewService(api_factory(router), cache).update_review(session, "r-1", rating=3)

        assert review.rating == 3
        assert json.loads(router.requests[0].content) == {"rating": 3}
        assert cache.get("public", "reviews:p-1") is None
        assert cache.get("public", "product:p-1") is None

    async def test_delete_invalidates_public_reviews(self, api_factory, cache, session):
        router = Router({("DELETE", "/reviews/r-1"): (204, None)})
        cache.set("public", "reviews:p-1", [])

        await ReviewService(api_factory(router), cache).delete_review(session, "r-1")

        assert len(router.calls("DELETE", "/reviews/r-1")) == 1
        assert cache.get("public", "reviews:p-1") is None


class TestAdminService:
    """Test AdminService"""

    async def test_customer_cannot_use_admin_service(self, api_factory, cache, session):
        router = Router({})
        with pytest.raises(ApiError) as exc_info:
            await AdminService(api_factory(router), cache).list_orders(session)
        assert exc_info.value.kind is ErrorKind.AUTH
        assert router.requests == []

    async def test_illegal_status_transition_is_local_error(self, api_factory, cache, admin_session):
        router = Router({})
        order = Order.from_dict(order_payload(status="DELIVERED"))

        with pytest.raises(ApiError) as exc_info:
            await AdminService(api_factory(router), cache).update_order_status(admin_session, order, OrderStatus.PENDING)
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert router.requests == []

    async def test_status_update_invalidates_admin_orders(self, api_factory, cache, admin_session):
        router = Router({("PATCH", "/orders/o-1/status"): (200, envelope(order_payload(status="CONFIRMED")))})
        cache.set(admin_session.cache_scope, "admin.orders", ["stale"])

        updated = await AdminService(api_factory(router), cache).update_order_status(
            admin_session, Order.from_dict(order_payload()), OrderStatus.CONFIRMED
        )

        assert updated.status is OrderStatus.CONFIRMED
        assert json.loads(router.requests[0].content) == {"status": "CONFIRMED"}
        assert cache.get(admin_session.cache_scope, "admin.orders") is None

    async def test_status_update_invalidates_customer_orders(self, api_factory, cache, admin_session, session):
        router = Router({("PATCH", "/orders/o-1/status"): (200, envelope(order_payload(status="SHIPPED")))})
        cache.set(session.cache_scope, "orders", ["stale list"])
        cache.set(session.cache_scope, "order:o-1", "stale detail")
        cache.set(session.cache_scope, "cart", "untouched")
        cache.set("user:someone-else", "orders", ["other customer"])
        order = Order.from_dict(order_payload(status="PROCESSING", userId=session.user.id))

        await AdminService(api_factory(router), cache).update_order_status(admin_session, order, OrderStatus.SHIPPED)

        assert cache.get(session.cache_scope, "orders") is None
        assert cache.get(session.cache_scope, "order:o-1") is None
        assert cache.get(session.cache_scope, "cart") == "untouched"
        assert cache.get("user:someone-else", "orders") == ["other customer"]

    async def test_create_product_sends_decimal_string(self, api_factory, cache, admin_session):
        router = Router({("POST", "/products"): (201, envelope({"id": "p-9", "name": "Tea Pot", "price": "19.90"}))})

        await AdminService(api_factory(router), cache).create_product(
            admin_session, name="Tea Pot", price=Decimal("19.90"), stock=5, sku="TP-1"
        )

        body = json.loads(router.requests[0].content)
        assert body["price"] == "19.90"
        assert body["slug"] == "tea-pot"

    async def test_create_product_rejects_bad_price(self, api_factory, cache, admin_session):
        router = Router({})
        with pytest.raises(ApiError):
            await AdminService(api_factory(router), cache).create_product(
                admin_session, name="Free", price=Decimal("0"), stock=1, sku="F"
            )
        assert router.requests == []

    async def test_dashboard(self, api_factory, cache, admin_session):
        router = Router({
            ("GET", "/products"): (200, envelope([{"id": "p-1", "name": "Mug", "price": "1"}], meta={"total": 12})),
            ("GET", "/orders"): (
                200,
                envelope([
                    order_payload(id="o-1", status="PENDING", total="10.00"),
                    order_payload(id="o-2", status="DELIVERED", total="20.50"),
                    order_payload(id="o-3", status="CANCELLED", total="99.00"),
                ]),
            ),
        })

        stats = await AdminService(api_factory(router), cache).dashboard(admin_session)

        assert stats.total_products == 12
        assert stats.total_orders == 3
        assert stats.pending_orders == 1
        assert stats.delivered_orders == 1
        assert stats.revenue == Decimal("30.50")

    def test_slugify(self):
        assert slugify("  Blue Tea -- Pot! ") == "blue-tea-pot"


class TestNotificationService:
    """Test NotificationService"""

    async def test_skipped_without_admin_chat(self):
        service = NotificationService(None)
        service.bot = MagicMock()
        assert await service.send_admin_notification("hi") is False

    async def test_skipped_without_bot(self):
        assert await NotificationService(42).send_admin_notification("hi") is False

    async def test_new_order_notification(self):
        service = NotificationService(42, "$")
        service.bot = MagicMock()
        service.bot.send_message = AsyncMock()

        sent = await service.notify_new_order(Order.from_dict(order_payload()), "Jane <Doe>")

        assert sent is True
        kwargs = service.bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == 42
        assert "ORD-1001" in kwargs["text"]
        assert "Jane &lt;Doe&gt;" in kwargs["text"]
        assert "$69.94" in kwargs["text"]

    async def test_telegram_failure_is_logged_not_raised(self):
        service = NotificationService(42)
        service.bot = MagicMock()
        service.bot.send_message = AsyncMock(side_effect=TelegramError("chat not found"))

        assert await service.send_admin_notification("hi") is False


class TestContainer:
    """Test Container wiring"""

    def test_services_share_client_and_cache(self, settings):
        container = Container(config=settings, api=MagicMock())

        cart_service = container.get_cart_service()

        assert container.get_cart_service() is cart_service
        assert cart_service.api is container.api
        assert cart_service.cache is container.get_order_service().cache

    def test_bot_reaches_notification_service(self, settings):
        container = Container(config=settings, api=MagicMock())
        bot = MagicMock()

        container.set_bot(bot)

        assert container.get_bot() is bot
        assert container.get_notification_service().bot is bot
        assert container.get_notification_service().admin_chat_id == 987654321
