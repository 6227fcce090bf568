"""
Test configuration and fixtures for the storefront bot
"""

import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from storefront.config import Settings, reset_config
from storefront.container import reset_container
from storefront.models import CartLine, CartSnapshot, User, UserRole
from storefront.services.api_client import ApiClient
from storefront.services.session import SESSION_KEY, Session


@pytest.fixture(autouse=True)
def mock_env():
    """Mock environment variables for testing"""
    test_env = {
        "BOT_TOKEN": "123456789:test_bot_token_for_the_storefront",
        "ADMIN_CHAT_ID": "987654321",
        "API_BASE_URL": "https://api.test.example.com/api",
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
    }

    reset_config()
    reset_container()
    with patch.dict(os.environ, test_env, clear=True):
        yield test_env
    reset_config()
    reset_container()


@pytest.fixture
def settings():
    return Settings(
        bot_token="123456789:test_bot_token_for_the_storefront",
        admin_chat_id=987654321,
        api_base_url="https://api.test.example.com/api",
        environment="test",
        default_country="United States",
    )


@pytest.fixture
def customer():
    return User(id="u-1", email="jane@example.com", first_name="Jane", last_name="Doe")


@pytest.fixture
def admin_user():
    return User(id="a-1", email="admin@example.com", first_name="Ada", last_name="Admin", role=UserRole.ADMIN)


@pytest.fixture
def session(customer):
    return Session(token="customer-token", user=customer)


@pytest.fixture
def admin_session(admin_user):
    return Session(token="admin-token", user=admin_user)


def make_cart(*lines) -> CartSnapshot:
    """Cart from ``(product_id, price, quantity)`` tuples"""
    cart_lines = [
        CartLine(product_id=pid, name=f"Product {pid}", unit_price=Decimal(price), quantity=qty, available_stock=10)
        for pid, price, qty in lines
    ]
    return CartSnapshot(lines=cart_lines, total_item_count=sum(line.quantity for line in cart_lines))


@pytest.fixture
def cart():
    return make_cart(("p-1", "25.00", 2), ("p-2", "5.50", 1))


def order_payload(**overrides):
    payload = {
        "id": "o-1",
        "orderNumber": "ORD-1001",
        "status": "PENDING",
        "subtotal": "55.50",
        "tax": "4.44",
        "shipping": "10.00",
        "total": "69.94",
        "createdAt": "2024-05-01T10:20:30.000Z",
        "items": [
            {"productId": "p-1", "quantity": 2, "price": "25.00", "product": {"id": "p-1", "name": "Product p-1"}},
            {"productId": "p-2", "quantity": 1, "price": "5.50", "product": {"id": "p-2", "name": "Product p-2"}},
        ],
    }
    payload.update(overrides)
    return payload


def envelope(data=None, meta=None, success=True):
    body = {"success": success, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body


@pytest.fixture
def api_factory():
    """Build an ``ApiClient`` whose requests go to ``handler(request)``"""
    clients = []

    def build(handler):
        client = ApiClient("https://api.test.example.com/api", timeout=5, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    return build


@pytest.fixture
def mock_container(settings):
    """Container double with async service mocks"""
    container = MagicMock()
    container.get_config.return_value = settings
    services = {
        "auth": MagicMock(),
        "cart": MagicMock(),
        "product": MagicMock(),
        "order": MagicMock(),
        "user": MagicMock(),
        "review": MagicMock(),
        "admin": MagicMock(),
        "notification": MagicMock(),
    }
    for name in ("cart", "product", "order", "user", "review", "admin", "auth"):
        service = services[name]
        for method in (
            "get_cart", "get_summary", "add_item", "update_quantity", "remove_item", "clear",
            "list_products", "get_product", "list_orders", "get_order", "create_order", "cancel_order",
            "get_profile", "update_profile", "list_addresses", "get_default_address", "create_address",
            "set_default_address", "delete_address", "change_password",
            "list_reviews", "create_review", "update_review", "delete_review",
            "create_product", "update_product", "set_product_active", "delete_product",
            "update_order_status", "dashboard", "login", "register",
        ):
            setattr(service, method, AsyncMock())
    services["notification"].notify_new_order = AsyncMock(return_value=True)
    services["user"].get_default_address.return_value = None

    container.get_auth_service.return_value = services["auth"]
    container.get_cart_service.return_value = services["cart"]
    container.get_product_service.return_value = services["product"]
    container.get_order_service.return_value = services["order"]
    container.get_user_service.return_value = services["user"]
    container.get_review_service.return_value = services["review"]
    container.get_admin_service.return_value = services["admin"]
    container.get_notification_service.return_value = services["notification"]
    container.services = services
    return container


@pytest.fixture
def mock_context():
    """Mock context for testing"""
    context = MagicMock()
    context.user_data = {}
    context.bot_data = {}
    context.chat_data = {}
    return context


@pytest.fixture
def logged_in_context(mock_context, session):
    mock_context.user_data[SESSION_KEY] = session
    return mock_context


@pytest.fixture
def admin_context(mock_context, admin_session):
    mock_context.user_data[SESSION_KEY] = admin_session
    return mock_context


@pytest.fixture
def callback_update():
    """Update carrying a button press; set ``.callback_query.data`` per test"""
    update = MagicMock()
    update.effective_user.id = 123456789
    update.effective_user.username = "testuser"
    query = MagicMock()
    query.answer = AsyncMock()
    query.edit_message_text = AsyncMock()
    query.message.reply_text = AsyncMock()
    update.callback_query = query
    update.effective_message = query.message
    return update


@pytest.fixture
def message_update():
    """Update carrying a text message; set ``.message.text`` per test"""
    update = MagicMock()
    update.effective_user.id = 123456789
    update.effective_user.username = "testuser"
    update.callback_query = None
    update.message.reply_text = AsyncMock()
    update.message.delete = AsyncMock()
    update.effective_message = update.message
    return update
