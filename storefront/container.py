"""
Dependency container for the bot.

Owns the single ``ApiClient`` and ``QueryCache`` and the services built on
them. ``initialize`` runs at application start and ``shutdown`` closes the
HTTP client.
"""

import logging
from typing import Optional

from telegram import Bot

from storefront.config import Settings, get_config
from storefront.services.admin_service import AdminService
from storefront.services.api_client import ApiClient
from storefront.services.auth_service import AuthService
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService
from storefront.services.query_cache import QueryCache
from storefront.services.review_service import ReviewService
from storefront.services.user_service import UserService

logger = logging.getLogger(__name__)


class Container:
    """Simple dependency injection container"""

    def __init__(self, config: Optional[Settings] = None, api: Optional[ApiClient] = None):
        self.config = config or get_config()
        self.api = api or ApiClient(self.config.api_base_url, timeout=self.config.api_timeout_seconds)
        self.cache = QueryCache(default_ttl=self.config.cache_ttl_seconds)
        self.services = {}
        self._bot: Optional[Bot] = None

    def set_bot(self, bot: Bot) -> None:
        self._bot = bot
        self.get_notification_service().bot = bot

    def get_bot(self) -> Optional[Bot]:
        return self._bot

    def _service(self, name: str, factory):
        if name not in self.services:
            self.services[name] = factory(self.api, self.cache)
        return self.services[name]

    def get_auth_service(self) -> AuthService:
        return self._service("auth_service", AuthService)

    def get_cart_service(self) -> CartService:
        return self._service("cart_service", CartService)

    def get_product_service(self) -> ProductService:
        return self._service("product_service", ProductService)

    def get_order_service(self) -> OrderService:
        return self._service("order_service", OrderService)

    def get_user_service(self) -> UserService:
        return self._service("user_service", UserService)

    def get_review_service(self) -> ReviewService:
        return self._service("review_service", ReviewService)

    def get_admin_service(self) -> AdminService:
        return self._service("admin_service", AdminService)

    def get_notification_service(self) -> NotificationService:
        if "notification_service" not in self.services:
            self.services["notification_service"] = NotificationService(
                self.config.admin_chat_id, self.config.currency_symbol
            )
        return self.services["notification_service"]

    def get_config(self) -> Settings:
        return self.config

    async def shutdown(self) -> None:
        await self.api.aclose()
        self.cache.clear()
        logger.info("Container shut down")


_container: Optional[Container] = None


def initialize_container(config: Optional[Settings] = None, api: Optional[ApiClient] = None) -> Container:
    """Create the global container; call once at startup"""
    global _container
    _container = Container(config=config, api=api)
    logger.info("Container initialized for API %s", _container.config.api_base_url)
    return _container


def get_container() -> Container:
    """Get the global container instance, creating it on first use"""
    if _container is None:
        return initialize_container()
    return _container


def reset_container() -> None:
    global _container
    _container = None
