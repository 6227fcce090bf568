"""
Application constants for the storefront bot

Centralizes pricing rules, limits and callback data prefixes so handlers,
keyboards and services agree on them.
"""

from decimal import Decimal
from typing import Final


class PricingRules:
    """Client-side pricing summary rules (display only, the API charges)"""

    FREE_SHIPPING_THRESHOLD: Final[Decimal] = Decimal("100.00")
    FLAT_SHIPPING_FEE: Final[Decimal] = Decimal("10.00")
    TAX_RATE: Final[Decimal] = Decimal("0.08")
    CENT: Final[Decimal] = Decimal("0.01")


class CatalogSettings:
    """Catalog browsing defaults"""

    DEFAULT_PAGE_SIZE: Final[int] = 12
    DEFAULT_SORT: Final[str] = "-createdAt"
    ADMIN_PAGE_SIZE: Final[int] = 100

    SORT_OPTIONS: Final[dict[str, str]] = {
        "+price": "Price: Low to High",
        "-price": "Price: High to Low",
        "+name": "Name: A to Z",
        "-name": "Name: Z to A",
        "-createdAt": "Newest First",
        "+createdAt": "Oldest First",
    }

    # (min, max) presets offered instead of a slider
    PRICE_RANGES: Final[dict[str, tuple[int | None, int | None]]] = {
        "any": (None, None),
        "0-50": (0, 50),
        "50-100": (50, 100),
        "100-500": (100, 500),
        "500+": (500, None),
    }


class RetrySettings:
    """Timeouts for calls to the storefront API"""

    CONNECTION_TIMEOUT_SECONDS: Final[float] = 10.0
    SLOW_REQUEST_THRESHOLD_MS: Final[int] = 1000


class CacheSettings:
    """Query cache TTLs"""

    DEFAULT_TTL_SECONDS: Final[int] = 60
    PUBLIC_SCOPE: Final[str] = "public"
    MAX_ENTRIES: Final[int] = 5000
    CLEANUP_INTERVAL_SECONDS: Final[int] = 300


class AuthSettings:
    """Password rules enforced by the API, checked before sending"""

    MIN_PASSWORD_LENGTH: Final[int] = 8
    MAX_PASSWORD_LENGTH: Final[int] = 100


class ConversationSettings:
    """Limits for multi-step conversations"""

    CHECKOUT_TIMEOUT_MINUTES: Final[int] = 30


class LoggingSettings:
    """Logging file sizes and rotation settings"""

    MAX_LOG_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB
    MAIN_LOG_BACKUP_COUNT: Final[int] = 10
    ERROR_LOG_BACKUP_COUNT: Final[int] = 10


class FileSettings:
    """File paths and directory settings"""

    LOGS_DIRECTORY: Final[str] = "logs"
    MAIN_LOG_FILE: Final[str] = "storefront.log"
    ERROR_LOG_FILE: Final[str] = "errors.log"


class TelegramSettings:
    """Telegram bot specific constants"""

    MAX_MESSAGE_LENGTH: Final[int] = 4096
    CALLBACK_DATA_MAX_LENGTH: Final[int] = 64
    ALLOWED_UPDATE_TYPES: Final[list] = ["message", "callback_query"]


class ConfigValidation:
    """Values accepted by the configuration validator"""

    MIN_BOT_TOKEN_LENGTH: Final[int] = 40
    VALID_ENVIRONMENTS: Final[list[str]] = ["development", "test", "staging", "production"]
    VALID_LOG_LEVELS: Final[list[str]] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    MAX_PAGE_SIZE: Final[int] = 50
    SECURE_FILE_PERMISSIONS: Final[int] = 0o077


class ErrorMessages:
    """User-facing error messages"""

    GENERIC: Final[str] = "Something went wrong. Please try again."
    VALIDATION: Final[str] = "Please check your input and try again."
    AUTH: Final[str] = "Your session has expired. Please log in again."
    NETWORK: Final[str] = "We couldn't reach the store right now. Please try again in a moment."
    SERVER: Final[str] = "The store is having trouble right now. Please try again later."


class Callbacks:
    """Callback data shared by keyboards and handler patterns; ``_`` suffix marks a prefix"""

    MAIN: Final[str] = "main_home"
    LOGIN: Final[str] = "auth_login"
    REGISTER: Final[str] = "auth_register"
    LOGOUT: Final[str] = "auth_logout"

    PRODUCTS: Final[str] = "products_list"
    PRODUCTS_PAGE: Final[str] = "products_page_"
    PRODUCTS_SORT: Final[str] = "products_sort_"
    PRODUCTS_PRICE: Final[str] = "products_price_"
    PRODUCTS_FILTERS: Final[str] = "products_filters"
    PRODUCTS_SEARCH: Final[str] = "products_search"
    PRODUCTS_CLEAR: Final[str] = "products_clear"
    PRODUCT: Final[str] = "product_"
    ADD_TO_CART: Final[str] = "addcart_"
    REVIEWS: Final[str] = "reviews_"
    REVIEW_WRITE: Final[str] = "review_write_"
    REVIEW_RATE: Final[str] = "review_rate_"
    REVIEW_SKIP: Final[str] = "review_skip"
    REVIEW_EDIT: Final[str] = "review_edit_"
    REVIEW_DELETE: Final[str] = "review_delete_"
    REVIEW_DELETE_CONFIRM: Final[str] = "review_delyes_"

    CART_VIEW: Final[str] = "cart_view"
    CART_INC: Final[str] = "cart_inc_"
    CART_DEC: Final[str] = "cart_dec_"
    CART_REMOVE: Final[str] = "cart_remove_"
    CART_CLEAR: Final[str] = "cart_clear"
    CART_CLEAR_CONFIRM: Final[str] = "cart_clearyes"

    CHECKOUT: Final[str] = "checkout_start"
    CO_SKIP: Final[str] = "co_skip"
    CO_KEEP: Final[str] = "co_keep"
    CO_SAVED: Final[str] = "co_saved"
    CO_PAY: Final[str] = "co_pay_"
    CO_BACK: Final[str] = "co_back"
    CO_EDIT_ADDRESS: Final[str] = "co_edit"
    CO_PLACE: Final[str] = "co_place"
    CO_CANCEL: Final[str] = "co_cancel"

    ORDERS: Final[str] = "orders_list"
    ORDER: Final[str] = "order_view_"
    ORDER_CANCEL: Final[str] = "order_cancel_"

    PROFILE: Final[str] = "profile_view"
    PROFILE_EDIT: Final[str] = "profile_edit_"
    PASSWORD_CHANGE: Final[str] = "profile_password"
    ADDRESSES: Final[str] = "address_list"
    ADDRESS_ADD: Final[str] = "address_add"
    ADDRESS_DEFAULT: Final[str] = "address_default_"
    ADDRESS_DELETE: Final[str] = "address_delete_"

    ADMIN: Final[str] = "admin_dashboard"
    ADMIN_ORDERS: Final[str] = "admin_orders_"
    ADMIN_ORDER: Final[str] = "admin_order_"
    ADMIN_STATUS: Final[str] = "admin_status_"
    ADMIN_PRODUCTS: Final[str] = "admin_products"
    ADMIN_PRODUCT: Final[str] = "admin_product_"
    ADMIN_TOGGLE: Final[str] = "admin_toggle_"
    ADMIN_DELETE: Final[str] = "admin_delete_"
    ADMIN_DELETE_CONFIRM: Final[str] = "admin_delyes_"
    ADMIN_EDIT: Final[str] = "admin_edit_"
    ADMIN_NEW_PRODUCT: Final[str] = "admin_newproduct"
    ADMIN_SKIP: Final[str] = "admin_skip"
