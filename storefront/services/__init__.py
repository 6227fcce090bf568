"""API-backed service layer."""

from .admin_service import AdminService
from .api_client import ApiClient
from .auth_service import AuthService
from .cart_service import CartService
from .order_service import OrderService
from .product_service import ProductService
from .query_cache import INVALIDATIONS, QueryCache
from .review_service import ReviewService
from .session import Session
from .user_service import UserService

__all__ = [
    "AdminService",
    "ApiClient",
    "AuthService",
    "CartService",
    "INVALIDATIONS",
    "OrderService",
    "ProductService",
    "QueryCache",
    "ReviewService",
    "Session",
    "UserService",
]
