"""
Data model for the storefront API

Dataclasses built from the API's camelCase JSON. Money is always a
``Decimal``; the API may send it as a string or a number.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

from storefront.utils.constants import CatalogSettings
from storefront.utils.error_handler import ApiError

T = TypeVar("T")


def parse_money(value: Any) -> Decimal:
    """Convert an API money field to ``Decimal`` without going through float"""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError(f"Invalid money value: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid money value: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid money value: {value!r}")
    return amount


def money_to_wire(value: Decimal) -> str:
    """Canonical wire form for money: a plain decimal string"""
    return format(value, "f")


def parse_payload(builder: Callable[[Any], T], payload: Any) -> T:
    """Run a ``from_dict`` style builder, turning shape errors into a SERVER ApiError"""
    try:
        return builder(payload)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ApiError.malformed(200, f"{type(exc).__name__}: {exc}") from exc


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


@dataclass
class User:
    """Authenticated user"""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            email=data["email"],
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            role=UserRole(data.get("role") or UserRole.CUSTOMER.value),
        )


@dataclass
class Product:
    """Catalog product"""

    id: str
    name: str
    price: Decimal
    stock: int = 0
    slug: str = ""
    description: str = ""
    sku: str = ""
    compare_price: Optional[Decimal] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    is_active: bool = True
    average_rating: Optional[float] = None
    review_count: int = 0

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        category = data.get("category") or {}
        compare_price = data.get("comparePrice")
        rating = data.get("averageRating")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            price=parse_money(data.get("price")),
            stock=int(data.get("stock") or 0),
            slug=data.get("slug") or "",
            description=data.get("description") or "",
            sku=data.get("sku") or "",
            compare_price=parse_money(compare_price) if compare_price not in (None, "") else None,
            category_id=data.get("categoryId") or category.get("id"),
            category_name=category.get("name"),
            is_active=bool(data.get("isActive", True)),
            average_rating=float(rating) if rating is not None else None,
            review_count=int(data.get("reviewCount") or 0),
        )


@dataclass
class ProductPage:
    """One page of a product listing"""

    products: List[Product]
    page: int = 1
    limit: int = CatalogSettings.DEFAULT_PAGE_SIZE
    total: int = 0
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @classmethod
    def from_response(cls, data: List[Dict[str, Any]], meta: Optional[Dict[str, Any]]) -> "ProductPage":
        meta = meta or {}
        products = [Product.from_dict(item) for item in data or []]
        return cls(
            products=products,
            page=int(meta.get("page") or 1),
            limit=int(meta.get("limit") or len(products) or CatalogSettings.DEFAULT_PAGE_SIZE),
            total=int(meta.get("total") or len(products)),
            total_pages=max(int(meta.get("totalPages") or 1), 1),
        )


@dataclass(frozen=True)
class ProductQuery:
    """Catalog filters, sort and page"""

    page: int = 1
    limit: int = CatalogSettings.DEFAULT_PAGE_SIZE
    search: str = ""
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    sort: str = CatalogSettings.DEFAULT_SORT
    include_inactive: bool = False

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": self.page, "limit": self.limit, "sort": self.sort}
        if self.search:
            params["search"] = self.search
        if self.min_price is not None:
            params["minPrice"] = self.min_price
        if self.max_price is not None:
            params["maxPrice"] = self.max_price
        if self.include_inactive:
            params["includeInactive"] = "true"
        return params

    def cache_key(self) -> str:
        parts = [f"{name}={value}" for name, value in sorted(self.to_params().items())]
        return "products:" + "&".join(parts)

    def with_filters(self, **changes) -> "ProductQuery":
        """Change filters; any filter change goes back to the first page"""
        return replace(self, page=1, **changes)

    def with_page(self, page: int) -> "ProductQuery":
        return replace(self, page=max(page, 1))


@dataclass
class CartLine:
    """One product in the cart"""

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    available_stock: int = 0

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLine":
        product = data["product"]
        return cls(
            product_id=str(product["id"]),
            name=product["name"],
            unit_price=parse_money(product.get("price")),
            quantity=int(data["quantity"]),
            available_stock=int(product.get("stock") or 0),
        )


@dataclass
class CartSnapshot:
    """Cart contents as last read from the API"""

    lines: List[CartLine] = field(default_factory=list)
    total_item_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CartSnapshot":
        if not data:
            return cls()
        lines = [CartLine.from_dict(item) for item in data.get("items") or []]
        total_items = data.get("totalItems")
        if total_items is None:
            total_items = sum(line.quantity for line in lines)
        return cls(lines=lines, total_item_count=int(total_items))


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# statuses an admin may move an order to; the API has the final say
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
}

CANCELLABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING)


@dataclass
class OrderItem:
    product_id: str
    name: str
    quantity: int
    price: Decimal
    total: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        product = data.get("product") or {}
        price = parse_money(data.get("price"))
        quantity = int(data["quantity"])
        total = data.get("total")
        return cls(
            product_id=str(data.get("productId") or product.get("id")),
            name=product.get("name") or data.get("name") or "",
            quantity=quantity,
            price=price,
            total=parse_money(total) if total is not None else price * quantity,
        )


@dataclass
class Order:
    """Placed order"""

    id: str
    order_number: str
    status: OrderStatus
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    items: List[OrderItem] = field(default_factory=list)
    created_at: str = ""
    shipping_address: Optional[Dict[str, Any]] = None
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None

    @property
    def can_cancel(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    @property
    def allowed_transitions(self) -> List[OrderStatus]:
        return ORDER_STATUS_TRANSITIONS[self.status]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        user = data.get("user") or {}
        return cls(
            id=str(data["id"]),
            order_number=str(data.get("orderNumber") or data["id"]),
            status=OrderStatus(data.get("status") or OrderStatus.PENDING.value),
            subtotal=parse_money(_first_present(data, "subtotal", "subtotalAmount")),
            tax=parse_money(_first_present(data, "tax", "taxAmount")),
            shipping=parse_money(_first_present(data, "shipping", "shippingAmount")),
            total=parse_money(_first_present(data, "total", "totalAmount")),
            items=[OrderItem.from_dict(item) for item in data.get("items") or []],
            created_at=data.get("createdAt") or "",
            shipping_address=data.get("shippingAddress"),
            customer_email=user.get("email"),
            customer_id=_optional_str(data.get("userId") or user.get("id")),
        )


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _first_present(data: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


@dataclass
class Address:
    """Saved address from the user's address book"""

    id: str
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            id=str(data["id"]),
            street=data.get("street") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip_code=data.get("zipCode") or "",
            country=data.get("country") or "",
            is_default=bool(data.get("isDefault", False)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
            "isDefault": self.is_default,
        }


@dataclass
class Review:
    id: str
    product_id: str
    user_id: str
    rating: int
    comment: str = ""
    author_name: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        user = data.get("user") or {}
        author = f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()
        return cls(
            id=str(data["id"]),
            product_id=str(data.get("productId") or ""),
            user_id=str(data.get("userId") or user.get("id") or ""),
            rating=int(data["rating"]),
            comment=data.get("comment") or "",
            author_name=author or "Anonymous",
            created_at=data.get("createdAt") or "",
        )
