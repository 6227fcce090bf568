"""
Main menu and catalog keyboards
"""

from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from storefront.models import Product, ProductPage, ProductQuery
from storefront.utils.constants import CatalogSettings, Callbacks
from storefront.utils.helpers import format_price


def back_to_main_button() -> InlineKeyboardButton:
    return InlineKeyboardButton("🏠 Main Menu", callback_data=Callbacks.MAIN)


def get_back_to_main_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[back_to_main_button()]])


def get_main_menu_keyboard(session) -> InlineKeyboardMarkup:
    """Main page; guests get login/register, customers get cart, orders and profile"""
    keyboard = [[InlineKeyboardButton("🛍️ Browse Products", callback_data=Callbacks.PRODUCTS)]]

    if session.is_authenticated:
        keyboard.append([
            InlineKeyboardButton("🛒 Cart", callback_data=Callbacks.CART_VIEW),
            InlineKeyboardButton("📋 My Orders", callback_data=Callbacks.ORDERS),
        ])
        keyboard.append([InlineKeyboardButton("👤 Profile", callback_data=Callbacks.PROFILE)])
        if session.is_admin:
            keyboard.append([InlineKeyboardButton("🛠️ Admin Console", callback_data=Callbacks.ADMIN)])
        keyboard.append([InlineKeyboardButton("🚪 Log out", callback_data=Callbacks.LOGOUT)])
    else:
        keyboard.append([
            InlineKeyboardButton("🔑 Log in", callback_data=Callbacks.LOGIN),
            InlineKeyboardButton("📝 Register", callback_data=Callbacks.REGISTER),
        ])
    return InlineKeyboardMarkup(keyboard)


def get_login_prompt_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("🔑 Log in", callback_data=Callbacks.LOGIN),
            InlineKeyboardButton("📝 Register", callback_data=Callbacks.REGISTER),
        ],
        [back_to_main_button()],
    ])


def get_catalog_keyboard(page: ProductPage, currency_symbol: str = "$") -> InlineKeyboardMarkup:
    keyboard = [
        [
            InlineKeyboardButton(
                f"{product.name} · {format_price(product.price, currency_symbol)}",
                callback_data=f"{Callbacks.PRODUCT}{product.id}",
            )
        ]
        for product in page.products
    ]

    nav_row = []
    if page.has_previous:
        nav_row.append(InlineKeyboardButton("⬅️ Prev", callback_data=f"{Callbacks.PRODUCTS_PAGE}{page.page - 1}"))
    if page.total_pages > 1:
        nav_row.append(InlineKeyboardButton(f"{page.page}/{page.total_pages}", callback_data=Callbacks.PRODUCTS))
    if page.has_next:
        nav_row.append(InlineKeyboardButton("Next ➡️", callback_data=f"{Callbacks.PRODUCTS_PAGE}{page.page + 1}"))
    if nav_row:
        keyboard.append(nav_row)

    keyboard.append([
        InlineKeyboardButton("🔍 Search", callback_data=Callbacks.PRODUCTS_SEARCH),
        InlineKeyboardButton("⚙️ Sort & Filter", callback_data=Callbacks.PRODUCTS_FILTERS),
    ])
    keyboard.append([
        InlineKeyboardButton("🛒 Cart", callback_data=Callbacks.CART_VIEW),
        back_to_main_button(),
    ])
    return InlineKeyboardMarkup(keyboard)


def get_filters_keyboard(query: ProductQuery) -> InlineKeyboardMarkup:
    """Sort options and price presets; the active choice is ticked"""
    keyboard = []
    for sort_key, label in CatalogSettings.SORT_OPTIONS.items():
        mark = "✅ " if query.sort == sort_key else ""
        keyboard.append([InlineKeyboardButton(f"{mark}{label}", callback_data=f"{Callbacks.PRODUCTS_SORT}{sort_key}")])

    price_row = []
    for range_key, (low, high) in CatalogSettings.PRICE_RANGES.items():
        active = (query.min_price, query.max_price) == (low, high)
        label = "Any price" if range_key == "any" else range_key
        price_row.append(
            InlineKeyboardButton(f"{'✅ ' if active else ''}{label}", callback_data=f"{Callbacks.PRODUCTS_PRICE}{range_key}")
        )
    keyboard.append(price_row[:3])
    keyboard.append(price_row[3:])

    keyboard.append([InlineKeyboardButton("🧹 Clear filters", callback_data=Callbacks.PRODUCTS_CLEAR)])
    keyboard.append([InlineKeyboardButton("⬅️ Back to products", callback_data=Callbacks.PRODUCTS)])
    return InlineKeyboardMarkup(keyboard)


def get_product_keyboard(product: Product, can_buy: bool) -> InlineKeyboardMarkup:
    keyboard = []
    if product.in_stock and can_buy:
        keyboard.append([InlineKeyboardButton("➕ Add to Cart", callback_data=f"{Callbacks.ADD_TO_CART}{product.id}")])
    elif product.in_stock:
        keyboard.append([InlineKeyboardButton("🔑 Log in to buy", callback_data=Callbacks.LOGIN)])
    keyboard.append([InlineKeyboardButton("⭐ Reviews", callback_data=f"{Callbacks.REVIEWS}{product.id}")])
    keyboard.append([InlineKeyboardButton("⬅️ Back to products", callback_data=Callbacks.PRODUCTS)])
    return InlineKeyboardMarkup(keyboard)


def get_reviews_keyboard(product_id: str, can_review: bool, own_review_id: Optional[str] = None) -> InlineKeyboardMarkup:
    keyboard = []
    if own_review_id:
        keyboard.append([
            InlineKeyboardButton("✏️ Edit my review", callback_data=f"{Callbacks.REVIEW_EDIT}{own_review_id}"),
            InlineKeyboardButton("🗑️ Delete", callback_data=f"{Callbacks.REVIEW_DELETE}{own_review_id}"),
        ])
    elif can_review:
        keyboard.append([InlineKeyboardButton("✍️ Write a review", callback_data=f"{Callbacks.REVIEW_WRITE}{product_id}")])
    keyboard.append([InlineKeyboardButton("⬅️ Back to product", callback_data=f"{Callbacks.PRODUCT}{product_id}")])
    return InlineKeyboardMarkup(keyboard)


def get_review_delete_keyboard(product_id: str, review_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✅ Yes, delete", callback_data=f"{Callbacks.REVIEW_DELETE_CONFIRM}{review_id}"),
            InlineKeyboardButton("❌ Keep it", callback_data=f"{Callbacks.REVIEWS}{product_id}"),
        ]
    ])


def get_rating_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("⭐" * rating, callback_data=f"{Callbacks.REVIEW_RATE}{rating}")
            for rating in range(1, 4)
        ],
        [
            InlineKeyboardButton("⭐" * rating, callback_data=f"{Callbacks.REVIEW_RATE}{rating}")
            for rating in range(4, 6)
        ],
    ])


def get_skip_keyboard(callback_data: str, label: str = "⏭️ Skip") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton(label, callback_data=callback_data)]])
