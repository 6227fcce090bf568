"""
Admin console and profile keyboards
"""

from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from storefront.keyboards.menu_keyboards import back_to_main_button
from storefront.models import Address, Order, OrderStatus, Product
from storefront.utils.constants import Callbacks
from storefront.utils.helpers import STATUS_EMOJI, format_price

ALL_STATUSES = "ALL"


def get_admin_dashboard_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("📋 Orders", callback_data=f"{Callbacks.ADMIN_ORDERS}{ALL_STATUSES}")],
        [InlineKeyboardButton("⏳ Pending orders", callback_data=f"{Callbacks.ADMIN_ORDERS}{OrderStatus.PENDING.value}")],
        [InlineKeyboardButton("📦 Products", callback_data=Callbacks.ADMIN_PRODUCTS)],
        [InlineKeyboardButton("➕ New product", callback_data=Callbacks.ADMIN_NEW_PRODUCT)],
        [back_to_main_button()],
    ])


def get_admin_orders_keyboard(orders: List[Order], status: Optional[OrderStatus]) -> InlineKeyboardMarkup:
    keyboard = [
        [
            InlineKeyboardButton(
                f"{STATUS_EMOJI.get(order.status, '')} {order.order_number} · {format_price(order.total)}",
                callback_data=f"{Callbacks.ADMIN_ORDER}{order.id}",
            )
        ]
        for order in orders
    ]

    filter_buttons = []
    for option in [None, *OrderStatus]:
        value = option.value if option else ALL_STATUSES
        label = (STATUS_EMOJI[option] if option else "All")
        if option is status:
            label = f"[{label}]"
        filter_buttons.append(InlineKeyboardButton(label, callback_data=f"{Callbacks.ADMIN_ORDERS}{value}"))
    keyboard.append(filter_buttons[:4])
    keyboard.append(filter_buttons[4:])
    keyboard.append([InlineKeyboardButton("⬅️ Dashboard", callback_data=Callbacks.ADMIN)])
    return InlineKeyboardMarkup(keyboard)


def get_admin_order_keyboard(order: Order) -> InlineKeyboardMarkup:
    """One button per status the order may move to next"""
    keyboard = [
        [
            InlineKeyboardButton(
                f"{STATUS_EMOJI[target]} Mark {target.value.title()}",
                callback_data=f"{Callbacks.ADMIN_STATUS}{order.id}_{target.value}",
            )
        ]
        for target in order.allowed_transitions
    ]
    keyboard.append([InlineKeyboardButton("⬅️ Orders", callback_data=f"{Callbacks.ADMIN_ORDERS}{ALL_STATUSES}")])
    return InlineKeyboardMarkup(keyboard)


def get_admin_products_keyboard(products: List[Product]) -> InlineKeyboardMarkup:
    keyboard = [
        [
            InlineKeyboardButton(
                f"{'🟢' if product.is_active else '⚪'} {product.name} · {format_price(product.price)} · {product.stock}",
                callback_data=f"{Callbacks.ADMIN_PRODUCT}{product.id}",
            )
        ]
        for product in products
    ]
    keyboard.append([InlineKeyboardButton("➕ New product", callback_data=Callbacks.ADMIN_NEW_PRODUCT)])
    keyboard.append([InlineKeyboardButton("⬅️ Dashboard", callback_data=Callbacks.ADMIN)])
    return InlineKeyboardMarkup(keyboard)


def get_admin_product_keyboard(product: Product) -> InlineKeyboardMarkup:
    toggle_label = "⚪ Deactivate" if product.is_active else "🟢 Activate"
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("💰 Edit price", callback_data=f"{Callbacks.ADMIN_EDIT}price_{product.id}"),
            InlineKeyboardButton("📦 Edit stock", callback_data=f"{Callbacks.ADMIN_EDIT}stock_{product.id}"),
        ],
        [InlineKeyboardButton(toggle_label, callback_data=f"{Callbacks.ADMIN_TOGGLE}{product.id}")],
        [InlineKeyboardButton("🗑️ Delete", callback_data=f"{Callbacks.ADMIN_DELETE}{product.id}")],
        [InlineKeyboardButton("⬅️ Products", callback_data=Callbacks.ADMIN_PRODUCTS)],
    ])


def get_admin_delete_confirmation_keyboard(product_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✅ Yes, delete", callback_data=f"{Callbacks.ADMIN_DELETE_CONFIRM}{product_id}"),
            InlineKeyboardButton("❌ No", callback_data=f"{Callbacks.ADMIN_PRODUCT}{product_id}"),
        ]
    ])


def get_profile_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✏️ First name", callback_data=f"{Callbacks.PROFILE_EDIT}first"),
            InlineKeyboardButton("✏️ Last name", callback_data=f"{Callbacks.PROFILE_EDIT}last"),
        ],
        [InlineKeyboardButton("📍 Addresses", callback_data=Callbacks.ADDRESSES)],
        [InlineKeyboardButton("🔒 Change password", callback_data=Callbacks.PASSWORD_CHANGE)],
        [back_to_main_button()],
    ])


def get_addresses_keyboard(addresses: List[Address]) -> InlineKeyboardMarkup:
    keyboard = []
    for index, address in enumerate(addresses, start=1):
        row = []
        if not address.is_default:
            row.append(InlineKeyboardButton(f"⭐ Default #{index}", callback_data=f"{Callbacks.ADDRESS_DEFAULT}{address.id}"))
        row.append(InlineKeyboardButton(f"🗑️ Delete #{index}", callback_data=f"{Callbacks.ADDRESS_DELETE}{address.id}"))
        keyboard.append(row)
    keyboard.append([InlineKeyboardButton("➕ Add address", callback_data=Callbacks.ADDRESS_ADD)])
    keyboard.append([InlineKeyboardButton("⬅️ Profile", callback_data=Callbacks.PROFILE)])
    return InlineKeyboardMarkup(keyboard)
