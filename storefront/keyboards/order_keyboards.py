"""
Cart, checkout and order keyboards
"""

from typing import List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from storefront.checkout.wizard import PaymentMethod
from storefront.keyboards.menu_keyboards import back_to_main_button
from storefront.models import CartSnapshot, Order
from storefront.utils.constants import Callbacks
from storefront.utils.helpers import STATUS_EMOJI


def get_cart_keyboard(cart: CartSnapshot) -> InlineKeyboardMarkup:
    """Per-line quantity controls; checkout only offered for a non-empty cart"""
    keyboard = []
    for line in cart.lines:
        keyboard.append([InlineKeyboardButton(f"{line.name} ({line.quantity})", callback_data=f"{Callbacks.PRODUCT}{line.product_id}")])
        keyboard.append([
            InlineKeyboardButton("➖", callback_data=f"{Callbacks.CART_DEC}{line.product_id}"),
            InlineKeyboardButton("➕", callback_data=f"{Callbacks.CART_INC}{line.product_id}"),
            InlineKeyboardButton("🗑️", callback_data=f"{Callbacks.CART_REMOVE}{line.product_id}"),
        ])

    if not cart.is_empty:
        keyboard.append([InlineKeyboardButton("✅ Proceed to Checkout", callback_data=Callbacks.CHECKOUT)])
        keyboard.append([InlineKeyboardButton("🧹 Clear Cart", callback_data=Callbacks.CART_CLEAR)])
    keyboard.append([
        InlineKeyboardButton("🛍️ Continue Shopping", callback_data=Callbacks.PRODUCTS),
        back_to_main_button(),
    ])
    return InlineKeyboardMarkup(keyboard)


def get_clear_cart_confirmation_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✅ Yes, clear it", callback_data=Callbacks.CART_CLEAR_CONFIRM),
            InlineKeyboardButton("❌ No", callback_data=Callbacks.CART_VIEW),
        ]
    ])


def get_retry_keyboard(retry_callback: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🔁 Retry", callback_data=retry_callback)],
        [back_to_main_button()],
    ])


def get_shipping_prompt_keyboard(optional: bool, has_value: bool, can_use_saved: bool = False) -> InlineKeyboardMarkup:
    keyboard = []
    if can_use_saved:
        keyboard.append([InlineKeyboardButton("📍 Use my saved address", callback_data=Callbacks.CO_SAVED)])
    if has_value:
        keyboard.append([InlineKeyboardButton("↩️ Keep current", callback_data=Callbacks.CO_KEEP)])
    elif optional:
        keyboard.append([InlineKeyboardButton("⏭️ Skip", callback_data=Callbacks.CO_SKIP)])
    keyboard.append([InlineKeyboardButton("❌ Cancel checkout", callback_data=Callbacks.CO_CANCEL)])
    return InlineKeyboardMarkup(keyboard)


def get_payment_method_keyboard(selected: PaymentMethod | None = None) -> InlineKeyboardMarkup:
    keyboard = [
        [
            InlineKeyboardButton(
                f"{'✅ ' if method is selected else ''}{method.label}",
                callback_data=f"{Callbacks.CO_PAY}{method.value}",
            )
        ]
        for method in PaymentMethod
    ]
    keyboard.append([
        InlineKeyboardButton("⬅️ Back", callback_data=Callbacks.CO_BACK),
        InlineKeyboardButton("❌ Cancel", callback_data=Callbacks.CO_CANCEL),
    ])
    return InlineKeyboardMarkup(keyboard)


def get_card_prompt_keyboard(has_value: bool) -> InlineKeyboardMarkup:
    keyboard = []
    if has_value:
        keyboard.append([InlineKeyboardButton("↩️ Keep current", callback_data=Callbacks.CO_KEEP)])
    keyboard.append([
        InlineKeyboardButton("⬅️ Back", callback_data=Callbacks.CO_BACK),
        InlineKeyboardButton("❌ Cancel", callback_data=Callbacks.CO_CANCEL),
    ])
    return InlineKeyboardMarkup(keyboard)


def get_review_keyboard(can_place_order: bool, failed: bool = False) -> InlineKeyboardMarkup:
    """Review step; without ``can_place_order`` the Place Order button is left out"""
    keyboard: List[List[InlineKeyboardButton]] = []
    if can_place_order:
        label = "🔁 Retry Place Order" if failed else "✅ Place Order"
        keyboard.append([InlineKeyboardButton(label, callback_data=Callbacks.CO_PLACE)])
        keyboard.append([
            InlineKeyboardButton("✏️ Edit address", callback_data=Callbacks.CO_EDIT_ADDRESS),
            InlineKeyboardButton("⬅️ Back", callback_data=Callbacks.CO_BACK),
        ])
        keyboard.append([InlineKeyboardButton("❌ Cancel", callback_data=Callbacks.CO_CANCEL)])
    return InlineKeyboardMarkup(keyboard)


def get_order_placed_keyboard(order: Order) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("📋 View order", callback_data=f"{Callbacks.ORDER}{order.id}")],
        [back_to_main_button()],
    ])


def get_orders_keyboard(orders: List[Order]) -> InlineKeyboardMarkup:
    keyboard = [
        [
            InlineKeyboardButton(
                f"{STATUS_EMOJI.get(order.status, '')} {order.order_number}",
                callback_data=f"{Callbacks.ORDER}{order.id}",
            )
        ]
        for order in orders
    ]
    keyboard.append([back_to_main_button()])
    return InlineKeyboardMarkup(keyboard)


def get_order_detail_keyboard(order: Order) -> InlineKeyboardMarkup:
    keyboard = []
    if order.can_cancel:
        keyboard.append([InlineKeyboardButton("❌ Cancel order", callback_data=f"{Callbacks.ORDER_CANCEL}{order.id}")])
    keyboard.append([InlineKeyboardButton("⬅️ My Orders", callback_data=Callbacks.ORDERS)])
    keyboard.append([back_to_main_button()])
    return InlineKeyboardMarkup(keyboard)
