"""
Formatting helpers for bot messages

All message text is Telegram HTML; user and API provided strings go
through ``escape_html`` first.
"""

import html
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.checkout.pricing import PricingSummary, round_money
from storefront.models import Address, CartSnapshot, Order, OrderStatus, Product, Review
from storefront.utils.constants import PricingRules, TelegramSettings

STATUS_EMOJI = {
    OrderStatus.PENDING: "⏳",
    OrderStatus.CONFIRMED: "✅",
    OrderStatus.PROCESSING: "⚙️",
    OrderStatus.SHIPPED: "🚚",
    OrderStatus.DELIVERED: "📦",
    OrderStatus.CANCELLED: "❌",
}


def escape_html(value: Any) -> str:
    return html.escape(str(value), quote=False)


def format_price(amount: Decimal, currency_symbol: str = "$") -> str:
    """Format a money amount for display, rounding half-up to cents"""
    rounded = round_money(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency_symbol}{abs(rounded):,.2f}"


def format_status(status: OrderStatus) -> str:
    return f"{STATUS_EMOJI.get(status, '')} {status.value.title()}".strip()


def format_date(iso_timestamp: str) -> str:
    """``2024-05-01T10:20:30.000Z`` -> ``2024-05-01 10:20``"""
    if not iso_timestamp:
        return ""
    return iso_timestamp.replace("T", " ")[:16]


def truncate(text: str, limit: int = TelegramSettings.MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def format_summary_lines(summary: PricingSummary, currency_symbol: str = "$") -> List[str]:
    """Pricing panel lines shared by the cart and the checkout review"""
    shown = summary.rounded()
    item_word = "item" if shown.item_count == 1 else "items"
    lines = [f"Subtotal ({shown.item_count} {item_word}): {format_price(shown.subtotal, currency_symbol)}"]

    if shown.free_shipping:
        lines.append("Shipping: <b>FREE</b>")
    else:
        lines.append(f"Shipping: {format_price(shown.shipping_fee, currency_symbol)}")
    if shown.amount_to_free_shipping is not None:
        lines.append(
            f"💡 Add {format_price(shown.amount_to_free_shipping, currency_symbol)} more for free shipping!"
        )

    tax_percent = (PricingRules.TAX_RATE * 100).normalize()
    lines.append(f"Tax ({tax_percent}%): {format_price(shown.tax_amount, currency_symbol)}")
    lines.append(f"<b>Total: {format_price(shown.total, currency_symbol)}</b>")
    return lines


def format_cart_lines(cart: CartSnapshot, currency_symbol: str = "$") -> List[str]:
    return [
        f"• {escape_html(line.name)} × {line.quantity} = {format_price(line.line_total, currency_symbol)}"
        for line in cart.lines
    ]


def format_cart(cart: CartSnapshot, summary: PricingSummary, currency_symbol: str = "$") -> str:
    if cart.is_empty:
        return "🛒 <b>Your cart is empty</b>\n\nBrowse the catalog to add some products."

    parts = ["🛒 <b>Your Cart</b>", ""]
    parts.extend(format_cart_lines(cart, currency_symbol))
    parts.append("")
    parts.extend(format_summary_lines(summary, currency_symbol))
    return "\n".join(parts)


def format_address(data: Optional[Dict[str, Any]]) -> str:
    """Format a shipping address payload or a saved address (either key style)"""
    if not data:
        return "-"
    street = data.get("addressLine1") or data.get("street") or ""
    lines = [data.get("fullName") or "", street, data.get("addressLine2") or ""]
    city_line = ", ".join(
        part for part in (data.get("city"), data.get("state"), data.get("postalCode") or data.get("zipCode")) if part
    )
    lines.extend([city_line, data.get("country") or ""])
    if data.get("phone"):
        lines.append(f"📞 {data['phone']}")
    return "\n".join(escape_html(line) for line in lines if line)


def format_saved_address(address: Address) -> str:
    text = format_address(address.to_payload())
    return f"{text}\n⭐ Default" if address.is_default else text


def format_product(product: Product, currency_symbol: str = "$") -> str:
    parts = [f"<b>{escape_html(product.name)}</b>"]
    if product.category_name:
        parts.append(f"<i>{escape_html(product.category_name)}</i>")
    parts.append("")

    price_line = f"💰 {format_price(product.price, currency_symbol)}"
    if product.compare_price and product.compare_price > product.price:
        price_line += f"  <s>{format_price(product.compare_price, currency_symbol)}</s>"
    parts.append(price_line)

    if product.in_stock:
        parts.append(f"📦 In stock ({product.stock})")
    else:
        parts.append("📦 Out of stock")
    if product.average_rating is not None and product.review_count:
        parts.append(f"⭐ {product.average_rating:.1f} ({product.review_count} reviews)")
    if product.description:
        parts.extend(["", escape_html(product.description)])
    return "\n".join(parts)


def format_review(review: Review) -> str:
    stars = "★" * review.rating + "☆" * (5 - review.rating)
    text = f"{stars} <b>{escape_html(review.author_name)}</b> {format_date(review.created_at)[:10]}"
    if review.comment:
        text += f"\n{escape_html(review.comment)}"
    return text


def format_order_summary_line(order: Order, currency_symbol: str = "$") -> str:
    return (
        f"{STATUS_EMOJI.get(order.status, '')} {escape_html(order.order_number)} · "
        f"{format_price(order.total, currency_symbol)} · {format_date(order.created_at)[:10]}"
    )


def format_order(order: Order, currency_symbol: str = "$") -> str:
    parts = [
        f"📋 <b>Order {escape_html(order.order_number)}</b>",
        f"Status: {format_status(order.status)}",
    ]
    if order.created_at:
        parts.append(f"Placed: {format_date(order.created_at)}")
    if order.customer_email:
        parts.append(f"Customer: {escape_html(order.customer_email)}")

    parts.extend(["", "<b>Items</b>"])
    for item in order.items:
        parts.append(
            f"• {escape_html(item.name or item.product_id)} × {item.quantity} = "
            f"{format_price(item.total, currency_symbol)}"
        )

    parts.extend(
        [
            "",
            f"Subtotal: {format_price(order.subtotal, currency_symbol)}",
            f"Shipping: {format_price(order.shipping, currency_symbol)}",
            f"Tax: {format_price(order.tax, currency_symbol)}",
            f"<b>Total: {format_price(order.total, currency_symbol)}</b>",
        ]
    )
    if order.shipping_address:
        parts.extend(["", "<b>Ship to</b>", format_address(order.shipping_address)])
    return truncate("\n".join(parts))


def callback_arg(data: str, prefix: str) -> str:
    """Argument part of prefixed callback data"""
    return data[len(prefix):] if data.startswith(prefix) else ""
