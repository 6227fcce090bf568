"""
Admin notifications for new orders
"""

import logging
from typing import Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from storefront.models import Order
from storefront.utils.helpers import escape_html, format_price

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends order notifications to the configured admin chat"""

    def __init__(self, admin_chat_id: Optional[int], currency_symbol: str = "$"):
        self.admin_chat_id = admin_chat_id
        self.currency_symbol = currency_symbol
        self.bot: Optional[Bot] = None

    async def send_admin_notification(self, message: str) -> bool:
        if not self.admin_chat_id:
            logger.debug("Admin chat ID not configured, skipping admin notification")
            return False
        if self.bot is None:
            logger.error("Bot instance not available for admin notification")
            return False

        try:
            await self.bot.send_message(chat_id=self.admin_chat_id, text=message, parse_mode=ParseMode.HTML)
        except TelegramError as exc:
            logger.error("Failed to send admin notification: %s", exc)
            return False
        logger.info("Admin notification sent to %s", self.admin_chat_id)
        return True

    async def notify_new_order(self, order: Order, customer_name: str) -> bool:
        lines = [
            f"🆕 <b>New order {escape_html(order.order_number)}</b>",
            f"Customer: {escape_html(customer_name)}",
            f"Items: {sum(item.quantity for item in order.items)}",
            f"Total: {format_price(order.total, self.currency_symbol)}",
        ]
        return await self.send_admin_notification("\n".join(lines))
