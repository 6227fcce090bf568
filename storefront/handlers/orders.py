"""
Order history handlers
"""

import logging

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from storefront.handlers.base import BaseHandler
from storefront.keyboards.order_keyboards import get_order_detail_keyboard, get_orders_keyboard
from storefront.utils.constants import Callbacks
from storefront.utils.error_handler import ApiError
from storefront.utils.helpers import callback_arg, format_order, format_order_summary_line, truncate

logger = logging.getLogger(__name__)


class OrdersHandler(BaseHandler):
    """My Orders: list, detail and cancellation"""

    async def show_orders(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if update.callback_query:
            await update.callback_query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            orders = await self.container.get_order_service().list_orders(session)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ORDERS, "list_orders")
            return

        if not orders:
            text = "📋 <b>My Orders</b>\n\nYou haven't placed any orders yet."
        else:
            lines = [format_order_summary_line(order, self.currency) for order in orders]
            text = "📋 <b>My Orders</b>\n\n" + "\n".join(lines)
        await self._respond(update, truncate(text), reply_markup=get_orders_keyboard(orders))

    async def show_order(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            order = await self.container.get_order_service().get_order(session, callback_arg(query.data, Callbacks.ORDER))
        except ApiError as exc:
            await self._show_api_error(update, context, exc, query.data, "get_order")
            return
        await self._safe_edit_message(query, format_order(order, self.currency), reply_markup=get_order_detail_keyboard(order))

    async def cancel_order(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        session = self.session(context)
        if not session.is_authenticated:
            await query.answer()
            await self._require_login(update)
            return

        order_service = self.container.get_order_service()
        order_id = callback_arg(query.data, Callbacks.ORDER_CANCEL)
        try:
            order = await order_service.get_order(session, order_id)
            if not order.can_cancel:
                await query.answer(f"Order is already {order.status.value.lower()}", show_alert=True)
                await self._safe_edit_message(
                    query, format_order(order, self.currency), reply_markup=get_order_detail_keyboard(order)
                )
                return
            await query.answer()
            order = await order_service.cancel_order(session, order)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, f"{Callbacks.ORDER}{order_id}", "cancel_order")
            return

        await self._safe_edit_message(
            query,
            f"✅ Order cancelled.\n\n{format_order(order, self.currency)}",
            reply_markup=get_order_detail_keyboard(order),
        )


def register_order_handlers(application: Application):
    """Register order history handlers"""
    handler = OrdersHandler()

    application.add_handler(CommandHandler("orders", handler.show_orders))
    application.add_handler(CallbackQueryHandler(handler.show_orders, pattern=f"^{Callbacks.ORDERS}$"))
    application.add_handler(CallbackQueryHandler(handler.show_order, pattern=f"^{Callbacks.ORDER}"))
    application.add_handler(CallbackQueryHandler(handler.cancel_order, pattern=f"^{Callbacks.ORDER_CANCEL}"))
