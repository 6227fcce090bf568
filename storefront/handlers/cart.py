"""
Cart handler for viewing and editing the shopping cart
"""

import logging

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from storefront.handlers.base import BaseHandler
from storefront.keyboards.order_keyboards import get_cart_keyboard, get_clear_cart_confirmation_keyboard
from storefront.utils.constants import Callbacks
from storefront.utils.error_handler import ApiError
from storefront.utils.helpers import callback_arg, format_cart

logger = logging.getLogger(__name__)


class CartHandler(BaseHandler):
    """Handler for cart-related operations"""

    async def _render_cart(self, update: Update, context: ContextTypes.DEFAULT_TYPE, refresh: bool = False) -> None:
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            cart, summary = await self.container.get_cart_service().get_summary(session, refresh=refresh)
        except ApiError as exc:
            # no stale cart on failure, only the error page
            await self._show_api_error(update, context, exc, Callbacks.CART_VIEW, "view_cart")
            return
        await self._respond(update, format_cart(cart, summary, self.currency), reply_markup=get_cart_keyboard(cart))

    async def handle_view_cart(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if update.callback_query:
            await update.callback_query.answer()
        await self._render_cart(update, context)

    async def _change_quantity(self, update: Update, context: ContextTypes.DEFAULT_TYPE, prefix: str, delta: int):
        query = update.callback_query
        session = self.session(context)
        if not session.is_authenticated:
            await query.answer()
            await self._require_login(update)
            return

        product_id = callback_arg(query.data, prefix)
        cart_service = self.container.get_cart_service()
        try:
            cart = await cart_service.get_cart(session)
            line = cart.find(product_id)
            if line is None:
                await query.answer()
                await self._render_cart(update, context, refresh=True)
                return
            new_quantity = line.quantity + delta
            if delta > 0 and line.available_stock and new_quantity > line.available_stock:
                await query.answer(f"Only {line.available_stock} in stock", show_alert=True)
                return
            await query.answer()
            await cart_service.update_quantity(session, product_id, new_quantity)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.CART_VIEW, "update_cart")
            return
        await self._render_cart(update, context)

    async def handle_increase_quantity(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._change_quantity(update, context, Callbacks.CART_INC, 1)

    async def handle_decrease_quantity(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._change_quantity(update, context, Callbacks.CART_DEC, -1)

    async def handle_remove_item(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            await self.container.get_cart_service().remove_item(session, callback_arg(query.data, Callbacks.CART_REMOVE))
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.CART_VIEW, "remove_cart_item")
            return
        await self._render_cart(update, context)

    async def handle_clear_cart(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        await self._safe_edit_message(
            query, "🧹 <b>Clear your cart?</b>\n\nAll items will be removed.", reply_markup=get_clear_cart_confirmation_keyboard()
        )

    async def handle_clear_cart_confirmation(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            await self.container.get_cart_service().clear(session)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.CART_VIEW, "clear_cart")
            return
        await self._render_cart(update, context)


def register_cart_handlers(application: Application):
    """Register cart handlers with the application"""
    cart_handler = CartHandler()

    application.add_handler(CommandHandler("cart", cart_handler.handle_view_cart))
    application.add_handler(CallbackQueryHandler(cart_handler.handle_view_cart, pattern=f"^{Callbacks.CART_VIEW}$"))
    application.add_handler(CallbackQueryHandler(cart_handler.handle_increase_quantity, pattern=f"^{Callbacks.CART_INC}"))
    application.add_handler(CallbackQueryHandler(cart_handler.handle_decrease_quantity, pattern=f"^{Callbacks.CART_DEC}"))
    application.add_handler(CallbackQueryHandler(cart_handler.handle_remove_item, pattern=f"^{Callbacks.CART_REMOVE}"))
    application.add_handler(CallbackQueryHandler(cart_handler.handle_clear_cart, pattern=f"^{Callbacks.CART_CLEAR}$"))
    application.add_handler(
        CallbackQueryHandler(cart_handler.handle_clear_cart_confirmation, pattern=f"^{Callbacks.CART_CLEAR_CONFIRM}$")
    )
