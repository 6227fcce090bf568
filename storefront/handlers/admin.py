"""
Admin console handlers

Every entry point checks the session's role first; the API enforces the
same rule and its AUTH errors are handled like anywhere else.
"""

import logging
from typing import Optional

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from storefront.handlers.base import BaseHandler, leave_handlers
from storefront.keyboards.admin_keyboards import (
    ALL_STATUSES,
    get_admin_dashboard_keyboard,
    get_admin_delete_confirmation_keyboard,
    get_admin_order_keyboard,
    get_admin_orders_keyboard,
    get_admin_product_keyboard,
    get_admin_products_keyboard,
)
from storefront.keyboards.menu_keyboards import get_back_to_main_keyboard, get_skip_keyboard
from storefront.models import OrderStatus, parse_money
from storefront.states import ADMIN_EDIT_GROUP, ADMIN_EDIT_VALUE, ADMIN_PRODUCT_FIELD, ADMIN_PRODUCT_GROUP, END
from storefront.utils.constants import Callbacks
from storefront.utils.error_handler import ApiError, ErrorKind, user_message
from storefront.utils.helpers import callback_arg, escape_html, format_order, format_price, format_product, truncate

logger = logging.getLogger(__name__)

PRODUCT_FORM_KEY = "admin_product_form"
EDIT_KEY = "admin_edit"

PRODUCT_PROMPTS = (
    ("name", "Product name"),
    ("price", "Price (e.g. 12.50)"),
    ("stock", "Stock quantity"),
    ("sku", "SKU"),
    ("description", "Description (optional)"),
)


class AdminHandler(BaseHandler):
    """Dashboard, order management and product management"""

    async def _deny(self, update: Update) -> None:
        if update.callback_query:
            await update.callback_query.answer()
        await self._respond(update, "⛔ Admin access required.", reply_markup=get_back_to_main_keyboard())

    def _is_admin(self, context: ContextTypes.DEFAULT_TYPE) -> bool:
        return self.session(context).is_admin

    # ------------------------------ dashboard ------------------------------

    async def show_dashboard(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(context):
            await self._deny(update)
            return
        if update.callback_query:
            await update.callback_query.answer()

        self.logger.info("👑 ADMIN DASHBOARD: User %s", update.effective_user.id if update.effective_user else None)
        try:
            stats = await self.container.get_admin_service().dashboard(self.session(context))
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADMIN, "admin_dashboard")
            return

        text = (
            "👑 <b>Admin Dashboard</b>\n\n"
            f"📦 Products: {stats.total_products}\n"
            f"📋 Orders: {stats.total_orders}\n"
            f"⏳ Pending: {stats.pending_orders}\n"
            f"✅ Delivered: {stats.delivered_orders}\n"
            f"💰 Revenue: {format_price(stats.revenue, self.currency)}"
        )
        await self._respond(update, text, reply_markup=get_admin_dashboard_keyboard())

    # -------------------------------- orders -------------------------------

    async def show_orders(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()

        raw = callback_arg(query.data, Callbacks.ADMIN_ORDERS)
        status: Optional[OrderStatus] = None if raw == ALL_STATUSES else OrderStatus(raw)
        try:
            orders = await self.container.get_admin_service().list_orders(self.session(context), status)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, query.data, "admin_list_orders")
            return

        title = f"{status.value.title()} orders" if status else "All orders"
        text = f"📋 <b>{title}</b> ({len(orders)})"
        if not orders:
            text += "\n\nNo orders found."
        await self._safe_edit_message(query, text, reply_markup=get_admin_orders_keyboard(orders, status))

    async def _find_order(self, context: ContextTypes.DEFAULT_TYPE, order_id: str):
        orders = await self.container.get_admin_service().list_orders(self.session(context))
        return next((order for order in orders if order.id == order_id), None)

    async def show_order(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()
        try:
            order = await self._find_order(context, callback_arg(query.data, Callbacks.ADMIN_ORDER))
        except ApiError as exc:
            await self._show_api_error(update, context, exc, query.data, "admin_get_order")
            return
        if order is None:
            await self._safe_edit_message(
                query, "Order not found.", reply_markup=get_admin_orders_keyboard([], None)
            )
            return
        await self._safe_edit_message(query, format_order(order, self.currency), reply_markup=get_admin_order_keyboard(order))

    async def update_order_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return

        order_id, _, raw_status = callback_arg(query.data, Callbacks.ADMIN_STATUS).rpartition("_")
        admin_service = self.container.get_admin_service()
        session = self.session(context)
        try:
            order = await self._find_order(context, order_id)
            if order is None:
                await query.answer("Order not found", show_alert=True)
                return
            updated = await admin_service.update_order_status(session, order, OrderStatus(raw_status))
        except ApiError as exc:
            if exc.kind is ErrorKind.VALIDATION:
                await query.answer(user_message(exc), show_alert=True)
                return
            await query.answer()
            await self._show_api_error(update, context, exc, f"{Callbacks.ADMIN_ORDER}{order_id}", "admin_update_status")
            return

        await query.answer(f"Order moved to {updated.status.value.title()}")
        await self._safe_edit_message(
            query, format_order(updated, self.currency), reply_markup=get_admin_order_keyboard(updated)
        )

    # ------------------------------- products ------------------------------

    async def show_products(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(context):
            await self._deny(update)
            return
        if update.callback_query:
            await update.callback_query.answer()
        try:
            products = await self.container.get_admin_service().list_products(self.session(context))
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADMIN_PRODUCTS, "admin_list_products")
            return
        text = f"📦 <b>Products</b> ({len(products)})\n\n🟢 active · ⚪ hidden"
        await self._respond(update, text, reply_markup=get_admin_products_keyboard(products))

    async def _render_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE, product_id: str, notice: str = ""):
        try:
            product = await self.container.get_admin_service().get_product(self.session(context), product_id)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADMIN_PRODUCTS, "admin_get_product")
            return
        status = "🟢 Active" if product.is_active else "⚪ Hidden"
        text = f"{notice}{format_product(product, self.currency)}\n\nSKU: {escape_html(product.sku or '-')}\n{status}"
        await self._respond(update, truncate(text), reply_markup=get_admin_product_keyboard(product))

    async def show_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()
        await self._render_product(update, context, callback_arg(query.data, Callbacks.ADMIN_PRODUCT))

    async def toggle_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()

        product_id = callback_arg(query.data, Callbacks.ADMIN_TOGGLE)
        admin_service = self.container.get_admin_service()
        session = self.session(context)
        try:
            product = await admin_service.get_product(session, product_id)
            await admin_service.set_product_active(session, product_id, not product.is_active)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, f"{Callbacks.ADMIN_PRODUCT}{product_id}", "admin_toggle_product")
            return
        await self._render_product(update, context, product_id)

    async def confirm_delete_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()
        product_id = callback_arg(query.data, Callbacks.ADMIN_DELETE)
        await self._safe_edit_message(
            query,
            "🗑️ <b>Delete this product?</b>\n\nThis cannot be undone.",
            reply_markup=get_admin_delete_confirmation_keyboard(product_id),
        )

    async def delete_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return
        await query.answer()
        product_id = callback_arg(query.data, Callbacks.ADMIN_DELETE_CONFIRM)
        try:
            await self.container.get_admin_service().delete_product(self.session(context), product_id)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADMIN_PRODUCTS, "admin_delete_product")
            return
        await self.show_products(update, context)

    # --------------------------- price / stock edit ------------------------

    async def start_edit(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        if not self._is_admin(context):
            await self._deny(update)
            return END
        await query.answer()
        field_name, _, product_id = callback_arg(query.data, Callbacks.ADMIN_EDIT).partition("_")
        context.user_data[EDIT_KEY] = {"field": field_name, "product_id": product_id}
        label = "price" if field_name == "price" else "stock quantity"
        await self._safe_edit_message(query, f"✏️ Send the new {label}.\n\n/cancel to stop.")
        return ADMIN_EDIT_VALUE

    async def handle_edit_value(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        edit = context.user_data.get(EDIT_KEY) or {}
        raw = update.message.text.strip()
        try:
            if edit.get("field") == "price":
                value = parse_money(raw)
                if value <= 0:
                    raise ValueError(raw)
            else:
                value = int(raw)
                if value < 0:
                    raise ValueError(raw)
        except ValueError:
            await update.message.reply_text("That's not a valid value. Please try again, or /cancel.")
            return ADMIN_EDIT_VALUE

        context.user_data.pop(EDIT_KEY, None)
        product_id = edit.get("product_id", "")
        try:
            await self.container.get_admin_service().update_product(
                self.session(context), product_id, {edit.get("field", "stock"): value}
            )
        except ApiError as exc:
            await self._show_api_error(update, context, exc, f"{Callbacks.ADMIN_PRODUCT}{product_id}", "admin_update_product")
            return END
        await self._render_product(update, context, product_id, notice="✅ Product updated.\n\n")
        return END

    # ---------------------------- new product ------------------------------

    async def start_new_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if not self._is_admin(context):
            await self._deny(update)
            return END
        await update.callback_query.answer()
        context.user_data[PRODUCT_FORM_KEY] = {}
        await self._respond(update, f"➕ <b>New product</b>\n\n{PRODUCT_PROMPTS[0][1]}:\n\n/cancel to stop.")
        return ADMIN_PRODUCT_FIELD

    async def _ask_next(self, update: Update, form: dict) -> int:
        name, label = PRODUCT_PROMPTS[len(form)]
        markup = get_skip_keyboard(Callbacks.ADMIN_SKIP) if name == "description" else None
        await update.effective_message.reply_text(f"{label}:", reply_markup=markup)
        return ADMIN_PRODUCT_FIELD

    async def handle_product_field(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        form = context.user_data.setdefault(PRODUCT_FORM_KEY, {})
        name, _ = PRODUCT_PROMPTS[len(form)]
        raw = update.message.text.strip()

        try:
            if name == "price":
                value = parse_money(raw)
                if value <= 0:
                    raise ValueError(raw)
            elif name == "stock":
                value = int(raw)
                if value < 0:
                    raise ValueError(raw)
            else:
                value = raw
        except ValueError:
            await update.message.reply_text(f"Invalid {name}. Please try again, or /cancel.")
            return ADMIN_PRODUCT_FIELD
        if name in ("name", "sku") and not value:
            await update.message.reply_text(f"The {name} is required.")
            return ADMIN_PRODUCT_FIELD

        form[name] = value
        if len(form) < len(PRODUCT_PROMPTS):
            return await self._ask_next(update, form)
        return await self._create_product(update, context)

    async def skip_description(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        form = context.user_data.setdefault(PRODUCT_FORM_KEY, {})
        form["description"] = ""
        return await self._create_product(update, context)

    async def _create_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        form = context.user_data.pop(PRODUCT_FORM_KEY, {})
        try:
            product = await self.container.get_admin_service().create_product(
                self.session(context),
                name=form.get("name", ""),
                price=form.get("price"),
                stock=form.get("stock", 0),
                sku=form.get("sku", ""),
                description=form.get("description", ""),
            )
        except ApiError as exc:
            if exc.kind is ErrorKind.VALIDATION:
                await update.effective_message.reply_text(
                    f"❌ {escape_html(user_message(exc))}", reply_markup=get_back_to_main_keyboard()
                )
                return END
            await self._show_api_error(update, context, exc, Callbacks.ADMIN_PRODUCTS, "admin_create_product")
            return END
        await self._render_product(update, context, product.id, notice="✅ Product created.\n\n")
        return END

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop(PRODUCT_FORM_KEY, None)
        context.user_data.pop(EDIT_KEY, None)
        await update.effective_message.reply_text("Cancelled.", reply_markup=get_back_to_main_keyboard())
        return END


def register_admin_handlers(application: Application):
    """Register admin handlers"""
    handler = AdminHandler()
    text = filters.TEXT & ~filters.COMMAND
    cancel = CommandHandler("cancel", handler.cancel)

    application.add_handler(CommandHandler("admin", handler.show_dashboard))
    application.add_handler(CallbackQueryHandler(handler.show_dashboard, pattern=f"^{Callbacks.ADMIN}$"))
    application.add_handler(CallbackQueryHandler(handler.show_orders, pattern=f"^{Callbacks.ADMIN_ORDERS}"))
    application.add_handler(CallbackQueryHandler(handler.show_order, pattern=f"^{Callbacks.ADMIN_ORDER}"))
    application.add_handler(CallbackQueryHandler(handler.update_order_status, pattern=f"^{Callbacks.ADMIN_STATUS}"))
    application.add_handler(CallbackQueryHandler(handler.show_products, pattern=f"^{Callbacks.ADMIN_PRODUCTS}$"))
    application.add_handler(CallbackQueryHandler(handler.show_product, pattern=f"^{Callbacks.ADMIN_PRODUCT}"))
    application.add_handler(CallbackQueryHandler(handler.toggle_product, pattern=f"^{Callbacks.ADMIN_TOGGLE}"))
    application.add_handler(CallbackQueryHandler(handler.confirm_delete_product, pattern=f"^{Callbacks.ADMIN_DELETE}"))
    application.add_handler(CallbackQueryHandler(handler.delete_product, pattern=f"^{Callbacks.ADMIN_DELETE_CONFIRM}"))

    application.add_handler(
        ConversationHandler(
            entry_points=[CallbackQueryHandler(handler.start_edit, pattern=f"^{Callbacks.ADMIN_EDIT}(price|stock)_")],
            states={ADMIN_EDIT_VALUE: [MessageHandler(text, handler.handle_edit_value)]},
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=ADMIN_EDIT_GROUP,
    )
    application.add_handler(
        ConversationHandler(
            entry_points=[CallbackQueryHandler(handler.start_new_product, pattern=f"^{Callbacks.ADMIN_NEW_PRODUCT}$")],
            states={
                ADMIN_PRODUCT_FIELD: [
                    MessageHandler(text, handler.handle_product_field),
                    CallbackQueryHandler(handler.skip_description, pattern=f"^{Callbacks.ADMIN_SKIP}$"),
                ]
            },
            fallbacks=[cancel, *leave_handlers(keep=Callbacks.ADMIN_SKIP)],
            per_message=False,
            allow_reentry=True,
        ),
        group=ADMIN_PRODUCT_GROUP,
    )
