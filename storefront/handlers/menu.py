"""
Catalog browsing handlers: product list, filters, product detail and reviews
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
from storefront.keyboards.menu_keyboards import (
    get_back_to_main_keyboard,
    get_catalog_keyboard,
    get_filters_keyboard,
    get_product_keyboard,
    get_rating_keyboard,
    get_review_delete_keyboard,
    get_reviews_keyboard,
    get_skip_keyboard,
)
from storefront.models import ProductPage, ProductQuery
from storefront.states import END, REVIEW_COMMENT, REVIEW_GROUP, REVIEW_RATING, SEARCH_GROUP, SEARCH_QUERY
from storefront.utils.constants import CatalogSettings, Callbacks
from storefront.utils.error_handler import ApiError, user_message
from storefront.utils.helpers import callback_arg, escape_html, format_product, format_review, truncate

logger = logging.getLogger(__name__)

QUERY_KEY = "product_query"
REVIEW_FORM_KEY = "review_form"
OWN_REVIEWS_KEY = "own_reviews"
MAX_REVIEWS_SHOWN = 10


class MenuHandler(BaseHandler):
    """Handler for catalog browsing"""

    def _query(self, context: ContextTypes.DEFAULT_TYPE) -> ProductQuery:
        query = context.user_data.get(QUERY_KEY)
        if query is None:
            query = ProductQuery(limit=self.config.products_page_size)
            context.user_data[QUERY_KEY] = query
        return query

    def _catalog_text(self, page: ProductPage, query: ProductQuery) -> str:
        parts = ["🛍️ <b>Products</b>"]
        if query.search:
            parts.append(f"🔍 Search: <i>{escape_html(query.search)}</i>")
        if query.min_price is not None or query.max_price is not None:
            low = query.min_price if query.min_price is not None else 0
            high = f"{self.currency}{query.max_price}" if query.max_price is not None else "+"
            parts.append(f"💰 Price: {self.currency}{low} – {high}")
        parts.append(f"↕️ {CatalogSettings.SORT_OPTIONS.get(query.sort, query.sort)}")
        parts.append("")
        if page.products:
            parts.append(f"Showing {len(page.products)} of {page.total} products. Tap one for details.")
        else:
            parts.append("No products match your filters.")
        return "\n".join(parts)

    async def _render_catalog(self, update: Update, context: ContextTypes.DEFAULT_TYPE, query: ProductQuery) -> None:
        context.user_data[QUERY_KEY] = query
        try:
            page = await self.container.get_product_service().list_products(query)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.PRODUCTS, "list_products")
            return
        await self._respond(update, self._catalog_text(page, query), reply_markup=get_catalog_keyboard(page, self.currency))

    async def show_products(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if update.callback_query:
            await update.callback_query.answer()
        await self._render_catalog(update, context, self._query(context))

    async def change_page(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        page = int(callback_arg(query.data, Callbacks.PRODUCTS_PAGE) or 1)
        await self._render_catalog(update, context, self._query(context).with_page(page))

    async def show_filters(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        await self._safe_edit_message(
            query, "⚙️ <b>Sort & Filter</b>\n\nChoose a sort order or a price range.", reply_markup=get_filters_keyboard(self._query(context))
        )

    async def set_sort(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        sort = callback_arg(query.data, Callbacks.PRODUCTS_SORT)
        if sort not in CatalogSettings.SORT_OPTIONS:
            sort = CatalogSettings.DEFAULT_SORT
        await self._render_catalog(update, context, self._query(context).with_filters(sort=sort))

    async def set_price_range(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        range_key = callback_arg(query.data, Callbacks.PRODUCTS_PRICE)
        low, high = CatalogSettings.PRICE_RANGES.get(range_key, (None, None))
        await self._render_catalog(update, context, self._query(context).with_filters(min_price=low, max_price=high))

    async def clear_filters(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer("Filters cleared")
        current = self._query(context)
        await self._render_catalog(update, context, ProductQuery(limit=current.limit))

    # ------------------------------- search --------------------------------

    async def start_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if update.callback_query:
            await update.callback_query.answer()
        await self._respond(update, "🔍 Send the text to search for.\n\n/cancel to stop.")
        return SEARCH_QUERY

    async def handle_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        term = update.message.text.strip()
        await self._render_catalog(update, context, self._query(context).with_filters(search=term))
        return END

    # ------------------------------ products -------------------------------

    async def show_product(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        product_id = callback_arg(query.data, Callbacks.PRODUCT)
        try:
            product = await self.container.get_product_service().get_product(product_id)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, query.data, "get_product")
            return
        session = self.session(context)
        await self._safe_edit_message(
            query,
            format_product(product, self.currency),
            reply_markup=get_product_keyboard(product, can_buy=session.is_authenticated),
        )

    async def add_to_cart(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        session = self.session(context)
        if not session.is_authenticated:
            await query.answer()
            await self._require_login(update)
            return

        product_id = callback_arg(query.data, Callbacks.ADD_TO_CART)
        try:
            cart = await self.container.get_cart_service().add_item(session, product_id, 1)
        except ApiError as exc:
            await query.answer()
            await self._show_api_error(update, context, exc, query.data, "add_to_cart")
            return

        self.logger.info("User %s added product %s to cart", session.user.id, product_id)
        await query.answer(f"✅ Added to cart ({cart.total_item_count} items)")

    # ------------------------------- reviews -------------------------------

    async def _render_reviews(self, update: Update, context: ContextTypes.DEFAULT_TYPE, product_id: str, notice: str = ""):
        try:
            reviews = await self.container.get_review_service().list_reviews(product_id)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, f"{Callbacks.REVIEWS}{product_id}", "list_reviews")
            return

        session = self.session(context)
        own = None
        if session.is_authenticated:
            own = next((review for review in reviews if review.user_id == session.user.id), None)
        if own is not None:
            context.user_data.setdefault(OWN_REVIEWS_KEY, {})[own.id] = product_id

        if reviews:
            body = "\n\n".join(format_review(review) for review in reviews[:MAX_REVIEWS_SHOWN])
            text = f"{notice}⭐ <b>Reviews</b> ({len(reviews)})\n\n{body}"
        else:
            text = f"{notice}⭐ <b>Reviews</b>\n\nNo reviews yet."
        await self._respond(
            update,
            truncate(text),
            reply_markup=get_reviews_keyboard(product_id, session.is_authenticated, own.id if own else None),
        )

    async def show_reviews(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        await self._render_reviews(update, context, callback_arg(query.data, Callbacks.REVIEWS))

    async def start_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        if not self.session(context).is_authenticated:
            await self._require_login(update)
            return END
        context.user_data[REVIEW_FORM_KEY] = {"product_id": callback_arg(query.data, Callbacks.REVIEW_WRITE)}
        await self._safe_edit_message(query, "⭐ How would you rate this product?", reply_markup=get_rating_keyboard())
        return REVIEW_RATING

    async def start_edit_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Same rating and comment steps as a new review, saved over the old one"""
        query = update.callback_query
        await query.answer()
        if not self.session(context).is_authenticated:
            await self._require_login(update)
            return END
        review_id = callback_arg(query.data, Callbacks.REVIEW_EDIT)
        product_id = context.user_data.get(OWN_REVIEWS_KEY, {}).get(review_id)
        if product_id is None:
            await self._safe_edit_message(
                query, "This review is no longer available here. Please open the reviews again.",
                reply_markup=get_back_to_main_keyboard(),
            )
            return END
        context.user_data[REVIEW_FORM_KEY] = {"product_id": product_id, "review_id": review_id}
        await self._safe_edit_message(query, "⭐ Update your rating:", reply_markup=get_rating_keyboard())
        return REVIEW_RATING

    async def handle_rating(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        form = context.user_data.setdefault(REVIEW_FORM_KEY, {})
        form["rating"] = int(callback_arg(query.data, Callbacks.REVIEW_RATE))
        if form.get("review_id"):
            prompt, skip_label = "✍️ Send a new comment, or keep the current one.", "⏭️ Keep comment"
        else:
            prompt, skip_label = "✍️ Send a short comment, or skip.", "⏭️ Skip"
        await self._safe_edit_message(query, prompt, reply_markup=get_skip_keyboard(Callbacks.REVIEW_SKIP, skip_label))
        return REVIEW_COMMENT

    async def handle_comment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        return await self._submit_review(update, context, update.message.text)

    async def skip_comment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        return await self._submit_review(update, context, None)

    async def _submit_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE, comment: Optional[str]) -> int:
        """Create the review, or update it when editing; a ``None`` comment is a skip"""
        form = context.user_data.pop(REVIEW_FORM_KEY, {})
        product_id = form.get("product_id", "")
        review_service = self.container.get_review_service()
        session = self.session(context)
        try:
            if form.get("review_id"):
                await review_service.update_review(session, form["review_id"], form.get("rating"), comment)
            else:
                await review_service.create_review(session, product_id, form.get("rating", 0), comment or "")
        except ApiError as exc:
            await self._respond(
                update, f"❌ Could not save your review: {escape_html(user_message(exc))}", reply_markup=get_reviews_keyboard(product_id, False)
            )
            return END
        notice = "🙏 Review updated.\n\n" if form.get("review_id") else "🙏 Thanks for your review!\n\n"
        await self._render_reviews(update, context, product_id, notice=notice)
        return END

    async def confirm_delete_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        review_id = callback_arg(query.data, Callbacks.REVIEW_DELETE)
        product_id = context.user_data.get(OWN_REVIEWS_KEY, {}).get(review_id)
        if product_id is None:
            await self._safe_edit_message(
                query, "This review is no longer available here. Please open the reviews again.",
                reply_markup=get_back_to_main_keyboard(),
            )
            return
        await self._safe_edit_message(
            query, "🗑️ <b>Delete your review?</b>", reply_markup=get_review_delete_keyboard(product_id, review_id)
        )

    async def delete_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        review_id = callback_arg(query.data, Callbacks.REVIEW_DELETE_CONFIRM)
        product_id = context.user_data.get(OWN_REVIEWS_KEY, {}).get(review_id)
        try:
            await self.container.get_review_service().delete_review(session, review_id)
        except ApiError as exc:
            retry = f"{Callbacks.REVIEWS}{product_id}" if product_id else Callbacks.PRODUCTS
            await self._show_api_error(update, context, exc, retry, "delete_review")
            return
        context.user_data.get(OWN_REVIEWS_KEY, {}).pop(review_id, None)
        self.logger.info("User %s deleted review %s", session.user.id, review_id)
        if product_id is None:
            await self._safe_edit_message(query, "🗑️ Review deleted.", reply_markup=get_back_to_main_keyboard())
            return
        await self._render_reviews(update, context, product_id, notice="🗑️ Review deleted.\n\n")

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop(REVIEW_FORM_KEY, None)
        await update.effective_message.reply_text("Cancelled.", reply_markup=get_back_to_main_keyboard())
        return END


def register_menu_handlers(application: Application):
    """Register catalog handlers"""
    handler = MenuHandler()
    cancel = CommandHandler("cancel", handler.cancel)

    application.add_handler(CommandHandler("products", handler.show_products))
    application.add_handler(CallbackQueryHandler(handler.show_products, pattern=f"^{Callbacks.PRODUCTS}$"))
    application.add_handler(CallbackQueryHandler(handler.change_page, pattern=rf"^{Callbacks.PRODUCTS_PAGE}\d+$"))
    application.add_handler(CallbackQueryHandler(handler.show_filters, pattern=f"^{Callbacks.PRODUCTS_FILTERS}$"))
    application.add_handler(CallbackQueryHandler(handler.set_sort, pattern=f"^{Callbacks.PRODUCTS_SORT}"))
    application.add_handler(CallbackQueryHandler(handler.set_price_range, pattern=f"^{Callbacks.PRODUCTS_PRICE}"))
    application.add_handler(CallbackQueryHandler(handler.clear_filters, pattern=f"^{Callbacks.PRODUCTS_CLEAR}$"))
    application.add_handler(CallbackQueryHandler(handler.show_product, pattern=f"^{Callbacks.PRODUCT}"))
    application.add_handler(CallbackQueryHandler(handler.add_to_cart, pattern=f"^{Callbacks.ADD_TO_CART}"))
    application.add_handler(CallbackQueryHandler(handler.show_reviews, pattern=f"^{Callbacks.REVIEWS}"))
    application.add_handler(CallbackQueryHandler(handler.confirm_delete_review, pattern=f"^{Callbacks.REVIEW_DELETE}"))
    application.add_handler(CallbackQueryHandler(handler.delete_review, pattern=f"^{Callbacks.REVIEW_DELETE_CONFIRM}"))

    application.add_handler(
        ConversationHandler(
            entry_points=[
                CommandHandler("search", handler.start_search),
                CallbackQueryHandler(handler.start_search, pattern=f"^{Callbacks.PRODUCTS_SEARCH}$"),
            ],
            states={SEARCH_QUERY: [MessageHandler(filters.TEXT & ~filters.COMMAND, handler.handle_search)]},
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=SEARCH_GROUP,
    )
    application.add_handler(
        ConversationHandler(
            entry_points=[
                CallbackQueryHandler(handler.start_review, pattern=f"^{Callbacks.REVIEW_WRITE}"),
                CallbackQueryHandler(handler.start_edit_review, pattern=f"^{Callbacks.REVIEW_EDIT}"),
            ],
            states={
                REVIEW_RATING: [CallbackQueryHandler(handler.handle_rating, pattern=rf"^{Callbacks.REVIEW_RATE}[1-5]$")],
                REVIEW_COMMENT: [
                    MessageHandler(filters.TEXT & ~filters.COMMAND, handler.handle_comment),
                    CallbackQueryHandler(handler.skip_comment, pattern=f"^{Callbacks.REVIEW_SKIP}$"),
                ],
            },
            fallbacks=[cancel, *leave_handlers(keep=f"({Callbacks.REVIEW_RATE}|{Callbacks.REVIEW_SKIP})")],
            per_message=False,
            allow_reentry=True,
        ),
        group=REVIEW_GROUP,
    )
