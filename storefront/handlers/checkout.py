"""
Checkout conversation

Drives a ``CheckoutWizard`` kept in ``context.user_data``: shipping fields
are asked one at a time, then the payment method (and card fields for
card payments), then the review screen with Place Order.
"""

import logging
from typing import List, Optional

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    TypeHandler,
    filters,
)

from storefront.checkout.wizard import (
    CARD_FIELD_LABELS,
    SHIPPING_FIELD_LABELS,
    CheckoutGate,
    CheckoutWizard,
    PaymentMethod,
    SubmissionStatus,
    check_preconditions,
)
from storefront.handlers.base import BaseHandler, delete_sensitive_message, leave_handlers
from storefront.keyboards.menu_keyboards import get_back_to_main_keyboard, get_login_prompt_keyboard
from storefront.keyboards.order_keyboards import (
    get_card_prompt_keyboard,
    get_order_placed_keyboard,
    get_payment_method_keyboard,
    get_review_keyboard,
    get_shipping_prompt_keyboard,
)
from storefront.models import Address
from storefront.services.session import end_session
from storefront.states import (
    CHECKOUT_CARD,
    CHECKOUT_GROUP,
    CHECKOUT_PAYMENT,
    CHECKOUT_REVIEW,
    CHECKOUT_SHIPPING,
    END,
)
from storefront.utils.constants import Callbacks
from storefront.utils.error_handler import ApiError, ErrorKind, ValidationError, user_message
from storefront.utils.helpers import (
    callback_arg,
    escape_html,
    format_address,
    format_cart_lines,
    format_order,
    format_summary_lines,
    truncate,
)

logger = logging.getLogger(__name__)

WIZARD_KEY = "checkout_wizard"
FIELD_KEY = "checkout_field"
SAVED_ADDRESS_KEY = "checkout_saved_address"

SHIPPING_FIELDS: List[str] = list(SHIPPING_FIELD_LABELS)
CARD_FIELDS: List[str] = list(CARD_FIELD_LABELS)


class CheckoutHandler(BaseHandler):
    """Telegram front end for the checkout wizard"""

    def _wizard(self, context: ContextTypes.DEFAULT_TYPE) -> Optional[CheckoutWizard]:
        return context.user_data.get(WIZARD_KEY)

    def _discard(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        for key in (WIZARD_KEY, FIELD_KEY, SAVED_ADDRESS_KEY):
            context.user_data.pop(key, None)

    # -------------------------------- entry --------------------------------

    async def start_checkout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if update.callback_query:
            await update.callback_query.answer()
        session = self.session(context)

        if check_preconditions(session, None) is CheckoutGate.LOGIN_REQUIRED:
            await self._require_login(update)
            return END

        try:
            # always start from the API's current cart, never a cached one
            cart = await self.container.get_cart_service().get_cart(session, refresh=True)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.CHECKOUT, "checkout_cart")
            return END

        if check_preconditions(session, cart) is CheckoutGate.EMPTY_CART:
            await self._respond(
                update,
                "🛒 <b>Your cart is empty</b>\n\nAdd some products before checking out.",
                reply_markup=get_back_to_main_keyboard(),
            )
            return END

        self._discard(context)
        context.user_data[WIZARD_KEY] = CheckoutWizard(cart, default_country=self.config.default_country)
        context.user_data[SAVED_ADDRESS_KEY] = await self._load_saved_address(context)
        self.logger.info("User %s started checkout with %s items", session.user.id, cart.total_item_count)
        return await self._prompt_shipping_field(update, context, 0)

    async def _load_saved_address(self, context: ContextTypes.DEFAULT_TYPE) -> Optional[Address]:
        try:
            return await self.container.get_user_service().get_default_address(self.session(context))
        except ApiError as exc:
            # the saved address is a shortcut only; checkout continues without it
            self.logger.warning("Could not load saved address: %s", exc.message)
            return None

    # ------------------------------- shipping ------------------------------

    async def _prompt_shipping_field(self, update: Update, context: ContextTypes.DEFAULT_TYPE, index: int) -> int:
        wizard = self._wizard(context)
        if index >= len(SHIPPING_FIELDS):
            return await self._finish_shipping(update, context)

        context.user_data[FIELD_KEY] = index
        name = SHIPPING_FIELDS[index]
        current = getattr(wizard.shipping, name)
        text = f"📦 <b>Shipping address</b> ({index + 1}/{len(SHIPPING_FIELDS)})\n\n{SHIPPING_FIELD_LABELS[name]}:"
        if current:
            text += f"\n<i>Current: {escape_html(current)}</i>"
        saved = context.user_data.get(SAVED_ADDRESS_KEY)
        await self._respond(
            update,
            text,
            reply_markup=get_shipping_prompt_keyboard(
                optional=name == "address_line2",
                has_value=bool(current),
                can_use_saved=index == 0 and saved is not None,
            ),
        )
        return CHECKOUT_SHIPPING

    async def _finish_shipping(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        try:
            wizard.advance()
        except ValidationError as exc:
            missing = exc.context.get("missing_fields") or SHIPPING_FIELDS[:1]
            await update.effective_message.reply_text(f"⚠️ {exc.message}")
            return await self._prompt_shipping_field(update, context, SHIPPING_FIELDS.index(missing[0]))
        return await self._show_payment(update, context)

    async def handle_shipping_input(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        index = context.user_data.get(FIELD_KEY, 0)
        wizard.update_shipping(**{SHIPPING_FIELDS[index]: update.message.text.strip()})
        return await self._prompt_shipping_field(update, context, index + 1)

    async def handle_shipping_skip(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Skip an optional field (clears it) or keep the current value"""
        query = update.callback_query
        await query.answer()
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        index = context.user_data.get(FIELD_KEY, 0)
        if query.data == Callbacks.CO_SKIP:
            wizard.update_shipping(**{SHIPPING_FIELDS[index]: ""})
        return await self._prompt_shipping_field(update, context, index + 1)

    async def handle_use_saved_address(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        wizard = self._wizard(context)
        saved: Optional[Address] = context.user_data.get(SAVED_ADDRESS_KEY)
        if wizard is None:
            return await self._expired(update, context)
        if saved is not None:
            session = self.session(context)
            wizard.update_shipping(
                full_name=wizard.shipping.full_name or (session.user.full_name if session.user else ""),
                address_line1=saved.street,
                city=saved.city,
                state=saved.state,
                postal_code=saved.zip_code,
                country=saved.country,
            )
        missing = wizard.shipping.missing_fields()
        if missing:
            return await self._prompt_shipping_field(update, context, SHIPPING_FIELDS.index(missing[0]))
        return await self._finish_shipping(update, context)

    # ------------------------------- payment -------------------------------

    async def _show_payment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        await self._respond(
            update,
            "💳 <b>Payment method</b>\n\nHow would you like to pay?",
            reply_markup=get_payment_method_keyboard(wizard.payment.method),
        )
        return CHECKOUT_PAYMENT

    async def handle_payment_method(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        wizard.select_payment(PaymentMethod(callback_arg(query.data, Callbacks.CO_PAY)))
        if wizard.payment.method is PaymentMethod.CARD:
            return await self._prompt_card_field(update, context, 0)
        return await self._finish_payment(update, context)

    async def _prompt_card_field(self, update: Update, context: ContextTypes.DEFAULT_TYPE, index: int) -> int:
        wizard = self._wizard(context)
        if index >= len(CARD_FIELDS):
            return await self._finish_payment(update, context)

        context.user_data[FIELD_KEY] = index
        name = CARD_FIELDS[index]
        current = getattr(wizard.payment.card, name)
        text = f"💳 <b>Card details</b> ({index + 1}/{len(CARD_FIELDS)})\n\n{CARD_FIELD_LABELS[name]}:"
        if index == 0:
            text += "\n<i>Card details are only used to complete this form and are deleted from the chat.</i>"
        await self._respond(update, text, reply_markup=get_card_prompt_keyboard(has_value=bool(current)))
        return CHECKOUT_CARD

    async def handle_card_input(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        value = update.message.text.strip()
        await delete_sensitive_message(update)
        if wizard is None:
            return await self._expired(update, context)
        index = context.user_data.get(FIELD_KEY, 0)
        wizard.update_card(**{CARD_FIELDS[index]: value})
        return await self._prompt_card_field(update, context, index + 1)

    async def handle_card_keep(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        if self._wizard(context) is None:
            return await self._expired(update, context)
        return await self._prompt_card_field(update, context, context.user_data.get(FIELD_KEY, 0) + 1)

    async def _finish_payment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        try:
            wizard.advance()
        except ValidationError as exc:
            missing = exc.context.get("missing_fields") or []
            await update.effective_message.reply_text(f"⚠️ {exc.message}")
            if missing and missing[0] in CARD_FIELDS:
                return await self._prompt_card_field(update, context, CARD_FIELDS.index(missing[0]))
            return await self._show_payment(update, context)
        return await self._show_review(update, context)

    async def handle_payment_back(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Back from the payment step (or its card prompts) to the previous screen"""
        await update.callback_query.answer()
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        wizard.back()
        return await self._prompt_shipping_field(update, context, 0)

    async def handle_card_back(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        if self._wizard(context) is None:
            return await self._expired(update, context)
        return await self._show_payment(update, context)

    # -------------------------------- review -------------------------------

    def _review_text(self, wizard: CheckoutWizard, placing: bool = False) -> str:
        payment = wizard.payment
        payment_label = payment.method.label if payment.method else "-"
        if payment.method is PaymentMethod.CARD and payment.card.masked_number:
            payment_label += f" ({payment.card.masked_number})"

        parts = [
            "🧾 <b>Review your order</b>",
            "",
            "<b>Ship to</b>",
            format_address(wizard.shipping.to_payload()),
            "",
            f"<b>Payment:</b> {escape_html(payment_label)}",
            "",
            "<b>Items</b>",
            *format_cart_lines(wizard.cart, self.currency),
            "",
            *format_summary_lines(wizard.summary, self.currency),
        ]

        submission = wizard.submission
        if placing or submission.status is SubmissionStatus.IN_FLIGHT:
            parts.extend(["", "⏳ <b>Placing your order…</b>"])
        elif submission.status is SubmissionStatus.FAILED:
            parts.extend(
                [
                    "",
                    f"⚠️ <b>Order failed:</b> {escape_html(user_message(submission.error))}",
                    "Your details are saved. Tap Retry to try again.",
                ]
            )
        return truncate("\n".join(parts))

    async def _show_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        wizard = self._wizard(context)
        await self._respond(
            update,
            self._review_text(wizard),
            reply_markup=get_review_keyboard(
                wizard.can_place_order, failed=wizard.submission.status is SubmissionStatus.FAILED
            ),
        )
        return CHECKOUT_REVIEW

    async def handle_review_back(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        if wizard.is_submitting:
            return CHECKOUT_REVIEW
        wizard.back()
        return await self._show_payment(update, context)

    async def handle_edit_address(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        wizard = self._wizard(context)
        if wizard is None:
            return await self._expired(update, context)
        if wizard.is_submitting:
            return CHECKOUT_REVIEW
        wizard.back()
        wizard.back()
        return await self._prompt_shipping_field(update, context, 0)

    async def handle_place_order(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        wizard = self._wizard(context)
        if wizard is None:
            await query.answer()
            return await self._expired(update, context)
        if wizard.is_submitting:
            await query.answer("Your order is already being placed…")
            return CHECKOUT_REVIEW
        await query.answer()

        session = self.session(context)
        await self._show_review_in_flight(update, wizard)
        submission = await wizard.submit(self.container.get_order_service(), session)

        if submission.status is SubmissionStatus.IN_FLIGHT:
            # another press got there first; its handler renders the outcome
            return CHECKOUT_REVIEW

        if submission.status is SubmissionStatus.SUCCEEDED:
            order = submission.order
            if context.user_data.get(WIZARD_KEY) is wizard:
                self._discard(context)
            await self.container.get_notification_service().notify_new_order(
                order, session.user.full_name if session.user else ""
            )
            await self._respond(
                update,
                f"🎉 <b>Thank you! Your order has been placed.</b>\n\n{format_order(order, self.currency)}",
                reply_markup=get_order_placed_keyboard(order),
            )
            return END

        if submission.error is not None and submission.error.kind is ErrorKind.AUTH:
            self._discard(context)
            end_session(context)
            await self._respond(update, f"🔑 {user_message(submission.error)}", reply_markup=get_login_prompt_keyboard())
            return END

        return await self._show_review(update, context)

    async def _show_review_in_flight(self, update: Update, wizard: CheckoutWizard) -> None:
        await self._respond(update, self._review_text(wizard, placing=True), reply_markup=get_review_keyboard(False))

    # ---------------------------- leaving early ----------------------------

    async def cancel_checkout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Drop the draft at any step, no confirmation"""
        if update.callback_query:
            await update.callback_query.answer()
        self._discard(context)
        self.logger.info("User %s left checkout", update.effective_user.id if update.effective_user else None)
        await self._respond(update, "Checkout cancelled. Your cart is unchanged.", reply_markup=get_back_to_main_keyboard())
        return END

    async def leave_checkout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Another button or command was used mid-checkout; its own handler answers it"""
        self._discard(context)
        self.logger.info("User %s navigated away from checkout", update.effective_user.id if update.effective_user else None)
        return END

    async def checkout_timed_out(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        self._discard(context)
        self.logger.info("Checkout timed out for user %s", update.effective_user.id if update.effective_user else None)
        if update.effective_message:
            await update.effective_message.reply_text(
                "⌛ Your checkout timed out and the draft was discarded. Your cart is unchanged.",
                reply_markup=get_back_to_main_keyboard(),
            )

    async def _expired(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        self._discard(context)
        await self._respond(
            update, "This checkout has expired. Please open your cart and start again.", reply_markup=get_back_to_main_keyboard()
        )
        return END


def register_checkout_handlers(application: Application):
    """Register the checkout conversation"""
    handler = CheckoutHandler()
    text = filters.TEXT & ~filters.COMMAND
    cancel_button = CallbackQueryHandler(handler.cancel_checkout, pattern=f"^{Callbacks.CO_CANCEL}$")

    conv_handler = ConversationHandler(
        entry_points=[
            CommandHandler("checkout", handler.start_checkout),
            CallbackQueryHandler(handler.start_checkout, pattern=f"^{Callbacks.CHECKOUT}$"),
        ],
        states={
            CHECKOUT_SHIPPING: [
                MessageHandler(text, handler.handle_shipping_input),
                CallbackQueryHandler(handler.handle_shipping_skip, pattern=f"^({Callbacks.CO_SKIP}|{Callbacks.CO_KEEP})$"),
                CallbackQueryHandler(handler.handle_use_saved_address, pattern=f"^{Callbacks.CO_SAVED}$"),
                cancel_button,
            ],
            CHECKOUT_PAYMENT: [
                CallbackQueryHandler(handler.handle_payment_method, pattern=f"^{Callbacks.CO_PAY}(card|paypal|cod)$"),
                CallbackQueryHandler(handler.handle_payment_back, pattern=f"^{Callbacks.CO_BACK}$"),
                cancel_button,
            ],
            CHECKOUT_CARD: [
                MessageHandler(text, handler.handle_card_input),
                CallbackQueryHandler(handler.handle_card_keep, pattern=f"^{Callbacks.CO_KEEP}$"),
                CallbackQueryHandler(handler.handle_card_back, pattern=f"^{Callbacks.CO_BACK}$"),
                cancel_button,
            ],
            CHECKOUT_REVIEW: [
                CallbackQueryHandler(handler.handle_place_order, pattern=f"^{Callbacks.CO_PLACE}$"),
                CallbackQueryHandler(handler.handle_review_back, pattern=f"^{Callbacks.CO_BACK}$"),
                CallbackQueryHandler(handler.handle_edit_address, pattern=f"^{Callbacks.CO_EDIT_ADDRESS}$"),
                cancel_button,
            ],
            ConversationHandler.TIMEOUT: [TypeHandler(Update, handler.checkout_timed_out)],
        },
        fallbacks=[
            CommandHandler("cancel", handler.cancel_checkout),
            cancel_button,
            *leave_handlers(handler.leave_checkout, keep="co_"),
        ],
        per_message=False,
        allow_reentry=True,
        conversation_timeout=handler.config.checkout_timeout_minutes * 60,
    )
    application.add_handler(conv_handler, group=CHECKOUT_GROUP)
