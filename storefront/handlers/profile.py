"""
Profile, password and address book handlers
"""

import logging

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

from storefront.handlers.base import BaseHandler, delete_sensitive_message, leave_handlers
from storefront.keyboards.admin_keyboards import get_addresses_keyboard, get_profile_keyboard
from storefront.keyboards.menu_keyboards import get_back_to_main_keyboard
from storefront.states import (
    ADDRESS_FIELD,
    ADDRESS_GROUP,
    END,
    PASSWORD_CONFIRM,
    PASSWORD_CURRENT,
    PASSWORD_GROUP,
    PASSWORD_NEW,
    PROFILE_EDIT_GROUP,
    PROFILE_EDIT_VALUE,
)
from storefront.utils.constants import AuthSettings, Callbacks
from storefront.utils.error_handler import ApiError, ErrorKind, user_message
from storefront.utils.helpers import callback_arg, escape_html, format_saved_address

logger = logging.getLogger(__name__)

EDIT_KEY = "profile_edit_field"
ADDRESS_FORM_KEY = "address_form"
PASSWORD_FORM_KEY = "password_form"

PROFILE_FIELDS = {"first": ("first_name", "first name"), "last": ("last_name", "last name")}

ADDRESS_PROMPTS = (
    ("street", "Street address"),
    ("city", "City"),
    ("state", "State / Province"),
    ("zipCode", "ZIP / Postal code"),
    ("country", "Country"),
)


class ProfileHandler(BaseHandler):
    """Profile view, name edits and saved addresses"""

    async def show_profile(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if update.callback_query:
            await update.callback_query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            user = await self.container.get_user_service().get_profile(session)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.PROFILE, "get_profile")
            return

        text = (
            "👤 <b>My Profile</b>\n\n"
            f"Name: {escape_html(user.full_name or '-')}\n"
            f"Email: {escape_html(user.email)}"
        )
        if user.is_admin:
            text += "\nRole: Admin"
        await self._respond(update, text, reply_markup=get_profile_keyboard())

    # ------------------------------ name edits -----------------------------

    async def start_edit(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        if not self.session(context).is_authenticated:
            await self._require_login(update)
            return END
        key = callback_arg(query.data, Callbacks.PROFILE_EDIT)
        field_name, label = PROFILE_FIELDS.get(key, PROFILE_FIELDS["first"])
        context.user_data[EDIT_KEY] = field_name
        await self._safe_edit_message(query, f"✏️ Send your new {label}.\n\n/cancel to stop.")
        return PROFILE_EDIT_VALUE

    async def handle_edit_value(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        value = update.message.text.strip()
        field_name = context.user_data.get(EDIT_KEY, "first_name")
        if not value:
            await update.message.reply_text("Please send a non-empty value, or /cancel.")
            return PROFILE_EDIT_VALUE

        try:
            await self.container.get_user_service().update_profile(self.session(context), **{field_name: value})
        except ApiError as exc:
            if exc.kind is ErrorKind.VALIDATION:
                await update.message.reply_text(f"❌ {user_message(exc)}\n\nPlease try again, or /cancel.")
                return PROFILE_EDIT_VALUE
            context.user_data.pop(EDIT_KEY, None)
            await self._show_api_error(update, context, exc, Callbacks.PROFILE, "update_profile")
            return END

        context.user_data.pop(EDIT_KEY, None)
        await update.message.reply_text("✅ Profile updated.")
        await self.show_profile(update, context)
        return END

    # ------------------------------ addresses ------------------------------

    async def show_addresses(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if update.callback_query:
            await update.callback_query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            addresses = await self.container.get_user_service().list_addresses(session)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADDRESSES, "list_addresses")
            return

        if addresses:
            blocks = [f"<b>#{index}</b>\n{format_saved_address(address)}" for index, address in enumerate(addresses, start=1)]
            text = "📍 <b>Saved addresses</b>\n\n" + "\n\n".join(blocks)
        else:
            text = "📍 <b>Saved addresses</b>\n\nNo saved addresses yet."
        await self._respond(update, text, reply_markup=get_addresses_keyboard(addresses))

    async def start_add_address(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.callback_query.answer()
        if not self.session(context).is_authenticated:
            await self._require_login(update)
            return END
        context.user_data[ADDRESS_FORM_KEY] = {}
        await self._respond(update, f"📍 <b>New address</b>\n\n{ADDRESS_PROMPTS[0][1]}:\n\n/cancel to stop.")
        return ADDRESS_FIELD

    async def handle_address_field(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        form = context.user_data.setdefault(ADDRESS_FORM_KEY, {})
        value = update.message.text.strip()
        if not value:
            await update.message.reply_text("Please send a value, or /cancel.")
            return ADDRESS_FIELD

        name, _ = ADDRESS_PROMPTS[len(form)]
        form[name] = value
        if len(form) < len(ADDRESS_PROMPTS):
            await update.message.reply_text(f"{ADDRESS_PROMPTS[len(form)][1]}:")
            return ADDRESS_FIELD

        context.user_data.pop(ADDRESS_FORM_KEY, None)
        try:
            await self.container.get_user_service().create_address(self.session(context), form)
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADDRESSES, "create_address")
            return END

        await update.message.reply_text("✅ Address saved.")
        await self.show_addresses(update, context)
        return END

    async def set_default_address(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            await self.container.get_user_service().set_default_address(
                session, callback_arg(query.data, Callbacks.ADDRESS_DEFAULT)
            )
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADDRESSES, "set_default_address")
            return
        await self.show_addresses(update, context)

    async def delete_address(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        if not session.is_authenticated:
            await self._require_login(update)
            return
        try:
            await self.container.get_user_service().delete_address(
                session, callback_arg(query.data, Callbacks.ADDRESS_DELETE)
            )
        except ApiError as exc:
            await self._show_api_error(update, context, exc, Callbacks.ADDRESSES, "delete_address")
            return
        await self.show_addresses(update, context)

    # ------------------------------- password ------------------------------

    async def start_change_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        if not self.session(context).is_authenticated:
            await self._require_login(update)
            return END
        context.user_data[PASSWORD_FORM_KEY] = {}
        await self._safe_edit_message(
            query,
            "🔒 <b>Change password</b>\n\nSend your current password. "
            "Each password message is deleted right away.\n\n/cancel to stop.",
        )
        return PASSWORD_CURRENT

    async def handle_current_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        password = update.message.text
        await delete_sensitive_message(update)
        context.user_data.setdefault(PASSWORD_FORM_KEY, {})["current"] = password
        await update.effective_message.reply_text(
            f"🔑 Now send the new password ({AuthSettings.MIN_PASSWORD_LENGTH} to "
            f"{AuthSettings.MAX_PASSWORD_LENGTH} characters)."
        )
        return PASSWORD_NEW

    async def handle_new_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        password = update.message.text
        await delete_sensitive_message(update)
        if not AuthSettings.MIN_PASSWORD_LENGTH <= len(password) <= AuthSettings.MAX_PASSWORD_LENGTH:
            await update.effective_message.reply_text(
                f"The new password must be {AuthSettings.MIN_PASSWORD_LENGTH} to "
                f"{AuthSettings.MAX_PASSWORD_LENGTH} characters. Please send another one."
            )
            return PASSWORD_NEW
        context.user_data.setdefault(PASSWORD_FORM_KEY, {})["new"] = password
        await update.effective_message.reply_text("🔁 Send the new password once more to confirm.")
        return PASSWORD_CONFIRM

    async def handle_confirm_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        password = update.message.text
        await delete_sensitive_message(update)
        form = context.user_data.get(PASSWORD_FORM_KEY) or {}
        if password != form.get("new"):
            form.pop("new", None)
            await update.effective_message.reply_text("❌ Passwords do not match. Please send the new password again.")
            return PASSWORD_NEW

        context.user_data.pop(PASSWORD_FORM_KEY, None)
        try:
            await self.container.get_user_service().change_password(
                self.session(context), form.get("current", ""), form["new"]
            )
        except ApiError as exc:
            if exc.kind is ErrorKind.VALIDATION:
                context.user_data[PASSWORD_FORM_KEY] = {}
                await update.effective_message.reply_text(
                    f"❌ {user_message(exc)}\n\nPlease send your current password again, or /cancel."
                )
                return PASSWORD_CURRENT
            await self._show_api_error(update, context, exc, Callbacks.PROFILE, "change_password")
            return END

        self.logger.info("User %s changed their password", update.effective_user.id)
        await update.effective_message.reply_text("✅ Password changed.", reply_markup=get_profile_keyboard())
        return END

    async def leave_password_form(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop(PASSWORD_FORM_KEY, None)
        return END

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop(EDIT_KEY, None)
        context.user_data.pop(ADDRESS_FORM_KEY, None)
        context.user_data.pop(PASSWORD_FORM_KEY, None)
        await update.effective_message.reply_text("Cancelled.", reply_markup=get_back_to_main_keyboard())
        return END


def register_profile_handlers(application: Application):
    """Register profile and address handlers"""
    handler = ProfileHandler()
    text = filters.TEXT & ~filters.COMMAND
    cancel = CommandHandler("cancel", handler.cancel)

    application.add_handler(CommandHandler("profile", handler.show_profile))
    application.add_handler(CallbackQueryHandler(handler.show_profile, pattern=f"^{Callbacks.PROFILE}$"))
    application.add_handler(CallbackQueryHandler(handler.show_addresses, pattern=f"^{Callbacks.ADDRESSES}$"))
    application.add_handler(CallbackQueryHandler(handler.set_default_address, pattern=f"^{Callbacks.ADDRESS_DEFAULT}"))
    application.add_handler(CallbackQueryHandler(handler.delete_address, pattern=f"^{Callbacks.ADDRESS_DELETE}"))

    application.add_handler(
        ConversationHandler(
            entry_points=[CallbackQueryHandler(handler.start_edit, pattern=f"^{Callbacks.PROFILE_EDIT}(first|last)$")],
            states={PROFILE_EDIT_VALUE: [MessageHandler(text, handler.handle_edit_value)]},
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=PROFILE_EDIT_GROUP,
    )
    application.add_handler(
        ConversationHandler(
            entry_points=[CallbackQueryHandler(handler.start_add_address, pattern=f"^{Callbacks.ADDRESS_ADD}$")],
            states={ADDRESS_FIELD: [MessageHandler(text, handler.handle_address_field)]},
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=ADDRESS_GROUP,
    )
    application.add_handler(
        ConversationHandler(
            entry_points=[CallbackQueryHandler(handler.start_change_password, pattern=f"^{Callbacks.PASSWORD_CHANGE}$")],
            states={
                PASSWORD_CURRENT: [MessageHandler(text, handler.handle_current_password)],
                PASSWORD_NEW: [MessageHandler(text, handler.handle_new_password)],
                PASSWORD_CONFIRM: [MessageHandler(text, handler.handle_confirm_password)],
            },
            fallbacks=[cancel, *leave_handlers(handler.leave_password_form)],
            per_message=False,
            allow_reentry=True,
        ),
        group=PASSWORD_GROUP,
    )
