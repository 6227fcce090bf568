"""
Start, login, registration and logout handlers
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
from storefront.keyboards.menu_keyboards import get_back_to_main_keyboard, get_main_menu_keyboard
from storefront.services.session import end_session, start_session
from storefront.states import (
    END,
    LOGIN_EMAIL,
    LOGIN_GROUP,
    LOGIN_PASSWORD,
    REGISTER_EMAIL,
    REGISTER_FIRST_NAME,
    REGISTER_GROUP,
    REGISTER_LAST_NAME,
    REGISTER_PASSWORD,
)
from storefront.utils.constants import AuthSettings, Callbacks
from storefront.utils.error_handler import ApiError, ErrorKind, user_message
from storefront.utils.helpers import escape_html

logger = logging.getLogger(__name__)

FORM_KEY = "auth_form"


class StartHandler(BaseHandler):
    """Main page plus the auth conversations"""

    def _main_text(self, session) -> str:
        if session.is_authenticated:
            return (
                f"👋 <b>Welcome back, {escape_html(session.user.first_name or session.user.email)}!</b>\n\n"
                "What would you like to do today?"
            )
        return (
            "🛍️ <b>Welcome to the store!</b>\n\n"
            "Browse the catalog, or log in to shop and track your orders."
        )

    async def start_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        """Handle /start"""
        user = update.effective_user
        self.logger.info("Start command received from user %s (%s)", user.id, user.username)
        session = self.session(context)
        await update.message.reply_text(
            self._main_text(session), parse_mode="HTML", reply_markup=get_main_menu_keyboard(session)
        )
        return END

    async def show_main_page(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        query = update.callback_query
        await query.answer()
        session = self.session(context)
        await self._safe_edit_message(query, self._main_text(session), reply_markup=get_main_menu_keyboard(session))
        return END

    # -------------------------------- login --------------------------------

    async def start_login(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if update.callback_query:
            await update.callback_query.answer()
        context.user_data[FORM_KEY] = {}
        await self._respond(update, "🔑 <b>Log in</b>\n\nPlease send your email address.\n\n/cancel to stop.")
        return LOGIN_EMAIL

    async def handle_login_email(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        email = update.message.text.strip()
        if "@" not in email:
            await update.message.reply_text("That doesn't look like an email address. Please try again.")
            return LOGIN_EMAIL
        context.user_data.setdefault(FORM_KEY, {})["email"] = email
        await update.message.reply_text("🔒 Now send your password. The message will be deleted right away.")
        return LOGIN_PASSWORD

    async def handle_login_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        password = update.message.text
        await delete_sensitive_message(update)
        form = context.user_data.pop(FORM_KEY, {})

        try:
            session = await self.container.get_auth_service().login(form.get("email", ""), password)
        except ApiError as exc:
            if exc.kind in (ErrorKind.AUTH, ErrorKind.VALIDATION):
                context.user_data[FORM_KEY] = {}
                await update.effective_message.reply_text(
                    "❌ Invalid email or password.\n\nPlease send your email address again, or /cancel."
                )
                return LOGIN_EMAIL
            await update.effective_message.reply_text(
                f"❌ {user_message(exc)}", reply_markup=get_back_to_main_keyboard()
            )
            return END

        start_session(context, session)
        await update.effective_message.reply_text(
            self._main_text(session), parse_mode="HTML", reply_markup=get_main_menu_keyboard(session)
        )
        return END

    # ------------------------------ register -------------------------------

    async def start_register(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if update.callback_query:
            await update.callback_query.answer()
        context.user_data[FORM_KEY] = {}
        await self._respond(update, "📝 <b>Create an account</b>\n\nPlease send your email address.\n\n/cancel to stop.")
        return REGISTER_EMAIL

    async def handle_register_email(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        email = update.message.text.strip()
        if "@" not in email:
            await update.message.reply_text("That doesn't look like an email address. Please try again.")
            return REGISTER_EMAIL
        context.user_data.setdefault(FORM_KEY, {})["email"] = email
        await update.message.reply_text(
            f"🔒 Choose a password (at least {AuthSettings.MIN_PASSWORD_LENGTH} characters). The message will be deleted."
        )
        return REGISTER_PASSWORD

    async def handle_register_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        password = update.message.text
        await delete_sensitive_message(update)
        if len(password) < AuthSettings.MIN_PASSWORD_LENGTH:
            await update.effective_message.reply_text(
                f"Password must be at least {AuthSettings.MIN_PASSWORD_LENGTH} characters. Please choose another one."
            )
            return REGISTER_PASSWORD
        context.user_data.setdefault(FORM_KEY, {})["password"] = password
        await update.effective_message.reply_text("👤 What is your first name?")
        return REGISTER_FIRST_NAME

    async def handle_register_first_name(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        first_name = update.message.text.strip()
        if not first_name:
            await update.message.reply_text("Please send your first name.")
            return REGISTER_FIRST_NAME
        context.user_data.setdefault(FORM_KEY, {})["first_name"] = first_name
        await update.message.reply_text("👤 And your last name?")
        return REGISTER_LAST_NAME

    async def handle_register_last_name(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        last_name = update.message.text.strip()
        if not last_name:
            await update.message.reply_text("Please send your last name.")
            return REGISTER_LAST_NAME
        form = context.user_data.pop(FORM_KEY, {})

        try:
            session = await self.container.get_auth_service().register(
                form.get("email", ""), form.get("password", ""), form.get("first_name", ""), last_name
            )
        except ApiError as exc:
            await update.message.reply_text(
                f"❌ Registration failed: {escape_html(user_message(exc))}",
                parse_mode="HTML",
                reply_markup=get_back_to_main_keyboard(),
            )
            return END

        start_session(context, session)
        await update.message.reply_text(
            f"🎉 Account created!\n\n{self._main_text(session)}",
            parse_mode="HTML",
            reply_markup=get_main_menu_keyboard(session),
        )
        return END

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop(FORM_KEY, None)
        await update.effective_message.reply_text("Cancelled.", reply_markup=get_back_to_main_keyboard())
        return END

    # ------------------------------- logout --------------------------------

    async def logout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if update.callback_query:
            await update.callback_query.answer()
        session = end_session(context)
        if session is not None:
            self.container.get_auth_service().logout(session)
        guest = self.session(context)
        await self._respond(
            update, "👋 You have been logged out.\n\n" + self._main_text(guest), reply_markup=get_main_menu_keyboard(guest)
        )
        return END


def register_start_handlers(application: Application):
    """Register start and auth handlers"""
    handler = StartHandler()
    text = filters.TEXT & ~filters.COMMAND
    cancel = CommandHandler("cancel", handler.cancel)

    application.add_handler(CommandHandler("start", handler.start_command))
    application.add_handler(CommandHandler("logout", handler.logout))
    application.add_handler(CallbackQueryHandler(handler.show_main_page, pattern=f"^{Callbacks.MAIN}$"))
    application.add_handler(CallbackQueryHandler(handler.logout, pattern=f"^{Callbacks.LOGOUT}$"))

    application.add_handler(
        ConversationHandler(
            entry_points=[
                CommandHandler("login", handler.start_login),
                CallbackQueryHandler(handler.start_login, pattern=f"^{Callbacks.LOGIN}$"),
            ],
            states={
                LOGIN_EMAIL: [MessageHandler(text, handler.handle_login_email)],
                LOGIN_PASSWORD: [MessageHandler(text, handler.handle_login_password)],
            },
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=LOGIN_GROUP,
    )
    application.add_handler(
        ConversationHandler(
            entry_points=[
                CommandHandler("register", handler.start_register),
                CallbackQueryHandler(handler.start_register, pattern=f"^{Callbacks.REGISTER}$"),
            ],
            states={
                REGISTER_EMAIL: [MessageHandler(text, handler.handle_register_email)],
                REGISTER_PASSWORD: [MessageHandler(text, handler.handle_register_password)],
                REGISTER_FIRST_NAME: [MessageHandler(text, handler.handle_register_first_name)],
                REGISTER_LAST_NAME: [MessageHandler(text, handler.handle_register_last_name)],
            },
            fallbacks=[cancel, *leave_handlers()],
            per_message=False,
            allow_reentry=True,
        ),
        group=REGISTER_GROUP,
    )
