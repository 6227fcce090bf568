"""
Shared plumbing for handler classes
"""

import logging
from typing import Callable, List, Optional

from telegram import InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import CallbackQueryHandler, ContextTypes, MessageHandler, filters

from storefront.container import Container, get_container
from storefront.keyboards.menu_keyboards import get_login_prompt_keyboard
from storefront.keyboards.order_keyboards import get_retry_keyboard
from storefront.services.session import Session, end_session, get_session
from storefront.states import END
from storefront.utils.error_handler import ApiError, ErrorKind, ErrorReport, error_reporter, user_message

logger = logging.getLogger(__name__)


async def delete_sensitive_message(update: Update) -> None:
    """Remove a message that carried a password or card detail"""
    try:
        await update.message.delete()
    except BadRequest as exc:
        logger.debug("Could not delete sensitive message: %s", exc)


async def end_conversation(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    return END


def leave_handlers(callback: Callable = end_conversation, keep: Optional[str] = None) -> List:
    """
    Conversation fallbacks that end it on any other button or command.

    Every conversation is registered in its own handler group, so the update
    that ends it still reaches its regular handler in group 0. ``keep`` is a
    regex of the conversation's own callback data, which never ends it.
    """
    pattern = f"^(?!{keep})" if keep else None
    return [CallbackQueryHandler(callback, pattern=pattern), MessageHandler(filters.COMMAND, callback)]


class BaseHandler:
    """Container access, session lookup and message helpers"""

    def __init__(self, container: Optional[Container] = None):
        self.container = container or get_container()
        self.config = self.container.get_config()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def currency(self) -> str:
        return self.config.currency_symbol

    def session(self, context: ContextTypes.DEFAULT_TYPE) -> Session:
        return get_session(context)

    async def _safe_edit_message(self, query, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None):
        """Edit the callback's message in place; fall back to a new message"""
        try:
            await query.edit_message_text(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)
            return
        except BadRequest as exc:
            if "not modified" in str(exc).lower():
                return
            self.logger.warning("Failed to edit message, sending a new one: %s", exc)
        await query.message.reply_text(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)

    async def _respond(self, update: Update, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None):
        """Edit when answering a button press, reply when answering a message"""
        if update.callback_query:
            await self._safe_edit_message(update.callback_query, text, reply_markup=reply_markup)
        else:
            await update.effective_message.reply_text(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)

    async def _require_login(self, update: Update) -> None:
        await self._respond(
            update,
            "🔑 <b>Please log in</b>\n\nYou need an account to continue.",
            reply_markup=get_login_prompt_keyboard(),
        )

    async def _show_api_error(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
        error: ApiError,
        retry_callback: str,
        operation: str,
    ) -> None:
        """Page-level error; an AUTH failure also ends the local session"""
        user_id = str(update.effective_user.id) if update.effective_user else None
        error_reporter.report_error(ErrorReport(error=error, context={"operation": operation}, user_id=user_id))

        if error.kind is ErrorKind.AUTH:
            end_session(context)
            await self._respond(
                update,
                f"🔑 {user_message(error)}",
                reply_markup=get_login_prompt_keyboard(),
            )
            return
        await self._respond(update, f"❌ {user_message(error)}", reply_markup=get_retry_keyboard(retry_callback))
