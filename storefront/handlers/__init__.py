"""
Telegram Bot Handlers

Central registration point for all bot handlers.
"""

from telegram.ext import Application

from storefront.utils.error_handler import telegram_error_handler

from .admin import register_admin_handlers
from .cart import register_cart_handlers
from .checkout import register_checkout_handlers
from .menu import register_menu_handlers
from .orders import register_order_handlers
from .profile import register_profile_handlers
from .start import register_start_handlers


def register_handlers(application: Application):
    """Register all bot handlers"""
    register_start_handlers(application)
    register_menu_handlers(application)
    register_cart_handlers(application)
    register_checkout_handlers(application)
    register_order_handlers(application)
    register_profile_handlers(application)
    register_admin_handlers(application)
    application.add_error_handler(telegram_error_handler)
