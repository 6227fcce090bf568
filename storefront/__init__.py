"""Telegram storefront bot for a remote shop API."""

__version__ = "0.1.0"
