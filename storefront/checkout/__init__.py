"""Checkout pricing and wizard."""
