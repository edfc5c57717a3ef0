"""
Auctions application configuration.
"""

from django.apps import AppConfig


class AuctionsConfig(AppConfig):
    """Configuration for the auctions Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "auctions"
    verbose_name = "Auction Lots"
