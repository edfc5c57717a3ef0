"""
Development settings for the Auction Lot Crawler.

Uses local SQLite, Redis for Celery and relaxed security settings.
"""

import os
from .base import *

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Development database - SQLite for simplicity
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Development Cache - local memory (no Redis needed for local dev)
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Development Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# Development logging - verbose output
LOGGING["loggers"]["django"]["level"] = "INFO"
LOGGING["loggers"]["auctions"]["level"] = "DEBUG"

# Development-specific settings
INTERNAL_IPS = ["127.0.0.1"]

# Less strict password validators for development
AUTH_PASSWORD_VALIDATORS = []

# Watch the browser and keep retries low while debugging selectors
AUCTIONS_HEADLESS = os.getenv("AUCTIONS_HEADLESS", "False") == "True"
AUCTIONS_NAVIGATION_TIMEOUT = 60
AUCTIONS_PAGE_MAX_RETRIES = 1
AUCTIONS_INTER_HOUSE_DELAY = 1.0
