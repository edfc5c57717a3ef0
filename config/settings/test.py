"""
Test settings for the Auction Lot Crawler.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

# Test mode
DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Test Cache - use local memory cache
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unique-snowflake",
    }
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["auctions"]["level"] = "WARNING"

# Password validators disabled for faster tests
AUTH_PASSWORD_VALIDATORS = []

# Use faster password hasher for tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable Sentry in tests
SENTRY_DSN = ""

# Test crawler settings - fail fast, never wait
AUCTIONS_ENABLED_HOUSES = ""
AUCTIONS_HEADLESS = True
AUCTIONS_NAVIGATION_TIMEOUT = 5
AUCTIONS_PAGE_MAX_RETRIES = 0
AUCTIONS_POLITENESS_DELAY_MS = (0, 0)
AUCTIONS_INTER_HOUSE_DELAY = 0
AUCTIONS_DEFAULT_STATE = "SP"
AUCTIONS_DEFAULT_CITY = "São Paulo"
AUCTIONS_DEAL_SCORE_FUNCTION = "auctions.scoring.calculate_deal_score"
AUCTIONS_TAXONOMY_SYNC_DELAY_MS = 0
