"""
Django base settings for the Auction Lot Crawler.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-auctions-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "auctions",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "pt-br"

# Auction dates are published in Brasília time; "today" for the cutoff uses it
TIME_ZONE = "America/Sao_Paulo"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache Configuration
# Configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 3 * 60 * 60  # a full batch over every house

CELERY_TASK_ROUTES = {
    "auctions.tasks.crawl_*": {"queue": "crawl"},
    "auctions.tasks.sync_taxonomy": {"queue": "default"},
}


# Django REST Framework Configuration
# https://www.django-rest-framework.org/

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 100,
}


# DRF Spectacular (OpenAPI/Swagger) Configuration

SPECTACULAR_SETTINGS = {
    "TITLE": "Auction Lot Crawler API",
    "DESCRIPTION": "Vehicle auction lot collection and normalization service",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "auctions": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

# Initialize Sentry
import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Auction Crawler Configuration

# Comma-separated slugs/aliases to crawl; empty means every house
AUCTIONS_ENABLED_HOUSES = os.getenv("AUCTIONEERS", "")

AUCTIONS_HEADLESS = os.getenv("AUCTIONS_HEADLESS", "True") == "True"

# Navigation/request timeout (seconds)
AUCTIONS_NAVIGATION_TIMEOUT = int(os.getenv("AUCTIONS_NAVIGATION_TIMEOUT", "30"))

# Retries per page after the first attempt
AUCTIONS_PAGE_MAX_RETRIES = int(os.getenv("AUCTIONS_PAGE_MAX_RETRIES", "2"))

# Randomized delay between network operations (milliseconds)
AUCTIONS_POLITENESS_DELAY_MS = (
    int(os.getenv("AUCTIONS_POLITENESS_DELAY_MIN_MS", "150")),
    int(os.getenv("AUCTIONS_POLITENESS_DELAY_MAX_MS", "800")),
)

# Pause between auction houses in a batch (seconds)
AUCTIONS_INTER_HOUSE_DELAY = float(os.getenv("AUCTIONS_INTER_HOUSE_DELAY", "5.0"))

# Location used when a lot's state/city cannot be resolved
AUCTIONS_DEFAULT_STATE = os.getenv("AUCTIONS_DEFAULT_STATE", "SP")
AUCTIONS_DEFAULT_CITY = os.getenv("AUCTIONS_DEFAULT_CITY", "São Paulo")

AUCTIONS_DEAL_SCORE_FUNCTION = os.getenv(
    "AUCTIONS_DEAL_SCORE_FUNCTION",
    "auctions.scoring.calculate_deal_score"
)

# Minimum rapidfuzz ratio for typo-tolerant brand matching
AUCTIONS_FUZZY_BRAND_THRESHOLD = int(os.getenv("AUCTIONS_FUZZY_BRAND_THRESHOLD", "90"))

# Reference price API (taxonomy sync)
AUCTIONS_TAXONOMY_API_URL = os.getenv(
    "AUCTIONS_TAXONOMY_API_URL",
    "https://parallelum.com.br/fipe/api/v1"
)
AUCTIONS_TAXONOMY_SYNC_DELAY_MS = int(os.getenv("FIPE_SYNC_DELAY_MS", "150"))
