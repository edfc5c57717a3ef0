"""
Sentry error tracking for the auction crawler.

- SDK initialization lives in config/settings/base.py
- Breadcrumbs carry crawl context (house, URL, error type)
- Sensitive keys (cookies, tokens, auth headers) are filtered out

Usage:
    from auctions.monitoring import capture_crawl_error, add_crawl_breadcrumb

    try:
        await orchestrator.crawl()
    except BrowserStartupError as e:
        capture_crawl_error(error=e, auction_house=house, url=site.base_url)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "auth",
    "password",
    "secret",
    "token",
    "x-api-key",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values of sensitive keys with "[Filtered]", recursing into dicts.
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_crawl_breadcrumb(
    source_name: str,
    url: str,
    message: str = "Crawl operation",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for crawl context.

    Args:
        source_name: Auction house / site name
        url: URL being crawled
        message: Description of the operation
        level: info, warning or error
        extra_data: Additional context (filtered for sensitive keys)
    """
    breadcrumb_data = {
        "source": source_name,
        "url": url,
    }
    if extra_data:
        breadcrumb_data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="crawl",
            message=message,
            level=level,
            data=breadcrumb_data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_crawl_error(
    error: Exception,
    auction_house=None,
    url: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a crawl error to Sentry with house and URL tags.

    Args:
        error: The exception that occurred
        auction_house: AuctionHouse instance, or a plain name string
        url: URL where the error occurred
        extra_context: Additional context (filtered for sensitive keys)
    """
    if auction_house is None:
        house_name, house_id = "Unknown", None
    elif isinstance(auction_house, str):
        house_name, house_id = auction_house, None
    else:
        house_name, house_id = auction_house.name, str(auction_house.id)

    add_crawl_breadcrumb(
        source_name=house_name,
        url=url or "Unknown",
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data=extra_context,
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("auctions.house", house_name)
            scope.set_tag("auctions.error", type(error).__name__)

            if house_id:
                scope.set_extra("auction_house_id", house_id)
            if url:
                scope.set_extra("crawl_url", url)
            if extra_context:
                scope.set_extra("crawl_context", _filter_sensitive_data(extra_context))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")
