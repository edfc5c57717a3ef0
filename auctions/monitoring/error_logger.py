"""
Persistent error records for crawl failures.

Every page skipped after its retries, and every house run that dies on
browser startup, gets a CrawlError row with the stack trace.

Usage:
    from auctions.monitoring import create_crawl_error_record

    create_crawl_error_record(
        auction_house=house,
        url=url,
        error_type="timeout",
        message="Navigation timeout of 30000 ms exceeded",
        stack_trace=trace,
    )
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.utils import timezone

from .sentry_integration import capture_crawl_error

logger = logging.getLogger(__name__)


def create_crawl_error_record(
    auction_house,
    url: str,
    error_type: str,
    message: str,
    stack_trace: Optional[str] = None,
):
    """
    Create a CrawlError record in the database.

    Unknown error types are stored as "unknown". A failure to write the
    record is logged and never propagates into the crawl.

    Returns:
        CrawlError instance, or None if it could not be written
    """
    from auctions.models import CrawlError, ErrorType

    valid_error_types = [choice[0] for choice in ErrorType.choices]
    if error_type not in valid_error_types:
        error_type = ErrorType.UNKNOWN

    try:
        error_record = CrawlError.objects.create(
            auction_house=auction_house,
            url=(url or "")[:2000],
            error_type=error_type,
            message=message,
            stack_trace=stack_trace or "",
            timestamp=timezone.now(),
            resolved=False,
        )
        logger.debug(f"Created CrawlError record {error_record.id} for {url}: {error_type}")
        return error_record

    except Exception as e:
        logger.error(f"Failed to create CrawlError record: {e}")
        return None


def log_error_with_context(
    error: Exception,
    auction_house=None,
    url: Optional[str] = None,
    error_type: str = "unknown",
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[Any]:
    """
    Log an exception, send it to Sentry and persist a CrawlError row.

    Must be called from inside the ``except`` block so the stack trace is
    available.
    """
    house_name = getattr(auction_house, "name", None) or "Unknown"
    logger.error(f"[{house_name}] {type(error).__name__} at {url}: {error}")

    capture_crawl_error(
        error=error,
        auction_house=auction_house,
        url=url,
        extra_context=extra_context,
    )

    return create_crawl_error_record(
        auction_house=auction_house,
        url=url or "",
        error_type=error_type,
        message=str(error),
        stack_trace=traceback.format_exc(),
    )
