"""
Monitoring for the auction crawler.

- Sentry breadcrumbs and exception capture with crawl context
- CrawlError records for failed pages and house runs
"""

from .sentry_integration import add_crawl_breadcrumb, capture_crawl_error
from .error_logger import create_crawl_error_record, log_error_with_context

__all__ = [
    "add_crawl_breadcrumb",
    "capture_crawl_error",
    "create_crawl_error_record",
    "log_error_with_context",
]
