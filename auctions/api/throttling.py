"""
API throttling classes.
"""

from rest_framework.throttling import UserRateThrottle


class CrawlTriggerThrottle(UserRateThrottle):
    """
    Throttle for the crawl trigger endpoint.

    Rate: 10 requests per hour per user.
    Applied to: /api/v1/crawl/
    """

    rate = "10/hour"
    scope = "crawl_trigger"
