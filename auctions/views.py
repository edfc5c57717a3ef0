"""
Auctions service views.

Includes the health check endpoint for monitoring and load balancer checks.
"""

from django.db import DatabaseError, connection
from django.http import JsonResponse

from auctions.models import CrawlRun, CrawlRunStatus


def health_check(request):
    """
    Health check endpoint for the auction crawler.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - last_run: latest CrawlRun (auctioneer, status, lots, completed_at) or null
        - last_successful_run_at: ISO timestamp of the latest successful run

    Returns:
        JsonResponse: HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except DatabaseError:
        database_status = "error"
        status = "unhealthy"
        http_status = 503

    last_run = None
    last_successful_run_at = None
    if database_status == "connected":
        latest = CrawlRun.objects.order_by("-started_at").first()
        if latest:
            last_run = {
                "auctioneer": latest.auctioneer,
                "status": latest.status,
                "lots_scraped": latest.lots_scraped,
                "errors_count": latest.errors_count,
                "completed_at": latest.completed_at.isoformat(),
            }

        latest_success = (
            CrawlRun.objects.filter(status=CrawlRunStatus.SUCCESS).order_by("-completed_at").first()
        )
        if latest_success:
            last_successful_run_at = latest_success.completed_at.isoformat()

    return JsonResponse(
        {
            "status": status,
            "database": database_status,
            "last_run": last_run,
            "last_successful_run_at": last_successful_run_at,
        },
        status=http_status,
    )
