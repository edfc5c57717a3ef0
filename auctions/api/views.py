"""
API Views

Endpoints:
- GET  /api/v1/crawl-runs/  - List crawl run audit rows (filter by auctioneer/status)
- POST /api/v1/crawl/       - Enqueue a crawl of one house or of every enabled house
"""

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from auctions.api.serializers import CrawlRunSerializer, CrawlTriggerSerializer
from auctions.api.throttling import CrawlTriggerThrottle
from auctions.models import CrawlRun
from auctions.sites import get_site
from auctions.tasks import crawl_all_auction_houses, crawl_auction_house

logger = logging.getLogger(__name__)


@extend_schema(
    tags=["Crawl Runs"],
    summary="List crawl runs",
    parameters=[
        OpenApiParameter("auctioneer", OpenApiTypes.STR, description="Exact site name"),
        OpenApiParameter("status", OpenApiTypes.STR, enum=["success", "error"]),
    ],
)
class CrawlRunListView(generics.ListAPIView):
    """Crawl run audit rows, newest first."""

    serializer_class = CrawlRunSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = CrawlRun.objects.select_related("auction_house").order_by("-started_at")

        auctioneer = self.request.query_params.get("auctioneer")
        if auctioneer:
            queryset = queryset.filter(auctioneer=auctioneer)

        run_status = self.request.query_params.get("status")
        if run_status:
            queryset = queryset.filter(status=run_status)

        return queryset


@extend_schema(
    tags=["Crawl"],
    summary="Trigger a crawl",
    description="Queue a crawl of one auction house, or of every enabled house when `house` is omitted.",
    request=CrawlTriggerSerializer,
    responses={
        202: {"description": "Crawl queued"},
        400: {"description": "Unknown auction house"},
    },
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
@throttle_classes([CrawlTriggerThrottle])
def trigger_crawl(request):
    """
    Queue a crawl.

    Request body:
    {
        "house": "sodre-santoro"   // Optional: slug, alias or name
    }
    """
    serializer = CrawlTriggerSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    house = serializer.validated_data.get("house", "").strip()

    if house:
        site = get_site(house)
        if site is None:
            return Response(
                {"error": f"Unknown auction house: {house}"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        task = crawl_auction_house.delay(site.slug)
        logger.info(f"Queued crawl of {site.name} by {request.user}: task {task.id}")
        return Response(
            {"queued": True, "house": site.slug, "task_id": task.id},
            status=status.HTTP_202_ACCEPTED,
        )

    task = crawl_all_auction_houses.delay()
    logger.info(f"Queued crawl of all enabled houses by {request.user}: task {task.id}")
    return Response(
        {"queued": True, "house": None, "task_id": task.id},
        status=status.HTTP_202_ACCEPTED,
    )
