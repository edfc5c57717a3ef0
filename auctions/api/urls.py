"""
API URL configuration.

Endpoints:
- GET  /api/v1/crawl-runs/ - List crawl runs
- POST /api/v1/crawl/      - Trigger a crawl (staff only)
"""

from django.urls import path

from auctions.api.views import CrawlRunListView, trigger_crawl

app_name = "auctions_api"

urlpatterns = [
    path("crawl-runs/", CrawlRunListView.as_view(), name="crawl-run-list"),
    path("crawl/", trigger_crawl, name="trigger-crawl"),
]
