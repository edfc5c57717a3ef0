"""
Tests for the HTTP surface.

- GET /api/health/
- GET /api/v1/crawl-runs/
- POST /api/v1/crawl/
"""

from unittest.mock import Mock, patch

import pytest
from django.core.cache import cache
from django.db import DatabaseError


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    """The trigger throttle keeps its history in the cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.mark.django_db
class TestHealthCheck:
    """Tests for the health check endpoint."""

    def test_healthy_without_runs(self, api_client):
        """A fresh install is healthy with no runs."""
        response = api_client.get("/api/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["last_run"] is None
        assert data["last_successful_run_at"] is None

    def test_reports_latest_runs(self, api_client, crawl_runs):
        """The latest run and the latest successful run are reported separately."""
        success, failed = crawl_runs

        data = api_client.get("/api/health/").json()

        assert data["last_run"]["auctioneer"] == "Superbid"
        assert data["last_run"]["status"] == "error"
        assert data["last_run"]["errors_count"] == 1
        assert data["last_successful_run_at"] == success.completed_at.isoformat()

    def test_database_down(self, api_client):
        """A broken database connection gives 503."""
        with patch("auctions.views.connection") as connection:
            connection.ensure_connection.side_effect = DatabaseError("gone")
            response = api_client.get("/api/health/")

        assert response.status_code == 503
        assert response.json()["database"] == "error"


@pytest.mark.django_db
class TestCrawlRunList:
    """Tests for GET /api/v1/crawl-runs/."""

    url = "/api/v1/crawl-runs/"

    def test_requires_authentication(self, api_client):
        response = api_client.get(self.url)

        assert response.status_code in (401, 403)

    def test_lists_newest_first(self, api_client, user, crawl_runs):
        """Runs are paginated and ordered by start time, newest first."""
        api_client.force_authenticate(user=user)

        response = api_client.get(self.url)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [run["auctioneer"] for run in data["results"]] == ["Superbid", "Sodré Santoro"]
        assert data["results"][1]["auction_house_slug"] == "sodre-santoro"
        assert data["results"][0]["auction_house_slug"] is None

    def test_filters(self, api_client, user, crawl_runs):
        """auctioneer and status narrow the list."""
        api_client.force_authenticate(user=user)

        by_house = api_client.get(self.url, {"auctioneer": "Sodré Santoro"}).json()
        by_status = api_client.get(self.url, {"status": "error"}).json()

        assert [run["status"] for run in by_house["results"]] == ["success"]
        assert [run["auctioneer"] for run in by_status["results"]] == ["Superbid"]


@pytest.mark.django_db
class TestTriggerCrawl:
    """Tests for POST /api/v1/crawl/."""

    url = "/api/v1/crawl/"

    def test_requires_staff(self, api_client, user):
        """Regular users cannot trigger crawls."""
        api_client.force_authenticate(user=user)

        response = api_client.post(self.url, {"house": "superbid"}, format="json")

        assert response.status_code == 403

    def test_unknown_house(self, api_client, admin_user):
        api_client.force_authenticate(user=admin_user)

        response = api_client.post(self.url, {"house": "leiloes-xyz"}, format="json")

        assert response.status_code == 400
        assert "leiloes-xyz" in response.json()["error"]

    def test_queues_one_house(self, api_client, admin_user):
        """Aliases resolve to the canonical slug before queueing."""
        api_client.force_authenticate(user=admin_user)

        with patch("auctions.api.views.crawl_auction_house") as task:
            task.delay.return_value = Mock(id="task-1")
            response = api_client.post(self.url, {"house": "Sodré Santoro"}, format="json")

        assert response.status_code == 202
        assert response.json() == {"queued": True, "house": "sodre-santoro", "task_id": "task-1"}
        task.delay.assert_called_once_with("sodre-santoro")

    def test_queues_every_house(self, api_client, admin_user):
        """Without a house the whole batch is queued."""
        api_client.force_authenticate(user=admin_user)

        with patch("auctions.api.views.crawl_all_auction_houses") as task:
            task.delay.return_value = Mock(id="task-2")
            response = api_client.post(self.url, {}, format="json")

        assert response.status_code == 202
        assert response.json()["house"] is None
        task.delay.assert_called_once_with()

    def test_throttled(self, api_client, admin_user):
        """More than ten triggers an hour are rejected."""
        api_client.force_authenticate(user=admin_user)

        with patch("auctions.api.views.crawl_all_auction_houses") as task:
            task.delay.return_value = Mock(id="task-3")
            statuses = [api_client.post(self.url, {}, format="json").status_code for _ in range(11)]

        assert statuses[:10] == [202] * 10
        assert statuses[10] == 429
