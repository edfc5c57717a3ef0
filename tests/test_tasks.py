"""
Tests for the Celery tasks.

Tasks are called directly; the crawl and sync services are patched.
"""

from unittest.mock import MagicMock, patch

import pytest

from auctions.services.lot_persistence import CrawlRunResult
from auctions.services.taxonomy_import import ImportStats
from auctions.tasks import crawl_all_auction_houses, crawl_auction_house, sync_taxonomy


@pytest.mark.django_db
class TestCrawlAuctionHouse:
    """Tests for crawl_auction_house."""

    def test_unknown_house(self):
        """Unknown slugs fail without crawling."""
        with patch("auctions.tasks.LotPersistenceOrchestrator") as orchestrator_class:
            result = crawl_auction_house("leiloes-xyz")

        assert result["success"] is False
        assert result["errors"] == ["Unknown auction house: leiloes-xyz"]
        orchestrator_class.from_settings.assert_not_called()

    def test_runs_resolved_site(self):
        """The alias resolves to its adapter and the result is returned as a dict."""
        with patch("auctions.tasks.LotPersistenceOrchestrator") as orchestrator_class:
            orchestrator_class.from_settings.return_value.run.return_value = CrawlRunResult(
                auctioneer="Superbid", success=True, lots_scraped=3, lots_created=3
            )
            result = crawl_auction_house("superbid-real")

        site = orchestrator_class.from_settings.return_value.run.call_args[0][0]
        assert site.slug == "superbid"
        assert result["auctioneer"] == "Superbid"
        assert result["lots_created"] == 3


class TestCrawlAllAuctionHouses:
    """Tests for crawl_all_auction_houses."""

    def test_delegates_to_batch(self):
        with patch("auctions.tasks.run_batch", return_value={"success": True, "houses": []}) as batch:
            summary = crawl_all_auction_houses(["freitas"])

        batch.assert_called_once_with(["freitas"])
        assert summary["success"] is True

    def test_defaults_to_enabled_houses(self):
        with patch("auctions.tasks.run_batch", return_value={"success": True, "houses": []}) as batch:
            crawl_all_auction_houses()

        batch.assert_called_once_with(None)


class TestSyncTaxonomyTask:
    """Tests for the sync_taxonomy task."""

    def test_returns_stats_and_errors(self):
        client = MagicMock()
        client.__enter__.return_value = client

        def sync(categories, options):
            options.errors.append("motos: 404 Not Found")
            return ImportStats(categories=1, brands=2, models=3, years=4, prices=5)

        with patch("auctions.services.taxonomy_sync.FipeClient", return_value=client), patch(
            "auctions.services.taxonomy_sync.TaxonomySync"
        ) as sync_class:
            sync_class.return_value.sync.side_effect = sync
            result = sync_taxonomy(["carros", "motos"], skip_prices=True)

        assert result == {
            "categories": 1,
            "brands": 2,
            "models": 3,
            "years": 4,
            "prices": 5,
            "errors": ["motos: 404 Not Found"],
        }
        options = sync_class.return_value.sync.call_args[0][1]
        assert options.skip_prices is True
