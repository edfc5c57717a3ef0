"""
Tests for the management commands.
"""

import json
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from auctions.models import Lot, TaxonomyBrand, TaxonomyModel, VehicleCategory
from auctions.services.lot_persistence import CrawlRunResult
from auctions.services.taxonomy_import import ImportStats
from auctions.tests.fakes import build_taxonomy

TAXONOMY = {
    "categories": [
        {
            "slug": "carros",
            "brands": [
                {
                    "code": "21",
                    "name": "Fiat",
                    "models": [
                        {
                            "code": "4828",
                            "name": "UNO MILLE 1.0 Fire",
                            "years": [
                                {
                                    "code": "2012-1",
                                    "name": "2012 Gasolina",
                                    "prices": [{"month": "janeiro de 2025", "price": "R$ 20.431,00"}],
                                }
                            ],
                        }
                    ],
                }
            ],
        }
    ]
}


@pytest.fixture
def taxonomy_file(tmp_path):
    path = tmp_path / "taxonomy.json"
    path.write_text(json.dumps(TAXONOMY), encoding="utf-8")
    return path


class TestRunAuctionCrawl:
    """Tests for run_auction_crawl."""

    def test_unknown_house(self):
        with pytest.raises(CommandError, match="No auction house matches"):
            call_command("run_auction_crawl", "--house", "leiloes-xyz")

    def test_prints_summary(self):
        """Selected houses are crawled through the batch runner."""
        summary = {
            "success": False,
            "houses": [
                CrawlRunResult(
                    auctioneer="Freitas Leiloeiro", success=True, lots_scraped=5, lots_created=5
                ).to_dict(),
                CrawlRunResult(
                    auctioneer="Superbid", success=False, errors=["Executable doesn't exist"]
                ).to_dict(),
            ],
            "total_scraped": 5,
            "total_created": 5,
            "total_updated": 0,
        }
        out = StringIO()

        with patch(
            "auctions.management.commands.run_auction_crawl.run_batch", return_value=summary
        ) as batch:
            call_command(
                "run_auction_crawl", "--house", "freitas", "--house", "superbid", "--delay", "0", stdout=out
            )

        batch.assert_called_once_with(["superbid", "freitas-leiloeiro"], inter_house_delay=0.0)
        output = out.getvalue()
        assert "Freitas Leiloeiro: 5 scraped, 5 created, 0 updated, 0 errors" in output
        assert "- Executable doesn't exist" in output
        assert "Total: 5 scraped, 5 created, 0 updated" in output


@pytest.mark.django_db
class TestImportTaxonomy:
    """Tests for import_taxonomy."""

    def test_import(self, taxonomy_file):
        out = StringIO()

        call_command("import_taxonomy", str(taxonomy_file), stdout=out)

        assert "Imported 1 categories, 1 brands, 1 models, 1 years, 1 prices" in out.getvalue()
        assert TaxonomyModel.objects.get().base_name_upper == "UNO MILLE"

    def test_dry_run_saves_nothing(self, taxonomy_file):
        out = StringIO()

        call_command("import_taxonomy", str(taxonomy_file), "--dry-run", stdout=out)

        assert "carros: 1 brands, 1 models" in out.getvalue()
        assert VehicleCategory.objects.count() == 0

    def test_clear_replaces_existing(self, taxonomy_file):
        """--clear drops the old taxonomy before importing."""
        call_command("import_taxonomy", str(taxonomy_file), stdout=StringIO())
        TaxonomyBrand.objects.create(
            category=VehicleCategory.objects.get(), name="Lada", name_upper="LADA", search_name="LADA"
        )

        call_command("import_taxonomy", str(taxonomy_file), "--clear", stdout=StringIO())

        assert list(TaxonomyBrand.objects.values_list("search_name", flat=True)) == ["FIAT"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(CommandError, match="File not found"):
            call_command("import_taxonomy", str(tmp_path / "missing.json"))

    def test_invalid_shape(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")

        with pytest.raises(CommandError, match="categories"):
            call_command("import_taxonomy", str(path))


class TestSyncTaxonomyCommand:
    """Tests for sync_taxonomy."""

    def test_unknown_category(self):
        with pytest.raises(CommandError, match="barcos"):
            call_command("sync_taxonomy", "--types", "carros,barcos")

    def test_sync(self):
        """Options reach the sync and errors are printed."""
        client = MagicMock()
        client.__enter__.return_value = client
        out = StringIO()

        def sync(categories, options):
            options.errors.append("motos: 500 Internal Server Error")
            return ImportStats(categories=1, brands=1)

        module = "auctions.management.commands.sync_taxonomy"
        with patch(f"{module}.FipeClient", return_value=client) as client_class, patch(
            f"{module}.TaxonomySync"
        ) as sync_class:
            sync_class.return_value.sync.side_effect = sync
            call_command(
                "sync_taxonomy", "--types", "carros,motos", "--skip-prices", "--throttle", "0",
                "--brand-limit", "2", stdout=out,
            )

        client_class.assert_called_once_with(throttle_ms=0)
        categories, options = sync_class.return_value.sync.call_args[0]
        assert categories == ["carros", "motos"]
        assert options.skip_prices is True
        assert options.brand_limit == 2
        assert "motos: 500 Internal Server Error" in out.getvalue()
        assert "Synced 1 categories, 1 brands" in out.getvalue()


@pytest.mark.django_db
class TestRenormalizeLots:
    """Tests for renormalize_lots."""

    @pytest.fixture(autouse=True)
    def fake_taxonomy(self):
        with patch(
            "auctions.services.lot_persistence.get_taxonomy_cache", return_value=build_taxonomy()
        ):
            yield

    @pytest.fixture
    def misclassified(self, auction_house):
        return Lot.objects.create(
            auction_house=auction_house,
            external_id="7",
            title="HONDA CG 160 FAN 2022",
            raw_brand="HONDA",
            raw_model="CG 160 FAN",
            brand="HONDA",
            model="CG 160 FAN",
            year_model=2022,
            vehicle_type="car",
            classification_confidence=50,
            current_bid=Decimal("9000.00"),
        )

    def test_updates_stored_lots(self, misclassified):
        """Type, confidence and pricing are recomputed and saved."""
        out = StringIO()

        call_command("renormalize_lots", "--house", "sodresantoro", stdout=out)

        misclassified.refresh_from_db()
        assert misclassified.vehicle_type == "motorcycle"
        assert misclassified.classification_confidence != 50
        assert misclassified.reference_price == Decimal("15000.00")
        assert misclassified.discount_percentage == Decimal("40.00")
        assert "Sodré Santoro 7: car -> motorcycle" in out.getvalue()
        assert "Checked 1 lots: 1 updated, 1 vehicle type changes" in out.getvalue()

    def test_dry_run_saves_nothing(self, misclassified):
        out = StringIO()

        call_command("renormalize_lots", "--dry-run", stdout=out)

        misclassified.refresh_from_db()
        assert misclassified.vehicle_type == "car"
        assert misclassified.reference_price is None
        assert "1 would change" in out.getvalue()

    def test_unknown_house(self, misclassified):
        with pytest.raises(CommandError, match="No auction house matches"):
            call_command("renormalize_lots", "--house", "leiloes-xyz")
