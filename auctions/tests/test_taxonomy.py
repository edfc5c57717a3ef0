"""
Tests for the taxonomy cache and the taxonomy writer.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from auctions.models import PriceReference, TaxonomyBrand, TaxonomyModel, TaxonomyModelYear, VehicleCategory
from auctions.services import taxonomy as taxonomy_module
from auctions.services.taxonomy import TaxonomyCache, get_taxonomy_cache, reset_taxonomy_cache
from auctions.services.taxonomy_import import (
    TaxonomyWriter,
    clear_taxonomy,
    parse_reference_month,
    parse_year_label,
)
from auctions.tests.fakes import build_taxonomy

TREE = {
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
                                    "prices": [
                                        {"month": "janeiro de 2025", "price": "R$ 20.431,00"},
                                        {"month": "fevereiro de 2025", "price": "R$ 20.000,00"},
                                    ],
                                },
                                {"code": "32000-1", "name": "Zero KM Gasolina"},
                            ],
                        }
                    ],
                }
            ],
        },
        {
            "slug": "motos",
            "brands": [
                {
                    "code": "80",
                    "name": "Honda",
                    "models": [
                        {
                            "code": "7001",
                            "name": "CG 160 FAN",
                            "years": [
                                {
                                    "code": "2020-1",
                                    "name": "2020 Gasolina",
                                    "prices": [{"month": "2025-02", "price": "14500"}],
                                }
                            ],
                        }
                    ],
                }
            ],
        },
    ]
}


class TestTaxonomyCache:
    """Tests for the in-memory lookups."""

    def test_categories_in_search_order(self, taxonomy):
        assert taxonomy.categories == ["car", "motorcycle", "truck"]

    def test_brand_in_several_partitions(self, taxonomy):
        """A brand key returns one record per partition."""
        assert [record.id for record in taxonomy.brand_categories("HONDA")] == [3, 10]
        assert taxonomy.brand_categories("LADA") == []

    def test_models_by_key(self, taxonomy):
        """Base keys return every version sharing the base."""
        assert [model.id for model in taxonomy.models_by_key(2, "ONIX")] == [110, 111]
        assert [model.id for model in taxonomy.models_by_key(2, "ONIXLT10")] == [110]
        assert taxonomy.models_by_key(999, "ONIX") == []

    def test_reference_price_is_mean_of_versions(self, taxonomy):
        """ONIX LT (60k) and ONIX LTZ (80k) average to 70k."""
        onix_lt = taxonomy.models_by_key(2, "ONIXLT10")[0]

        assert taxonomy.get_reference_price(onix_lt, 2020) == Decimal("70000.00")

    def test_reference_price_missing(self, taxonomy):
        """No model, no year or no price gives None."""
        polo = taxonomy.models_by_key(1, "POLO")[0]
        gol = taxonomy.models_by_key(1, "GOL")[0]

        assert taxonomy.get_reference_price(None, 2020) is None
        assert taxonomy.get_reference_price(gol, None) is None
        assert taxonomy.get_reference_price(gol, 2016) is None
        assert taxonomy.get_reference_price(polo, 2015) is None

    def test_singleton(self):
        """The process cache loads once until reset."""
        reset_taxonomy_cache()
        with patch.object(TaxonomyCache, "from_database", side_effect=build_taxonomy) as loader:
            first = get_taxonomy_cache()
            second = get_taxonomy_cache()
            reset_taxonomy_cache()
            third = get_taxonomy_cache()

        reset_taxonomy_cache()
        assert first is second
        assert third is not first
        assert loader.call_count == 2
        assert taxonomy_module._taxonomy_cache is None


class TestLabelParsing:
    """Tests for reference month and year labels."""

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("janeiro de 2025", date(2025, 1, 1)),
            ("março/2025", date(2025, 3, 1)),
            ("2025-02", date(2025, 2, 1)),
            ("2025-02-15", date(2025, 2, 1)),
            (date(2025, 4, 20), date(2025, 4, 1)),
        ],
    )
    def test_reference_month(self, label, expected):
        assert parse_reference_month(label) == expected

    @pytest.mark.parametrize("label", [None, "", "2025-13", "mes 2025", "janeiro"])
    def test_invalid_reference_month(self, label):
        assert parse_reference_month(label) is None

    def test_year_label(self):
        """The code wins; the name supplies the fuel."""
        assert parse_year_label("2012-1", "2012 Gasolina") == (2012, "Gasolina")
        assert parse_year_label("", "2015 Diesel") == (2015, "Diesel")

    def test_zero_km_has_no_year(self):
        """The brand-new placeholder code has no model year."""
        assert parse_year_label("32000-1", "Zero KM Gasolina")[0] is None
        assert parse_year_label("32000", "")[0] is None


@pytest.mark.django_db
class TestTaxonomyWriter:
    """Tests for the idempotent taxonomy upserts."""

    def test_import_tree(self):
        """Every level is written with derived search columns."""
        stats = TaxonomyWriter().import_tree(TREE)

        assert (stats.categories, stats.brands, stats.models, stats.years, stats.prices) == (2, 2, 2, 2, 3)

        fiat = TaxonomyBrand.objects.get(search_name="FIAT")
        assert fiat.category.vehicle_type == "car"
        assert fiat.reference_code == "21"

        uno = TaxonomyModel.objects.get(reference_code="4828")
        assert uno.base_name_upper == "UNO MILLE"
        assert uno.base_search_name == "UNOMILLE"
        assert uno.variant_name == "1 0 Fire"

        year = TaxonomyModelYear.objects.get(model=uno)
        assert (year.year, year.fuel_label) == (2012, "Gasolina")
        assert PriceReference.objects.filter(model_year=year).count() == 2

    def test_import_is_idempotent(self):
        """Importing twice does not duplicate rows."""
        TaxonomyWriter().import_tree(TREE)
        TaxonomyWriter().import_tree(TREE)

        assert VehicleCategory.objects.count() == 2
        assert TaxonomyBrand.objects.count() == 2
        assert TaxonomyModel.objects.count() == 2
        assert PriceReference.objects.count() == 3

    def test_model_without_code_matched_by_name(self):
        """Models without a code are upserted on their canonical name."""
        writer = TaxonomyWriter()
        brand = writer.brand(writer.category("carros"), "Volkswagen")

        first = writer.model(brand, "Gol 1.0")
        second = writer.model(brand, "GOL 1.0")

        assert first.pk == second.pk
        assert TaxonomyModel.objects.count() == 1

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            TaxonomyWriter().category("barcos")

    def test_invalid_price_skipped(self):
        """Unparseable months or prices are skipped."""
        writer = TaxonomyWriter()
        brand = writer.brand(writer.category("carros"), "Fiat")
        model_year = writer.model_year(writer.model(brand, "UNO"), "2010-1")

        assert writer.price(model_year, "sem data", "R$ 1.000,00") is None
        assert writer.price(model_year, "2025-01", "consulte") is None
        assert writer.stats.prices == 0

    def test_clear_taxonomy(self):
        """Clearing cascades through every level."""
        TaxonomyWriter().import_tree(TREE)

        assert clear_taxonomy() == 2
        assert TaxonomyModel.objects.count() == 0
        assert PriceReference.objects.count() == 0

    def test_cache_from_database(self):
        """The database cache keeps the latest month per model year."""
        TaxonomyWriter().import_tree(TREE)

        cache = TaxonomyCache.from_database()

        assert cache.categories == ["car", "motorcycle"]
        fiat = cache.brand_by_search_key("car", "FIAT")
        uno = cache.models_by_key(fiat.id, "UNOMILLE")[0]
        assert cache.get_reference_price(uno, 2012) == Decimal("20000.00")
        assert [record.category for record in cache.brand_categories("HONDA")] == ["motorcycle"]
