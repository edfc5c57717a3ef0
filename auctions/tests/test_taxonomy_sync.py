"""
Tests for the reference price API sync (httpx MockTransport, no network).
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from auctions.models import PriceReference, TaxonomyModelYear
from auctions.services.taxonomy_sync import FipeClient, SyncOptions, TaxonomySync

BASE_URL = "https://fipe.test/api/v1"

ROUTES = {
    "/api/v1/carros/marcas": [{"codigo": "21", "nome": "Fiat"}],
    "/api/v1/carros/marcas/21/modelos": {
        "anos": [],
        "modelos": [{"codigo": 4828, "nome": "UNO MILLE 1.0 Fire"}],
    },
    "/api/v1/carros/marcas/21/modelos/4828/anos": [
        {"codigo": "2012-1", "nome": "2012 Gasolina"},
        {"codigo": "32000-1", "nome": "32000 Gasolina"},
    ],
    "/api/v1/carros/marcas/21/modelos/4828/anos/2012-1": {
        "Valor": "R$ 20.431,00",
        "MesReferencia": "janeiro de 2025 ",
    },
}


class FakeFipe:
    """MockTransport handler serving ROUTES; listed paths can fail first."""

    def __init__(self, routes=None, failures=None):
        self.routes = routes if routes is not None else ROUTES
        self.failures = dict(failures or {})
        self.paths = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)

        pending = self.failures.get(path)
        if pending:
            failure = pending.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure, request=request)

        if path not in self.routes:
            return httpx.Response(404, json={"error": "not found"}, request=request)
        return httpx.Response(200, json=self.routes[path], request=request)


def make_client(handler):
    return FipeClient(base_url=BASE_URL, throttle_ms=0, transport=httpx.MockTransport(handler))


class TestFipeClient:
    """Tests for the retrying HTTP client."""

    def test_retries_server_errors(self):
        """503 responses are retried."""
        handler = FakeFipe(failures={"/api/v1/carros/marcas": [503, 503]})

        with make_client(handler) as client:
            brands = client.brands("carros")

        assert brands == [{"codigo": "21", "nome": "Fiat"}]
        assert handler.paths.count("/api/v1/carros/marcas") == 3

    def test_retries_connection_errors(self):
        """Transport errors are retried."""
        handler = FakeFipe(
            failures={"/api/v1/carros/marcas": [httpx.ConnectError("connection refused")]}
        )

        with make_client(handler) as client:
            assert client.brands("carros")[0]["nome"] == "Fiat"

    def test_client_errors_are_not_retried(self):
        """404 is raised immediately."""
        handler = FakeFipe()

        with make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                client.brands("motos")

        assert handler.paths == ["/api/v1/motos/marcas"]

    def test_gives_up_after_max_attempts(self):
        """Persistent 500s raise after four attempts."""
        handler = FakeFipe(failures={"/api/v1/carros/marcas": [500] * 4})

        with make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                client.brands("carros")

        assert len(handler.paths) == 4

    def test_models_unwraps_envelope(self):
        with make_client(FakeFipe()) as client:
            assert client.models("carros", "21") == [{"codigo": 4828, "nome": "UNO MILLE 1.0 Fire"}]


@pytest.mark.django_db
class TestTaxonomySync:
    """Tests for the category walk."""

    def test_sync_writes_every_level(self):
        """Brands, models, years and prices are written; the failing category is reported."""
        options = SyncOptions()

        with make_client(FakeFipe()) as client:
            stats = TaxonomySync(client).sync(["carros", "motos"], options)

        assert (stats.categories, stats.brands, stats.models, stats.years, stats.prices) == (2, 1, 1, 1, 1)
        assert len(options.errors) == 1
        assert options.errors[0].startswith("motos: ")

        year = TaxonomyModelYear.objects.get()
        assert (year.year, year.year_code, year.fuel_label) == (2012, "2012-1", "Gasolina")
        price = PriceReference.objects.get()
        assert price.price == Decimal("20431.00")
        assert price.reference_month == date(2025, 1, 1)

    def test_skip_prices(self):
        """Price requests are not made when skipped."""
        handler = FakeFipe()

        with make_client(handler) as client:
            stats = TaxonomySync(client).sync(["carros"], SyncOptions(skip_prices=True))

        assert stats.prices == 0
        assert not any(path.endswith("/anos/2012-1") for path in handler.paths)

    def test_limits(self):
        """Limits cut the walk short."""
        handler = FakeFipe()

        with make_client(handler) as client:
            stats = TaxonomySync(client).sync(["carros"], SyncOptions(model_limit=0))

        assert stats.brands == 1
        assert stats.models == 0

    def test_unknown_categories_ignored(self):
        handler = FakeFipe()

        with make_client(handler) as client:
            stats = TaxonomySync(client).sync(["barcos"])

        assert stats.categories == 0
        assert handler.paths == []
