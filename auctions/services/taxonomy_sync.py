"""
Reference price API sync.

Walks the public FIPE API (category -> brands -> models -> years -> price)
and writes every level through TaxonomyWriter. Requests are throttled and
retried with exponential backoff on timeouts, connection errors, 429 and
5xx responses.

Usage:
    with FipeClient() as client:
        stats = TaxonomySync(client).sync(["carros", "motos"])
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx
from django.conf import settings

from auctions.services.taxonomy import reset_taxonomy_cache
from auctions.services.taxonomy_import import ImportStats, TaxonomyWriter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://parallelum.com.br/fipe/api/v1"
DEFAULT_TIMEOUT = 15.0
MAX_ATTEMPTS = 4
CATEGORY_SLUGS = ("carros", "motos", "caminhoes")


class FipeClient:
    """
    Thin httpx client for the FIPE API.

    Args:
        base_url: API root
        throttle_ms: Pause after every request; also the backoff base
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        throttle_ms: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url or getattr(settings, "AUCTIONS_TAXONOMY_API_URL", DEFAULT_BASE_URL)
        self.throttle_ms = (
            throttle_ms
            if throttle_ms is not None
            else getattr(settings, "AUCTIONS_TAXONOMY_SYNC_DELAY_MS", 150)
        )
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"User-Agent": "auction-lot-crawler-taxonomy-sync/1.0"},
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._client.close()

    def _pause(self, ms: float):
        if ms > 0:
            time.sleep(ms / 1000)

    def get(self, path: str) -> Any:
        """GET ``path`` as JSON, retrying transient failures."""
        last_error: Optional[Exception] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = self._client.get(path)
                response.raise_for_status()
                self._pause(self.throttle_ms)
                return response.json()

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status != 429 and status < 500:
                    raise
                logger.warning(f"FIPE {path}: HTTP {status} (attempt {attempt}/{MAX_ATTEMPTS})")

            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = e
                logger.warning(f"FIPE {path}: {e} (attempt {attempt}/{MAX_ATTEMPTS})")

            if attempt < MAX_ATTEMPTS:
                self._pause(self.throttle_ms * 2 ** (attempt - 1))

        raise last_error

    def brands(self, category: str) -> List[Dict[str, Any]]:
        return self.get(f"/{category}/marcas")

    def models(self, category: str, brand_code: str) -> List[Dict[str, Any]]:
        return self.get(f"/{category}/marcas/{brand_code}/modelos").get("modelos", [])

    def years(self, category: str, brand_code: str, model_code: str) -> List[Dict[str, Any]]:
        return self.get(f"/{category}/marcas/{brand_code}/modelos/{model_code}/anos")

    def price(self, category: str, brand_code: str, model_code: str, year_code: str) -> Dict[str, Any]:
        return self.get(f"/{category}/marcas/{brand_code}/modelos/{model_code}/anos/{year_code}")


@dataclass
class SyncOptions:
    skip_prices: bool = False
    brand_limit: Optional[int] = None
    model_limit: Optional[int] = None
    year_limit: Optional[int] = None
    errors: List[str] = field(default_factory=list)


def _limit(items: List[Any], limit: Optional[int]) -> List[Any]:
    return items[:limit] if limit is not None else items


class TaxonomySync:
    """Sync the reference taxonomy from the FIPE API into the database."""

    def __init__(self, client: FipeClient, writer: Optional[TaxonomyWriter] = None):
        self.client = client
        self.writer = writer or TaxonomyWriter()

    def sync(self, categories: Optional[Iterable[str]] = None, options: Optional[SyncOptions] = None) -> ImportStats:
        """
        Sync the given category slugs (all three by default).

        A category that fails is logged and the next one still runs.
        """
        options = options or SyncOptions()
        slugs = [slug for slug in (categories or CATEGORY_SLUGS) if slug in CATEGORY_SLUGS]

        for slug in slugs:
            try:
                self.sync_category(slug, options)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"FIPE sync of {slug} failed: {e}")
                options.errors.append(f"{slug}: {e}")

        reset_taxonomy_cache()
        logger.info(f"FIPE sync finished: {self.writer.stats}")
        return self.writer.stats

    def sync_category(self, slug: str, options: SyncOptions):
        category = self.writer.category(slug)
        brands = _limit(self.client.brands(slug), options.brand_limit)
        logger.info(f"[{slug}] {len(brands)} brands")

        for brand_data in brands:
            brand = self.writer.brand(category, brand_data["nome"], brand_data["codigo"])
            models = _limit(self.client.models(slug, brand_data["codigo"]), options.model_limit)
            logger.info(f"[{slug}] {brand.name}: {len(models)} models")

            for model_data in models:
                model = self.writer.model(brand, model_data["nome"], str(model_data["codigo"]))
                years = _limit(
                    self.client.years(slug, brand_data["codigo"], model_data["codigo"]),
                    options.year_limit,
                )

                for year_data in years:
                    model_year = self.writer.model_year(model, year_data["codigo"], year_data.get("nome", ""))
                    if model_year is None or options.skip_prices:
                        continue

                    price_data = self.client.price(
                        slug, brand_data["codigo"], model_data["codigo"], year_data["codigo"]
                    )
                    self.writer.price(model_year, price_data.get("MesReferencia"), price_data.get("Valor"))
