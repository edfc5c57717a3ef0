"""
In-memory stand-ins for the taxonomy, site adapters and browser session.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from auctions.exceptions import PageFetchError
from auctions.services.taxonomy import BrandRecord, ModelRecord, TaxonomyCache
from auctions.sites.base import HtmlListingSite, QueryApiSite, QueryPage
from auctions.utils.text import build_search_key, extract_model_base, normalize_brand_name


def make_brand(brand_id: int, name: str, category: str) -> BrandRecord:
    forms = normalize_brand_name(name)
    return BrandRecord(brand_id, forms.upper, forms.upper, forms.search, category)


def make_model(model_id: int, brand_id: int, name: str) -> ModelRecord:
    base = extract_model_base(name)
    return ModelRecord(
        id=model_id,
        brand_id=brand_id,
        name=name,
        name_upper=base.name_upper,
        base_name_upper=base.base_name_upper,
        base_search_name=base.base_search_name,
        search_name=build_search_key(name),
    )


def build_taxonomy() -> TaxonomyCache:
    """
    Small taxonomy with HONDA and MERCEDES-BENZ in two partitions each.

    ONIX has two priced versions for 2020 (60k and 80k). The CG 160
    motorcycle is priced for 2022 (15k).
    """
    brands = [
        make_brand(1, "Volkswagen", "car"),
        make_brand(2, "Chevrolet", "car"),
        make_brand(3, "Honda", "car"),
        make_brand(4, "Fiat", "car"),
        make_brand(5, "Mercedes-Benz", "car"),
        make_brand(6, "Toyota", "car"),
        make_brand(10, "Honda", "motorcycle"),
        make_brand(11, "Yamaha", "motorcycle"),
        make_brand(20, "Scania", "truck"),
        make_brand(21, "Mercedes-Benz", "truck"),
    ]
    models = [
        make_model(100, 1, "GOL TREND 1.0"),
        make_model(101, 1, "POLO 1.6"),
        make_model(110, 2, "ONIX LT 1.0"),
        make_model(111, 2, "ONIX LTZ 1.4"),
        make_model(112, 2, "S10 LT 2.8"),
        make_model(120, 3, "CIVIC EXL 2.0"),
        make_model(121, 3, "FIT LX 1.4"),
        make_model(130, 10, "CB 300R"),
        make_model(131, 10, "CG 160 FAN"),
        make_model(140, 4, "UNO MILLE 1.0"),
        make_model(150, 6, "COROLLA XEI 2.0"),
        make_model(160, 11, "FAZER 250"),
        make_model(200, 20, "R 450"),
    ]
    prices = {
        (110, 2020): Decimal("60000.00"),
        (111, 2020): Decimal("80000.00"),
        (100, 2015): Decimal("25000.00"),
        (131, 2022): Decimal("15000.00"),
    }
    return TaxonomyCache(brands, models, prices)


class FakeListingSite(HtmlListingSite):
    """
    Numbered listing whose cards are ``<div class="lot">`` elements.

    Card attributes: data-url, data-date, data-price, data-image.
    """

    name = "Leilões Teste"
    slug = "leiloes-teste"
    base_url = "https://leiloes.test"
    max_pages = 5
    card_selectors = [".lot"]

    def build_page_url(self, filters: Dict[str, str], page: int) -> str:
        return f"{self.base_url}/lotes?page={page}"

    def parse_card(self, card) -> Optional[Dict[str, Any]]:
        return {
            "title": card.get_text(" ", strip=True),
            "url": card.get("data-url"),
            "date_text": card.get("data-date", ""),
            "price_text": card.get("data-price", ""),
            "image": card.get("data-image", ""),
        }


def listing_html(*cards: Dict[str, str]) -> str:
    """Render FakeListingSite cards: each dict holds title/url/date/price/image."""
    rendered = []
    for card in cards:
        attributes = " ".join(
            f'data-{key}="{card[key]}"' for key in ("url", "date", "price", "image") if card.get(key)
        )
        rendered.append(f'<div class="lot" {attributes}>{card["title"]}</div>')
    return "<html><body>" + "".join(rendered) + "</body></html>"


class FakeQuerySite(QueryApiSite):
    """JSON site with one facet field ("cat"), 2 lots per page, 2 pages."""

    name = "Consulta Teste"
    slug = "consulta-teste"
    base_url = "https://consulta.test"
    page_size = 2
    max_pages = 2
    facet_fields = ["cat"]

    def build_query_url(self, filters: Dict[str, str], page: int, include_facets: bool) -> str:
        return f"q?cat={filters.get('cat', '')}&page={page}&facets={int(include_facets)}"

    def parse_query_response(self, payload: Any) -> QueryPage:
        return QueryPage(
            raw_lots=payload.get("lots", []),
            total=payload.get("total"),
            facets=payload.get("facets", {}),
        )


class FakeSession:
    """
    Serves canned pages by URL and records every call.

    A value that is an exception instance is raised instead of returned.
    Unknown HTML URLs serve an empty listing.
    """

    def __init__(self, pages: Optional[Dict[str, Any]] = None, payloads: Optional[Dict[str, Any]] = None):
        self.pages = pages or {}
        self.payloads = payloads or {}
        self.calls: List[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    def _serve(self, store: Dict[str, Any], url: str, default: Any) -> Any:
        self.calls.append(url)
        value = store.get(url, default)
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_html(self, url: str, wait_selector: Optional[str] = None) -> str:
        return self._serve(self.pages, url, "<html><body></body></html>")

    async def scroll_and_capture(self) -> str:
        return self._serve(self.pages, "scroll", "<html><body></body></html>")

    async def fetch_json(self, url: str) -> Any:
        return self._serve(
            self.payloads, url, PageFetchError("HTTP 404", url=url, error_type="connection")
        )
