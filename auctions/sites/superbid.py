"""
Superbid adapter - structured offer query API.

The public listing is a client-side app backed by a paged JSON offer search.
A single unfiltered query cannot go past the page ceiling, so page 1 asks
for facet counts (vehicle subcategory, financing eligibility) and the
orchestrator replays the query once per facet value.
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from auctions.utils.parsing import parse_year
from auctions.utils.text import generate_slug, to_canonical_upper

from .base import QueryApiSite, QueryPage

OFFER_QUERY_URL = "https://offer-query.superbid.net/offers/"

SUBCATEGORY_FACET = "product.subCategory.description"
FINANCING_FACET = "offerDetail.acceptsFinancing"

# Non-vehicle items published under the vehicle category
EXCLUDE_KEYWORDS = [
    "chave fixa",
    "anel trava",
    "molas de tensao",
    "acessorios para",
    "produto sem imagem",
    "linha de producao",
    "pecas",
    "ferramentas",
    "equipamentos",
]

# Subcategory facet keywords -> taxonomy partition, first match wins
SUBCATEGORY_VEHICLE_HINTS = [
    ("MOTO", "motorcycle"),
    ("CAMINH", "truck"),
    ("ONIBUS", "truck"),
    ("CARRO", "car"),
]

_UUID_OR_DIGITS = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}|\d+)", re.IGNORECASE
)


class SuperbidSite(QueryApiSite):
    name = "Superbid"
    slug = "superbid"
    aliases = ("superbid-real", "superbid-hybrid", "superbid-net")
    base_url = "https://www.superbid.net"
    default_auction_type = "online"
    page_size = 60
    max_pages = 50
    facet_fields = [SUBCATEGORY_FACET, FINANCING_FACET]
    base_filters = {"product.productType.description": "carros-motos"}

    def build_query_url(self, filters: Dict[str, str], page: int, include_facets: bool) -> str:
        combined = {**self.base_filters, **(filters or {})}
        params = {
            "portalId": "[2,15]",
            "requestOrigin": "store",
            "locale": "pt_BR",
            "searchType": "opened",
            "filter": ";".join(f"{key}:{combined[key]}" for key in sorted(combined)),
            "pageNumber": page,
            "pageSize": self.page_size,
            "orderBy": "endDate:asc",
        }
        if include_facets:
            params["facets"] = ",".join(self.facet_fields)
        return f"{OFFER_QUERY_URL}?{urlencode(params)}"

    def parse_query_response(self, payload: Any) -> QueryPage:
        """
        Map the offer search response.

        Expected shape::

            {"total": 1234,
             "offers": [{"id": 1, "product": {...}, "offerDetail": {...}}],
             "facets": {"product.subCategory.description":
                            [{"value": "Carros", "count": 900}]}}
        """
        if not isinstance(payload, dict):
            return QueryPage(raw_lots=[])

        raw_lots = []
        for offer in payload.get("offers") or []:
            if not isinstance(offer, dict):
                continue
            raw = dict(offer)
            offer_id = offer.get("id")
            if offer_id not in (None, ""):
                raw["url"] = f"{self.base_url}/oferta/{offer_id}"
            raw_lots.append(raw)

        try:
            total = int(payload.get("total"))
        except (TypeError, ValueError):
            total = None

        return QueryPage(
            raw_lots=raw_lots,
            total=total,
            facets=self._parse_facets(payload.get("facets")),
        )

    @staticmethod
    def _parse_facets(raw_facets: Any) -> Dict[str, Dict[str, int]]:
        facets: Dict[str, Dict[str, int]] = {}
        if isinstance(raw_facets, dict):
            items = raw_facets.items()
        elif isinstance(raw_facets, list):
            items = [(entry.get("field"), entry.get("values")) for entry in raw_facets
                     if isinstance(entry, dict)]
        else:
            return facets

        for field_name, values in items:
            if not field_name or not isinstance(values, list):
                continue
            counts = {}
            for value in values:
                if not isinstance(value, dict):
                    continue
                label = value.get("value", value.get("name"))
                if label in (None, ""):
                    continue
                counts[str(label)] = int(value.get("count") or 0)
            facets[field_name] = counts
        return facets

    def filter_hints(self, filters: Dict[str, str]) -> Dict[str, Any]:
        subcategory = to_canonical_upper((filters or {}).get(SUBCATEGORY_FACET))
        for keyword, vehicle_type in SUBCATEGORY_VEHICLE_HINTS:
            if keyword in subcategory:
                return {"vehicle_type_hint": vehicle_type}
        return {}

    def derive_external_id(self, raw: Dict[str, Any], title: str = "") -> Optional[str]:
        """
        ``superbid-<offer id>``; falls back to a title slug plus year.
        """
        offer_id = raw.get("id")
        if offer_id in (None, "") and raw.get("url"):
            match = _UUID_OR_DIGITS.search(str(raw["url"]).rsplit("/", 1)[-1])
            offer_id = match.group(1) if match else None
        if offer_id not in (None, ""):
            return f"superbid-{offer_id}"

        if not title:
            return None
        year = parse_year(title)
        slug = generate_slug(title)[:80]
        return f"superbid-{slug}-{year}" if year else f"superbid-{slug}"

    def is_relevant(self, raw: Dict[str, Any]) -> bool:
        product = raw.get("product") or {}
        title = to_canonical_upper(product.get("shortDesc") or raw.get("title") or "").lower()
        return not any(keyword in title for keyword in EXCLUDE_KEYWORDS)
