"""
Site adapter base classes.

A site adapter is the only per-site code in the pipeline. It knows URLs,
selectors and payload shapes; the CrawlOrchestrator owns everything else
(pagination, facet replay, dedup, retries, politeness).

Two adapter kinds:
    HtmlListingSite:
        Rendered listing pages (numbered pages or infinite scroll). Lot
        cards are located with ordered CSS selectors, then parse_card()
        turns each card into a raw payload dict.

    QueryApiSite:
        The site's own JSON search endpoint. Paged queries with facet counts
        on page 1 so the orchestrator can replay the query per facet value.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from auctions.utils.text import clean_text, generate_slug, to_canonical_upper

TERMINAL_MARKERS = [
    "nenhum resultado",
    "nenhum lote encontrado",
    "nenhum veiculo encontrado",
    "nao encontramos",
    "sem resultados",
]


def filter_signature(filters: Optional[Dict[str, Any]]) -> str:
    """
    Canonical signature of a filter combination: sorted key=value pairs.

    Example:
        >>> filter_signature({"b": "2", "a": "1"})
        'a=1&b=2'
    """
    if not filters:
        return ""
    return "&".join(f"{key}={filters[key]}" for key in sorted(filters))


@dataclass
class QueryPage:
    """One page of a structured query response."""

    raw_lots: List[Dict[str, Any]]
    total: Optional[int] = None
    facets: Dict[str, Dict[str, int]] = field(default_factory=dict)


class AuctionSite:
    """
    Common adapter attributes.

    Attributes:
        name: Auction house display name (used to resolve AuctionHouse)
        slug: Primary slug
        aliases: Extra slugs accepted by the house filter and resolution
        base_url: Site root, used to absolutize links
        default_auction_type: online/presencial/hibrido when undetectable
        page_size: Fixed page size, or None when the site does not have one
        max_pages: Page ceiling per filter combination
        duplicate_page_threshold: Share of already-seen titles that makes a
            page a duplicate
        id_patterns: Regexes applied to the lot URL to derive an id
    """

    name: str = ""
    slug: str = ""
    aliases: tuple = ()
    base_url: str = ""
    default_auction_type: str = "online"
    page_size: Optional[int] = None
    max_pages: int = 50
    duplicate_page_threshold: float = 0.8
    id_patterns: tuple = ()

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.slug}>"

    @property
    def candidate_slugs(self) -> List[str]:
        """Slugs tried when resolving the AuctionHouse row."""
        slugs = []
        for slug in (self.slug, generate_slug(self.name), *self.aliases):
            if slug and slug not in slugs:
                slugs.append(slug)
        return slugs

    def matches(self, wanted: str) -> bool:
        """True when ``wanted`` names this site by slug, alias or name."""
        key = generate_slug(wanted)
        return key in self.candidate_slugs

    def derive_external_id(self, raw: Dict[str, Any], title: str = "") -> Optional[str]:
        """
        Derive the per-site lot id.

        Order: explicit id fields, then id_patterns on the URL, then the last
        URL path segment.
        """
        for key in ("external_id", "id", "lot_id", "lotId", "offerId"):
            value = raw.get(key)
            if value not in (None, ""):
                return str(value).strip()

        url = raw.get("url") or raw.get("link") or raw.get("href") or ""
        if not url:
            return None

        for pattern in self.id_patterns:
            match = re.search(pattern, url)
            if match:
                return match.group(1)

        path = urlparse(url).path.rstrip("/")
        last_segment = path.rsplit("/", 1)[-1] if path else ""
        return last_segment or None

    def is_relevant(self, raw: Dict[str, Any]) -> bool:
        """Site-specific filter for non-vehicle items; keeps everything by default."""
        return True

    def filter_hints(self, filters: Dict[str, str]) -> Dict[str, Any]:
        """Extra raw fields implied by a filter combination."""
        return {}


class HtmlListingSite(AuctionSite):
    """
    Adapter for rendered HTML listings.

    Attributes:
        card_selectors: Ordered selectors; the first one that matches wins
        fallback_card_selectors: Tried only when no primary selector matched
        wait_selector: Selector awaited after navigation
        infinite_scroll: Pages 2+ are scroll steps instead of URLs
        static_filters: Filter combinations always crawled (e.g. category ids)
        stop_when_no_future_after_page: Stop a combination once a page past
            this number yields no future-dated lot
    """

    card_selectors: List[str] = []
    fallback_card_selectors: List[str] = []
    wait_selector: Optional[str] = None
    infinite_scroll: bool = False
    static_filters: List[Dict[str, str]] = [{}]
    stop_when_no_future_after_page: Optional[int] = None
    terminal_markers: List[str] = TERMINAL_MARKERS

    def build_page_url(self, filters: Dict[str, str], page: int) -> str:
        raise NotImplementedError

    def select_cards(self, soup: BeautifulSoup) -> list:
        for selector in self.card_selectors:
            cards = soup.select(selector)
            if cards:
                return cards
        for selector in self.fallback_card_selectors:
            cards = soup.select(selector)
            if cards:
                return cards
        return []

    def parse_listing(self, html: str) -> List[Dict[str, Any]]:
        """Parse every lot card of a listing page into raw payload dicts."""
        soup = BeautifulSoup(html or "", "html.parser")
        raw_lots = []
        for card in self.select_cards(soup):
            raw = self.parse_card(card)
            if raw:
                raw_lots.append(raw)
        return raw_lots

    def parse_card(self, card) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def is_terminal_page(self, html: str) -> bool:
        """True when the page shows an explicit "no results" marker."""
        text = to_canonical_upper(BeautifulSoup(html or "", "html.parser").get_text(" ")).lower()
        return any(marker in text for marker in self.terminal_markers)

    @staticmethod
    def first_text(element, selectors: List[str]) -> str:
        """Text of the first element matching any selector."""
        for selector in selectors:
            found = element.select_one(selector)
            if found:
                text = clean_text(found.get_text(" "))
                if text:
                    return text
        return ""

    @staticmethod
    def first_image(element) -> str:
        img = element.select_one("img")
        if img is None:
            return ""
        return img.get("src") or img.get("data-src") or img.get("data-lazy") or ""


class QueryApiSite(AuctionSite):
    """
    Adapter for JSON search endpoints.

    Attributes:
        facet_fields: Facets requested on page 1, in replay order
        base_filters: Filters applied to every query
    """

    page_size: Optional[int] = 60
    facet_fields: List[str] = []
    base_filters: Dict[str, str] = {}

    def build_query_url(self, filters: Dict[str, str], page: int, include_facets: bool) -> str:
        raise NotImplementedError

    def parse_query_response(self, payload: Any) -> QueryPage:
        raise NotImplementedError

    @staticmethod
    def facet_values(facets: Dict[str, Dict[str, int]], field_name: str) -> List[str]:
        """Facet values with at least one result, largest first."""
        counts = facets.get(field_name) or {}
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [value for value, count in ranked if count > 0]
