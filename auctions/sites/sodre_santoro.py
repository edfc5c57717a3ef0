"""
Sodré Santoro adapter - numbered HTML listing pages.

Listing sorted by auction date ascending, so once several pages in a row
carry no future-dated lot the rest of the listing is past auctions.
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from .base import HtmlListingSite

LISTING_URL = "https://www.sodresantoro.com.br/veiculos/lotes"

TITLE_SELECTORS = [
    ".text-body-medium",
    ".title",
    ".titulo",
    ".vehicle-title",
    ".lote-title",
    "h1",
    "h2",
    "h3",
    ".text-headline-small",
]

PRICE_SELECTORS = [
    ".text-primary.text-headline-small",
    ".price",
    ".preco",
    ".lance",
    ".valor",
    ".text-primary",
    "[class*='price']",
]

INFO_SELECTORS = ".text-body-small, .text-caption, .info"

_DATE_TEXT = re.compile(r"\d{1,2}/\d{1,2}(/\d{2,4})?")
_LOCATION_TEXT = re.compile(r"[/\-,]\s*[A-Z]{2}\b|\([A-Z]{2}\)")


class SodreSantoroSite(HtmlListingSite):
    name = "Sodré Santoro"
    slug = "sodre-santoro"
    aliases = ("sodre-santoro-real", "sodresantoro")
    base_url = "https://www.sodresantoro.com.br"
    default_auction_type = "online"
    max_pages = 50
    id_patterns = (r"/lote/([^/?#]+)", r"/leilao/([^/?#]+)")
    stop_when_no_future_after_page = 5

    card_selectors = [
        "a[href*='/lote/']",
        ".lote-card",
        ".vehicle-card",
        "[data-testid*='vehicle']",
        "a[href*='/veiculo/']",
        "a[href*='/leilao/']",
    ]
    fallback_card_selectors = [
        "a[href*='leilao']",
        "a[href*='lote']",
        ".item",
        "article",
    ]
    wait_selector = "a[href*='/lote/'], .lote-card, .vehicle-card, a[href*='/leilao/']"

    def build_page_url(self, filters: Dict[str, str], page: int) -> str:
        params = {"sort": "auction_date_init_asc", **(filters or {})}
        if page > 1:
            params["page"] = page
        return f"{LISTING_URL}?{urlencode(params)}"

    def parse_card(self, card) -> Optional[Dict[str, Any]]:
        if card.name == "a" and card.get("href"):
            href = card.get("href")
        else:
            link = card.select_one("a[href]")
            href = link.get("href") if link else ""
        if not href:
            return None

        title = self.first_text(card, TITLE_SELECTORS)
        if not title:
            return None

        info_texts = [
            " ".join(element.get_text(" ").split())
            for element in card.select(INFO_SELECTORS)
        ]
        info_texts = [text for text in info_texts if text]

        date_text = next((text for text in info_texts if _DATE_TEXT.search(text)), "")
        location = next(
            (text for text in info_texts if text != date_text and _LOCATION_TEXT.search(text)),
            "",
        )
        mileage_text = next((text for text in info_texts if "km" in text.lower()), "")

        return {
            "title": title,
            "url": href,
            "price_text": self.first_text(card, PRICE_SELECTORS),
            "date_text": date_text,
            "location": location,
            "km": mileage_text,
            "image": self.first_image(card),
            "description": " | ".join(info_texts),
        }
