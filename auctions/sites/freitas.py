"""
Freitas Leiloeiro adapter - infinite-scroll HTML listing per lot type.

There is no numbered pagination: the search page loads more cards as it is
scrolled, and each lot type (cars, motorcycles, trucks) is a separate
search. The lot type ids are crawled as static filter combinations and also
hint the vehicle type to the classifier.

Card titles follow the registry format::

    I/GM CLASSIC LIFE, 10/11, PLACA: D__-___0, GASOL/ALC, PRETA
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from .base import HtmlListingSite

SEARCH_URL = "https://www.freitasleiloeiro.com.br/Leiloes/Pesquisar"

LOT_TYPE_CAR = "1"
LOT_TYPE_MOTORCYCLE = "3"
LOT_TYPE_TRUCK = "7"

LOT_TYPE_VEHICLE_HINTS = {
    LOT_TYPE_CAR: "car",
    LOT_TYPE_MOTORCYCLE: "motorcycle",
    LOT_TYPE_TRUCK: "truck",
}

IMPORT_PREFIXES = {"I", "IMP"}

_BRAND_MODEL = re.compile(r"^[^/]+/(.+)")
_COLOR = re.compile(r",\s*([A-Za-zÀ-ú]+);?\s*$")


class FreitasSite(HtmlListingSite):
    name = "Freitas Leiloeiro"
    slug = "freitas-leiloeiro"
    aliases = ("freitas",)
    base_url = "https://www.freitasleiloeiro.com.br"
    default_auction_type = "online"
    max_pages = 20
    infinite_scroll = True
    id_patterns = (r"[Ll]eilao[/\-]?(\d+)", r"[Ll]ote[/\-]?(\d+)", r"/(\d+)")

    static_filters = [
        {"TipoLoteId": LOT_TYPE_CAR},
        {"TipoLoteId": LOT_TYPE_MOTORCYCLE},
        {"TipoLoteId": LOT_TYPE_TRUCK},
    ]

    card_selectors = [".cardLote", ".mt-3:has(.cardLote-descVeic)"]
    fallback_card_selectors = [".mt-3"]
    wait_selector = ".cardLote-descVeic"

    def build_page_url(self, filters: Dict[str, str], page: int) -> str:
        params = {
            "Categoria": "1",
            "Nome": "",
            "TipoLoteId": LOT_TYPE_CAR,
            "AnoModeloMin": "0",
            "AnoModeloMax": "0",
            "Condicao": "0",
            "PatioId": "0",
            "Tag": "",
            "FaixaValor": "0",
        }
        params.update(filters or {})
        return f"{SEARCH_URL}?{urlencode(params)}"

    def filter_hints(self, filters: Dict[str, str]) -> Dict[str, Any]:
        hint = LOT_TYPE_VEHICLE_HINTS.get((filters or {}).get("TipoLoteId"))
        return {"vehicle_type_hint": hint} if hint else {}

    def derive_external_id(self, raw: Dict[str, Any], title: str = "") -> Optional[str]:
        lot_id = super().derive_external_id(raw, title)
        return f"freitas-{lot_id}" if lot_id else None

    def parse_card(self, card) -> Optional[Dict[str, Any]]:
        title = self.first_text(card, [".cardLote-descVeic"])
        if not title:
            return None

        link = card.select_one("a[href*='Leilao'], a[href*='lote'], a[href*='Leiloes']")
        href = link.get("href") if link else ""
        if not href:
            parent_link = card.find_parent("a")
            href = parent_link.get("href") if parent_link else ""
        if not href and card.get("onclick"):
            match = re.search(r"['\"]([^'\"]*Leilao[^'\"]*)['\"]", card.get("onclick"))
            href = match.group(1) if match else ""

        raw = {
            "title": title,
            "url": href,
            "price_text": self.first_text(card, [".cardLote-vlr"]),
            "date_text": self.first_text(card, [".cardLote-data"]),
            "image": self.first_image(card),
        }

        if not href:
            lot_id = card.get("data-id") or card.get("data-lote-id")
            if lot_id:
                raw["external_id"] = lot_id

        first_part = title.split(",")[0].strip()
        brand_model = _BRAND_MODEL.match(first_part)
        if brand_model:
            prefix = first_part.split("/", 1)[0].strip().upper()
            if prefix in IMPORT_PREFIXES:
                # "I/GM CLASSIC LIFE": brand is the first word after the marker
                words = brand_model.group(1).strip().split(" ")
                raw["brand"] = words[0]
                raw["model"] = " ".join(words[1:])
            else:
                # "FIAT/FIORINO FLEX"
                raw["brand"] = prefix
                raw["model"] = brand_model.group(1).strip()

        color = _COLOR.search(title)
        if color and not color.group(1).isdigit():
            raw["color"] = color.group(1).capitalize()

        return raw
