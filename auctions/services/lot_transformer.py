"""
Lot Extraction & Transformation.

Converts the raw payload produced by a site adapter (a dict scraped from an
HTML card or taken from a JSON query response) into a CanonicalLot.

Every field is picked tolerantly from a list of candidate keys, so adapters
only need to emit whatever names their site uses. Fields the payload lacks
are recovered from the title where possible: brand/model from known brand
patterns; year, color, fuel, plate and auction type from regexes.

A lot without an external id or a title is discarded (None is returned).
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings

from auctions.utils.location import normalize_state_city
from auctions.utils.parsing import (
    parse_auction_date,
    parse_mileage,
    parse_price,
    parse_year_pair,
    pick_first_field,
)
from auctions.utils.text import clean_text, is_valid_url, normalize_url, to_canonical_upper

logger = logging.getLogger(__name__)

TITLE_KEYS = ["title", "titulo", "product.shortDesc", "name", "nome"]
LOT_NUMBER_KEYS = ["lot_number", "lotNumber", "lote", "numero_lote"]
BRAND_KEYS = ["brand", "marca", "product.brand", "product.manufacturer"]
MODEL_KEYS = ["model", "modelo", "product.model"]
YEAR_KEYS = ["year", "ano", "year_text", "product.year"]
MILEAGE_KEYS = ["mileage", "km", "quilometragem", "product.mileage"]
CURRENT_BID_KEYS = ["current_bid", "price", "lance_atual", "offerDetail.currentMaxBid", "price_text"]
MINIMUM_BID_KEYS = ["minimum_bid", "lance_inicial", "offerDetail.initialBidValue"]
APPRAISED_VALUE_KEYS = ["appraised_value", "avaliacao", "product.evaluationValue"]
AUCTION_DATE_KEYS = ["auction_date", "date", "data", "date_text", "auction.beginDate", "endDate"]
AUCTION_TYPE_KEYS = ["auction_type", "tipo_leilao", "auction.modalityDesc", "modality"]
STATE_KEYS = ["state", "uf", "estado", "product.location.state", "seller.state"]
CITY_KEYS = ["city", "cidade", "location", "product.location.city", "seller.city"]
URL_KEYS = ["original_url", "url", "link", "href"]
THUMBNAIL_KEYS = ["thumbnail_url", "image", "image_url", "imageUrl", "product.thumbnailUrl"]
IMAGE_LIST_KEYS = ["images", "imagens", "product.galleryJson"]
FINANCING_KEYS = ["has_financing", "financing", "offerDetail.acceptsFinancing"]
DESCRIPTION_KEYS = ["description", "descricao", "product.detailedDescription"]
COLOR_KEYS = ["color", "cor"]
FUEL_KEYS = ["fuel_type", "combustivel"]
TRANSMISSION_KEYS = ["transmission", "cambio"]
PLATE_KEYS = ["license_plate", "placa"]
CONDITION_KEYS = ["condition", "condicao", "product.condition"]

# Most common first; multi-word names before their prefixes
KNOWN_BRANDS = [
    "Toyota", "Honda", "Volkswagen", "Fiat", "Chevrolet", "Ford",
    "Nissan", "Hyundai", "Renault", "Peugeot", "Citroën", "BMW",
    "Mercedes-Benz", "Audi", "Volvo", "Mitsubishi", "Subaru",
    "Kia", "Mazda", "Suzuki", "Jeep", "Land Rover", "Jaguar",
    "Porsche", "Ferrari", "Lamborghini", "Maserati", "Bentley",
    "Rolls-Royce", "Aston Martin", "McLaren",
    "Troller", "Agrale", "Effa", "JAC", "Chery", "Lifan",
    "Geely", "BYD", "Great Wall", "Haval", "Dongfeng",
    "Iveco", "Scania", "MAN", "DAF",
    "Yamaha", "Kawasaki", "Ducati", "Harley-Davidson", "KTM", "Triumph",
    "Aprilia", "Moto Guzzi", "MV Agusta", "Benelli", "Bajaj", "Royal Enfield",
    "Dafra", "Shineray", "Haojue",
    "VW", "GM", "MB", "I/VW", "I/GM", "I/FORD", "I/FIAT",
]

# Import prefixes printed before brands ("I/GM CLASSIC", "IMP/HONDA")
_IMPORT_PREFIX = re.compile(r"^(I|IMP)/", re.IGNORECASE)

COLORS = [
    "branco", "preto", "prata", "cinza", "azul", "vermelho", "verde",
    "amarelo", "marrom", "bege", "dourado", "laranja", "roxo", "rosa", "creme",
]

_FUEL_PATTERN = re.compile(r"\b(GASOL\w*|ETANOL|DIESEL|FLEX|ALC\w*)\b", re.IGNORECASE)
_PLATE_PATTERN = re.compile(r"PLACA:?\s*([A-Z0-9\-]{5,8})", re.IGNORECASE)
_TRANSMISSION_PATTERN = re.compile(
    r"\b(AUTOM[AÁ]TIC[OA]|AUT\.?|MANUAL|MEC\.?|CVT|TIPTRONIC)(?=\s|$|[,;])", re.IGNORECASE
)

_MODEL_NOISE_PATTERNS = [
    re.compile(r"\b(19|20)\d{2}\b"),
    re.compile(r"\b\d{2}/\d{2}\b"),
    re.compile(r"\b\d\.\d\b"),
    re.compile(r"\b(flex|gasolina|etanol|diesel|h[ií]brido|el[ée]trico)\b", re.IGNORECASE),
    re.compile(r"\b(manual|autom[áa]tico|cvt)\b", re.IGNORECASE),
    re.compile(r"\b(2p|4p|2 portas|4 portas)\b", re.IGNORECASE),
    re.compile(r"\b(" + "|".join(COLORS) + r")\b", re.IGNORECASE),
]


@dataclass
class CanonicalLot:
    """One scraped auction item in canonical form."""

    external_id: str
    title: str
    lot_number: str = ""
    raw_brand: str = ""
    raw_model: str = ""
    brand: str = ""
    model: str = ""
    version: str = ""
    year_manufacture: Optional[int] = None
    year_model: Optional[int] = None
    vehicle_type: Optional[str] = None
    vehicle_type_hint: Optional[str] = None
    color: str = ""
    fuel_type: str = ""
    transmission: str = ""
    mileage: Optional[int] = None
    license_plate: str = ""
    condition: str = ""
    state: Optional[str] = None
    city: Optional[str] = None
    current_bid: Optional[Decimal] = None
    minimum_bid: Optional[Decimal] = None
    appraised_value: Optional[Decimal] = None
    auction_date: Optional[date] = None
    auction_type: str = "online"
    has_financing: bool = False
    original_url: str = ""
    thumbnail_url: str = ""
    images: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def best_price(self) -> Optional[Decimal]:
        """Current bid, falling back to minimum bid then appraised value."""
        for value in (self.current_bid, self.minimum_bid, self.appraised_value):
            if value is not None and value > 0:
                return value
        return None


def extract_brand_and_model(title: Optional[str]) -> Tuple[str, str]:
    """
    Extract brand and model from a listing title.

    Known brands are matched as whole words at the start or in the middle
    of the title; otherwise the first word is taken as the brand.

    Example:
        >>> extract_brand_and_model("TOYOTA COROLLA XEI 2.0 FLEX 2019/2020")
        ('TOYOTA', 'COROLLA XEI')
    """
    text = clean_text(title)
    if not text:
        return "", ""

    folded = to_canonical_upper(text)
    for brand in KNOWN_BRANDS:
        brand_upper = to_canonical_upper(brand)
        pattern = re.compile(r"(?:^|\s)" + re.escape(brand_upper) + r"(?=\s|/|$)")
        match = pattern.search(folded)
        if match:
            remainder = (folded[:match.start()] + " " + folded[match.end():]).strip(" /-")
            brand_name = _IMPORT_PREFIX.sub("", brand_upper)
            return brand_name, clean_model_name(remainder)

    words = _IMPORT_PREFIX.sub("", folded).split(" ")
    return words[0].strip(" /-,"), clean_model_name(" ".join(words[1:]))


def clean_model_name(model: Optional[str]) -> str:
    """Strip years, displacements, fuels, transmissions, doors and colors."""
    if not model:
        return ""
    cleaned = model.split(",")[0]
    for pattern in _MODEL_NOISE_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip(" -/")


def detect_auction_type(text: Optional[str], default: str = "online") -> str:
    """
    Map site modality labels to online/presencial/hibrido.

    "Tomada de Preço", "Mercado Balcão" and "Judicial" are online
    modalities on the sites crawled.
    """
    folded = to_canonical_upper(text).lower()
    if not folded:
        return default
    if "hibrido" in folded:
        return "hibrido"
    if "presencial" in folded:
        return "presencial"
    if any(marker in folded for marker in ("online", "tomada de pre", "mercado balcao",
                                            "compre ja", "judicial")):
        return "online"
    return default


def extract_color(text: Optional[str]) -> str:
    folded = to_canonical_upper(text).lower()
    for color in COLORS:
        if re.search(r"\b" + color + r"\b", folded):
            return color.capitalize()
    return ""


def extract_fuel(text: Optional[str]) -> str:
    match = _FUEL_PATTERN.search(to_canonical_upper(text))
    if not match:
        return ""
    token = match.group(1)
    if token.startswith("GASOL"):
        return "Gasolina"
    if token.startswith("ALC"):
        return "Alcool"
    return token.capitalize()


def extract_plate(text: Optional[str]) -> str:
    match = _PLATE_PATTERN.search(text or "")
    return match.group(1).upper() if match else ""


def extract_transmission(text: Optional[str]) -> str:
    match = _TRANSMISSION_PATTERN.search(to_canonical_upper(text))
    if not match:
        return ""
    token = match.group(1)
    if token.startswith(("AUT", "TIPTRONIC", "CVT")):
        return "Automatico"
    return "Manual"


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "sim", "yes", "s")
    return bool(value)


def _collect_images(raw: Dict[str, Any], base_url: str) -> List[str]:
    images = []
    listed = pick_first_field(raw, IMAGE_LIST_KEYS) or []
    if isinstance(listed, (str, dict)):
        listed = [listed]
    for item in listed:
        url = item.get("link") or item.get("url") if isinstance(item, dict) else item
        url = normalize_url(url, base_url) if url else ""
        if is_valid_url(url) and url not in images:
            images.append(url)

    thumbnail = pick_first_field(raw, THUMBNAIL_KEYS)
    thumbnail = normalize_url(thumbnail, base_url) if isinstance(thumbnail, str) else ""
    if is_valid_url(thumbnail) and thumbnail not in images:
        images.insert(0, thumbnail)
    return images


def transform_raw_lot(raw: Dict[str, Any], site, today: Optional[date] = None) -> Optional[CanonicalLot]:
    """
    Transform a raw site payload into a CanonicalLot.

    Args:
        raw: Payload dict emitted by the site adapter
        site: AuctionSite adapter (base URL, id derivation, defaults)
        today: Reference date for year-less auction dates

    Returns:
        CanonicalLot, or None when no external id or title can be found
    """
    today = today or date.today()

    title = clean_text(pick_first_field(raw, TITLE_KEYS))
    if not title:
        logger.debug(f"[{site.name}] Discarding lot without title: {str(raw)[:120]}")
        return None

    external_id = site.derive_external_id(raw, title)
    if not external_id:
        logger.debug(f"[{site.name}] Discarding lot without external id: {title[:60]}")
        return None

    description = clean_text(pick_first_field(raw, DESCRIPTION_KEYS))
    full_text = f"{title} {description}".strip()

    raw_brand = clean_text(pick_first_field(raw, BRAND_KEYS))
    raw_model = clean_text(pick_first_field(raw, MODEL_KEYS))
    if not raw_brand:
        raw_brand, title_model = extract_brand_and_model(title)
        raw_model = raw_model or title_model

    years = parse_year_pair(pick_first_field(raw, YEAR_KEYS), today) or parse_year_pair(title, today)
    year_manufacture, year_model = years if years else (None, None)

    mileage = parse_mileage(pick_first_field(raw, MILEAGE_KEYS))
    if mileage is None:
        mileage_match = re.search(r"(\d{1,3}(?:\.\d{3})+|\d+)\s*km\b", full_text, re.IGNORECASE)
        mileage = parse_mileage(mileage_match.group(0)) if mileage_match else None

    state, city = normalize_state_city(
        pick_first_field(raw, STATE_KEYS),
        pick_first_field(raw, CITY_KEYS),
        default_state=getattr(settings, "AUCTIONS_DEFAULT_STATE", "SP"),
        default_city=getattr(settings, "AUCTIONS_DEFAULT_CITY", "São Paulo"),
    )

    url = pick_first_field(raw, URL_KEYS)
    original_url = normalize_url(url, site.base_url) if isinstance(url, str) else ""
    images = _collect_images(raw, site.base_url)

    auction_type = detect_auction_type(
        pick_first_field(raw, AUCTION_TYPE_KEYS) or full_text, site.default_auction_type
    )

    return CanonicalLot(
        external_id=str(external_id),
        title=title,
        lot_number=str(pick_first_field(raw, LOT_NUMBER_KEYS) or ""),
        raw_brand=raw_brand,
        raw_model=raw_model,
        brand=raw_brand,
        model=raw_model,
        year_manufacture=year_manufacture,
        year_model=year_model,
        vehicle_type_hint=raw.get("vehicle_type_hint"),
        color=clean_text(pick_first_field(raw, COLOR_KEYS)) or extract_color(full_text),
        fuel_type=clean_text(pick_first_field(raw, FUEL_KEYS)) or extract_fuel(full_text),
        transmission=(
            clean_text(pick_first_field(raw, TRANSMISSION_KEYS)) or extract_transmission(full_text)
        ),
        mileage=mileage,
        license_plate=clean_text(pick_first_field(raw, PLATE_KEYS)) or extract_plate(full_text),
        condition=clean_text(pick_first_field(raw, CONDITION_KEYS)),
        state=state,
        city=city,
        current_bid=parse_price(pick_first_field(raw, CURRENT_BID_KEYS)),
        minimum_bid=parse_price(pick_first_field(raw, MINIMUM_BID_KEYS)),
        appraised_value=parse_price(pick_first_field(raw, APPRAISED_VALUE_KEYS)),
        auction_date=parse_auction_date(pick_first_field(raw, AUCTION_DATE_KEYS), today),
        auction_type=auction_type,
        has_financing=_to_bool(pick_first_field(raw, FINANCING_KEYS)),
        original_url=original_url if is_valid_url(original_url) else "",
        thumbnail_url=images[0] if images else "",
        images=images,
        description=description,
    )
