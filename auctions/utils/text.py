"""
Text normalization utility functions.

Pure helpers shared by the brand/model normalizer, the classifier and the
lot transformer. None of these functions perform I/O and all of them are
locale independent: case folding and diacritic stripping are done on the
Unicode NFD decomposition, never through the process locale.

Normalization Rules:
- Canonical upper: strip diacritics and apostrophes, uppercase ASCII
- Search key: canonical upper with every non [A-Z0-9] character removed
- Model base: split a model string at the first trim/version marker
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse


# Trim, fuel, transmission and body-style markers that end the base name of a
# model ("CIVIC EXL 16V FLEX" -> "CIVIC"). Stored already ASCII-folded.
MODEL_TRIM_TOKENS = frozenset({
    # Trim levels
    "LT", "LTZ", "LS", "L", "SE", "SEL", "SES", "GL", "GLI", "GLS", "GLX",
    "GLXIS", "GLXI", "GX", "GX2", "GX3", "GX4", "LX", "LXL", "LXS", "EL",
    "ELX", "EX", "EXL", "EXS", "XR", "XS", "XLT", "XLS", "XLE", "XSE", "SR",
    "SRX", "SRV", "SL", "SLX", "SLT", "SXT", "RTX", "RT", "RS", "RZ", "S",
    "SI", "ST", "SW", "SX", "ZX", "ZL", "ZI", "GT", "GTS", "GTI", "GTR", "T",
    # Engines and fuel
    "TSI", "TFSI", "TDI", "CDI", "MPI", "FLEX", "FLEXPOWER", "FLEXFUEL",
    "FUELFLEX", "BI-FUEL", "TURBO", "SUPERCHARGED", "COMPRESSOR",
    # Transmission
    "TIPTRONIC", "CVT", "AUT", "AUTO", "AUTOMATICO", "AUTOMATIC",
    "AUTOMATICA", "MANUAL", "MEC", "MECANICO", "MECANICA", "AT", "MT", "DCT",
    "DSG", "POWERSHIFT",
    # Body styles
    "HATCH", "HATCHBACK", "SEDAN", "SALOON", "COUPE", "CABRIO", "CABRIOLET",
    "ROADSTER", "FASTBACK", "PERUA", "WAGON", "SUV", "CROSS", "CROSSOVER",
    "CROSSWAY", "CROSSFOX", "PICAPE", "PICKUP", "PICK-UP", "UTILITARIO",
    "CAB", "CABINE", "DUPLA", "SIMPLES", "CS", "CD", "CE",
    # Packages and editions
    "ADVENTURE", "ADVENTURELOCKER", "ADVENTURELOCK", "LOCKER", "TRAIL",
    "TRAILHAWK", "MOAB", "OVERLAND", "LIMITED", "PLATINUM", "PREMIUM",
    "PRIME", "ELITE", "LUXO", "LUXE", "LUXURY", "BLACK", "BLACKHAWK",
    "BLACKLINE", "BLACKPACKAGE", "NIGHT", "NIGHTFALL", "SUNSET", "SUN",
    "SOLAR", "POWER", "POWERTECH", "POWERPLUS", "TECH", "TECH1", "TECH2",
    "TECH3", "CONNECT", "CONNECTED", "SENSE", "VISION", "ACTIVE", "ACTION",
    "STYLE", "ELEGANCE", "CONFORT", "COMFORT", "COMFORTLINE", "HIGH",
    "HIGHLINE", "HIGHCOUNTRY", "COUNTRY", "COUNTRYMAN", "COUNTRYMANE",
    "TREND", "TRENDLINE", "UP", "UPT", "BLINDADO", "BLINDADA",
    # Drivetrain and valves
    "4X2", "4X4", "2WD", "4WD", "AWD", "FWD", "RWD", "8V", "16V", "24V",
    "32V", "VVT", "VVTI",
    # Efficiency and electrification
    "ECO", "ECON", "ECONOMY", "ECONOFLEX", "E-FLEX", "TJET", "THP", "HPT",
    "HP", "HEV", "HIBRIDO", "HYBRID", "E-HYBRID", "ELETRICO", "ELECTRIC",
    "PHEV", "E-POWER", "ETORQ", "E-TORQ", "E-TORQUE", "E-DRIVE", "DRIVE",
    "ENERGI", "ENERGY", "POWERTRAIN", "TFSIE", "E-HDI", "HDI", "COMMONRAIL",
})

NUMBER_WITH_DECIMAL = re.compile(r"^\d+([.,]\d+)?$")
LETTER_TOKEN = re.compile(r"^[A-Z]{1,3}$")

_APOSTROPHES = re.compile(r"['’`´]")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_MODEL_PUNCTUATION = re.compile(r"[(),.;:]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ModelBase:
    """Result of splitting a model string into base name and variant."""

    base_name: str
    base_name_upper: str
    base_search_name: str
    name_upper: str
    variant_name: str


@dataclass(frozen=True)
class BrandName:
    """Display, canonical upper and search-key forms of a brand name."""

    display: str
    upper: str
    search: str


def strip_diacritics(value: str) -> str:
    """Remove combining marks from the NFD decomposition of ``value``."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def to_canonical_upper(value: Optional[str]) -> str:
    """
    Strip diacritics and apostrophes and uppercase to ASCII.

    Example:
        >>> to_canonical_upper("Citroën d'Água")
        'CITROEN DAGUA'
    """
    if not value:
        return ""
    stripped = _APOSTROPHES.sub("", strip_diacritics(value))
    # Uppercase on ASCII only so the result never depends on the locale
    return stripped.upper().encode("ascii", "ignore").decode("ascii")


def build_search_key(value: Optional[str]) -> str:
    """
    Build an index lookup key: canonical upper without non-alphanumerics.

    Example:
        >>> build_search_key("Mercedes-Benz")
        'MERCEDESBENZ'
    """
    return _NON_ALNUM.sub("", to_canonical_upper(value))


def extract_model_base(value: Optional[str]) -> ModelBase:
    """
    Split a model string into its base name and variant.

    The first token always belongs to the base. Scanning stops at the first
    later token that contains a slash, is a known trim token or is numeric.
    A numeric token directly after a single 1-3 letter stem is kept so that
    names such as "C 180" or "CB 300" stay whole.

    Args:
        value: Free-text model, e.g. "CIVIC EXL 16V FLEX"

    Returns:
        ModelBase with base_name "CIVIC" and variant_name "EXL 16V FLEX"
    """
    if not value:
        return ModelBase("", "", "", "", "")

    cleaned = _WHITESPACE.sub(" ", _MODEL_PUNCTUATION.sub(" ", value)).strip()
    if not cleaned:
        return ModelBase("", "", "", "", "")

    tokens = cleaned.split(" ")
    tokens_upper = [to_canonical_upper(token) for token in tokens]

    base_tokens = []
    for original, upper in zip(tokens, tokens_upper):
        if not upper:
            continue

        if not base_tokens:
            base_tokens.append(original)
            continue

        if "/" in upper or upper in MODEL_TRIM_TOKENS:
            break

        if NUMBER_WITH_DECIMAL.match(upper):
            if len(base_tokens) == 1 and LETTER_TOKEN.match(tokens_upper[0]):
                base_tokens.append(original)
                continue
            break

        base_tokens.append(original)

    if not base_tokens:
        base_tokens.append(tokens[0])

    base_name = " ".join(base_tokens).strip()
    variant_name = " ".join(tokens[len(base_tokens):]).strip()

    return ModelBase(
        base_name=base_name,
        base_name_upper=to_canonical_upper(base_name),
        base_search_name=build_search_key(base_name),
        name_upper=to_canonical_upper(value),
        variant_name=variant_name,
    )


def normalize_brand_name(value: str) -> BrandName:
    """Return the display/upper/search forms used to store a brand."""
    trimmed = (value or "").strip()
    upper = to_canonical_upper(trimmed)
    return BrandName(display=upper, upper=upper, search=build_search_key(trimmed))


def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace (including newlines and tabs) and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def generate_slug(value: Optional[str]) -> str:
    """
    Build a URL slug: ASCII lowercase words joined by single hyphens.

    Example:
        >>> generate_slug("Sodré Santoro")
        'sodre-santoro'
    """
    if not value:
        return ""
    ascii_value = strip_diacritics(value).lower()
    ascii_value = re.sub(r"[^a-z0-9\s-]", "", ascii_value)
    ascii_value = re.sub(r"\s+", "-", ascii_value.strip())
    return re.sub(r"-+", "-", ascii_value).strip("-")


def normalize_url(url: Optional[str], base_url: str) -> str:
    """Resolve relative and protocol-relative URLs against ``base_url``."""
    if not url:
        return ""
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    return urljoin(base_url, url)


def is_valid_url(url: Optional[str]) -> bool:
    """True for absolute http(s) URLs."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
