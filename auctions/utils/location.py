"""
Brazilian location normalization.

Auction sites print locations in every shape imaginable: "Osasco/SP",
"São Paulo - SP", "Campinas (SP)", "cidade de Curitiba, PR, Brasil" or a full
state name. These helpers reduce all of them to a valid two-letter UF code
and a title-cased city name.
"""

import re
from typing import Optional, Tuple

from .text import to_canonical_upper


VALID_STATE_CODES = frozenset({
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS",
    "MG", "PA", "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC",
    "SP", "SE", "TO",
})

STATE_NAME_TO_UF = {
    "ACRE": "AC",
    "ALAGOAS": "AL",
    "AMAPA": "AP",
    "AMAZONAS": "AM",
    "BAHIA": "BA",
    "CEARA": "CE",
    "DISTRITO FEDERAL": "DF",
    "FEDERAL DISTRICT": "DF",
    "ESPIRITO SANTO": "ES",
    "GOIAS": "GO",
    "MARANHAO": "MA",
    "MATO GROSSO": "MT",
    "MATO GROSSO DO SUL": "MS",
    "MINAS GERAIS": "MG",
    "PARA": "PA",
    "PARAIBA": "PB",
    "PARANA": "PR",
    "PERNAMBUCO": "PE",
    "PIAUI": "PI",
    "RIO DE JANEIRO": "RJ",
    "RIO GRANDE DO NORTE": "RN",
    "RIO GRANDE DO SUL": "RS",
    "RONDONIA": "RO",
    "RORAIMA": "RR",
    "SANTA CATARINA": "SC",
    "SAO PAULO": "SP",
    "SERGIPE": "SE",
    "TOCANTINS": "TO",
}

CITY_LOWERCASE_WORDS = frozenset({
    "da", "das", "de", "do", "dos", "del", "della", "di", "d", "e",
    "na", "nas", "no", "nos",
})

# Ordered: separator forms first, bare trailing code last
_STATE_SUFFIX_PATTERNS = [
    re.compile(r"\s*[/|\-]\s*([A-Za-z]{2})$"),
    re.compile(r"\s*\(([A-Za-z]{2})\)$"),
    re.compile(r"\s*,\s*([A-Za-z]{2})$"),
    re.compile(r"\s+([A-Za-z]{2})$"),
]

_COUNTRY_SUFFIX = re.compile(r",?\s*brasil$", re.IGNORECASE)
_CITY_PREFIX = re.compile(r"^(cidade|município|municipio)\s+de\s+", re.IGNORECASE)
_CITY_ARTICLE = re.compile(r"^(de|da|das|do|dos)\s+", re.IGNORECASE)


def split_city_and_state(raw: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Split a free-text location into ``(city, uf)``.

    Args:
        raw: e.g. "Osasco/SP", "Campinas (SP)", "Curitiba, PR, Brasil"

    Returns:
        Tuple of the cleaned city text (not yet title-cased) and the UF code,
        or None for the UF when no valid trailing code was found.
    """
    if not raw:
        return "", None

    text = _COUNTRY_SUFFIX.sub("", raw.strip()).strip(" ,")
    state = None

    for pattern in _STATE_SUFFIX_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).upper() in VALID_STATE_CODES:
            state = match.group(1).upper()
            text = text[:match.start()].strip(" ,-/|")
            break

    text = _CITY_PREFIX.sub("", text)
    text = _CITY_ARTICLE.sub("", text)

    return text.strip(), state


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def format_city_name(city: Optional[str]) -> str:
    """
    Title-case a city name keeping Portuguese connectives lowercase.

    Example:
        >>> format_city_name("SAO JOSE DOS CAMPOS")
        'Sao Jose dos Campos'
        >>> format_city_name("santa bárbara d'oeste")
        "Santa Bárbara d'Oeste"
    """
    if not city:
        return ""

    words = re.sub(r"\s+", " ", city.strip().lower()).split(" ")
    formatted = []
    for index, word in enumerate(words):
        if index > 0 and word in CITY_LOWERCASE_WORDS:
            formatted.append(word)
            continue

        if word.startswith("d'") and len(word) > 2:
            formatted.append("d'" + _capitalize(word[2:]))
            continue

        # Hyphenated and apostrophe compounds: "embu-guaçu", "olho-d'água"
        parts = []
        for part in word.split("-"):
            sub_parts = part.split("'")
            parts.append("'".join(_capitalize(p) for p in sub_parts))
        formatted.append("-".join(parts))

    return " ".join(formatted)


def normalize_state(raw: Optional[str]) -> Optional[str]:
    """
    Resolve a UF code from a code, a full state name or a trailing code.

    Returns None when nothing valid can be derived.
    """
    if not raw:
        return None

    value = raw.strip()
    if len(value) == 2 and value.upper() in VALID_STATE_CODES:
        return value.upper()

    sanitized = re.sub(r"[^A-Z ]", " ", to_canonical_upper(value))
    sanitized = re.sub(r"\s+", " ", sanitized).strip()
    if sanitized in STATE_NAME_TO_UF:
        return STATE_NAME_TO_UF[sanitized]

    trailing = re.search(r"\b([A-Z]{2})$", sanitized)
    if trailing and trailing.group(1) in VALID_STATE_CODES:
        return trailing.group(1)

    return None


def _is_bare_state(value: str) -> bool:
    """True for a two-letter code or a full state name with nothing else."""
    stripped = value.strip()
    return len(stripped) <= 2 or to_canonical_upper(stripped) in STATE_NAME_TO_UF


def normalize_state_city(
    state: Optional[str],
    city: Optional[str],
    default_state: Optional[str] = None,
    default_city: Optional[str] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Normalize a ``(state, city)`` pair.

    The city may carry the UF ("Osasco/SP"); an explicit ``state`` argument
    wins over the one embedded in the city. Unresolvable values fall back to
    the defaults.
    """
    city_text, embedded_state = split_city_and_state(city)
    resolved_state = normalize_state(state) or embedded_state

    # A city-less location sometimes carries the whole thing in ``state``
    if not city_text and state and not _is_bare_state(state):
        city_text, embedded_state = split_city_and_state(state)
        resolved_state = resolved_state or embedded_state

    resolved_city = format_city_name(city_text) or None

    return resolved_state or default_state, resolved_city or default_city
