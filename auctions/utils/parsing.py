"""
Tolerant field parsing for raw auction payloads.

Every parser returns None on bad input instead of raising, so a single
malformed field never discards a whole lot.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

MIN_VEHICLE_YEAR = 1950


def _get_path(source: Any, path: str) -> Any:
    current = source
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
        if current is None:
            return None
    return current


def pick_first_field(source: Any, candidate_keys: Iterable[str]) -> Any:
    """
    Return the first non-empty value among ``candidate_keys``.

    Keys may be dotted paths ("product.shortDesc"). None, empty strings and
    empty collections are skipped.

    Example:
        >>> pick_first_field({"titulo": "", "title": "GOL"}, ["titulo", "title"])
        'GOL'
    """
    if source is None:
        return None

    for key in candidate_keys:
        value = _get_path(source, key)
        if value is None:
            continue
        if isinstance(value, str):
            if not value.strip():
                continue
            return value.strip()
        if isinstance(value, (list, dict, tuple)) and not value:
            continue
        return value

    return None


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a Brazilian formatted price ("R$ 45.900,00") to Decimal.

    Plain numbers pass through unchanged.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = re.sub(r"R\$", "", str(value), flags=re.IGNORECASE)
    text = re.sub(r"\s+", "", text).replace(".", "").replace(",", ".")
    text = re.sub(r"[^0-9.\-]", "", text)
    if not text:
        return None

    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_mileage(value: Any) -> Optional[int]:
    """Parse mileage like "12.345 km" or "12345"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)

    text = str(value)
    match = re.search(r"(\d{1,3}(?:\.\d{3})+|\d+)\s*km", text, re.IGNORECASE)
    if match:
        return int(match.group(1).replace(".", ""))

    digits = re.sub(r"[.\s]", "", text)
    if digits.isdigit():
        return int(digits)
    return None


def _bounded_year(year: int, today: Optional[date] = None) -> Optional[int]:
    today = today or date.today()
    if MIN_VEHICLE_YEAR <= year <= today.year + 1:
        return year
    return None


def parse_year(value: Any, today: Optional[date] = None) -> Optional[int]:
    """
    Parse the first year from "2019", "2019/2020" or "19/20".

    Years outside 1950..current+1 are rejected.
    """
    years = parse_year_pair(value, today)
    return years[0] if years else None


def parse_year_pair(value: Any, today: Optional[date] = None):
    """
    Parse manufacture/model years from a year field or title fragment.

    Returns:
        Tuple ``(year_manufacture, year_model)`` or None. When only one year
        is present both entries hold it.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        year = _bounded_year(value, today)
        return (year, year) if year else None

    text = str(value)
    # Model codes and lot numbers ("ATEGO 1719", "LOTE 0042") are skipped
    for match in re.finditer(r"\b(\d{4})\b", text):
        first = _bounded_year(int(match.group(1)), today)
        if not first:
            continue
        following = re.match(r"\s*/?\s*(\d{4})\b", text[match.end():])
        second = _bounded_year(int(following.group(1)), today) if following else None
        return first, second or first

    for short in re.finditer(r"\b(\d{2})/(\d{2})\b", text):
        first = _bounded_year(2000 + int(short.group(1)), today)
        second = _bounded_year(2000 + int(short.group(2)), today)
        if first:
            return first, second or first

    return None


def parse_auction_date(value: Any, today: Optional[date] = None) -> Optional[date]:
    """
    Parse an auction date in any of the formats the sites use.

    Supported:
        - ISO: "2025-03-10", "2025-03-10T14:00:00Z"
        - "10/03/2025", "10/03/25" (20YY), "10-03-2025"
        - year-less "10/03 - 14:00": current year, or next year when that
          day has already passed

    Returns:
        date, or None when unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    today = today or date.today()

    iso = re.match(r"^(\d{4})-(\d{2})-(\d{2})", text)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    full = re.search(r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})\b", text)
    if full:
        return _safe_date(int(full.group(3)), int(full.group(2)), int(full.group(1)))

    short_year = re.search(r"\b(\d{1,2})/(\d{1,2})/(\d{2})\b", text)
    if short_year:
        return _safe_date(
            2000 + int(short_year.group(3)),
            int(short_year.group(2)),
            int(short_year.group(1)),
        )

    yearless = re.search(r"\b(\d{1,2})/(\d{1,2})\b(?!/)", text)
    if yearless:
        day, month = int(yearless.group(1)), int(yearless.group(2))
        candidate = _safe_date(today.year, month, day)
        if candidate and candidate < today:
            candidate = _safe_date(today.year + 1, month, day)
        return candidate

    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None
