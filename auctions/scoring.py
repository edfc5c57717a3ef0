"""
Deal scoring.

The persistence orchestrator treats the score as an opaque callable with the
signature::

    score(discount_pct, year, mileage, auction_type, has_financing) -> int

The implementation is selected by the AUCTIONS_DEAL_SCORE_FUNCTION dotted
path; calculate_deal_score below is the default.
"""

import math
from datetime import date
from typing import Callable, Optional, Union

from django.conf import settings
from django.utils.module_loading import import_string

DEFAULT_DEAL_SCORE_FUNCTION = "auctions.scoring.calculate_deal_score"

Number = Union[int, float]

# (max age in years, points), checked in order
YEAR_POINTS = [(0, 20), (2, 18), (5, 15), (10, 10), (15, 5)]

# (mileage below, points), checked in order
MILEAGE_POINTS = [(30000, 15), (60000, 12), (100000, 8), (150000, 4)]

AUCTION_TYPE_POINTS = {
    "online": 15,
    "hibrido": 10,
    "híbrido": 10,
    "presencial": 5,
}

NO_FINANCING_POINTS = 10


def calculate_deal_score(
    discount_pct: Number,
    year: int,
    mileage: Number,
    auction_type: str,
    has_financing: bool,
    current_year: Optional[int] = None,
) -> int:
    """
    Score a lot from 0 to 100.

    - Discount against the reference price: 0.8 points per percent, up to 40
    - Vehicle age: 20 for this year's model down to 0 above 15 years
    - Mileage: 15 under 30,000 km down to 0 from 150,000 km
    - Auction type: online 15, hybrid 10, in person 5
    - No financing: 10 (less paperwork)
    """
    current_year = current_year or date.today().year
    score = 0.0

    score += min(max(float(discount_pct or 0) * 0.8, 0), 40)

    age = current_year - int(year)
    for max_age, points in YEAR_POINTS:
        if age <= max_age:
            score += points
            break

    for limit, points in MILEAGE_POINTS:
        if (mileage or 0) < limit:
            score += points
            break

    score += AUCTION_TYPE_POINTS.get((auction_type or "").lower(), 0)

    if not has_financing:
        score += NO_FINANCING_POINTS

    return min(max(math.floor(score + 0.5), 0), 100)


def get_deal_score_function() -> Callable[..., Number]:
    """Resolve the configured deal-score callable."""
    path = getattr(settings, "AUCTIONS_DEAL_SCORE_FUNCTION", None) or DEFAULT_DEAL_SCORE_FUNCTION
    return import_string(path)
