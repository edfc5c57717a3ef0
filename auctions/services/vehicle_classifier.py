"""
Multi-Layer Vehicle-Type Classifier.

Classifies a lot as car, motorcycle, truck or van from several independent
signals, each with its own confidence:

    Layer 1 - Taxonomy (95):
        The brand (and, when the brand exists in several partitions, the
        model) is found in the reference taxonomy.

    Layer 2 - Title keywords (50-90):
        Motorcycle, truck and van keyword lists matched on word boundaries.
        Truck keywords take precedence over motorcycle ones.

    Layer 3 - Characteristics (adjustment only):
        Diesel motorcycles, cheap or non-diesel trucks and a few hard-coded
        brand+model facts (Honda Civic is a car, Honda CB is a motorcycle).

    Fallback - car (50)

When the taxonomy and the title disagree, the taxonomy wins with reduced
confidence and the disagreement is recorded in ``reasons``.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from auctions.models import VehicleType
from auctions.services.brand_model_normalizer import BRAND_ALIASES, match_model
from auctions.services.taxonomy import TaxonomyCache
from auctions.utils.text import build_search_key, to_canonical_upper

logger = logging.getLogger(__name__)

TAXONOMY_CONFIDENCE = 95
TAXONOMY_PENALIZED_CONFIDENCE = 70
FALLBACK_CONFIDENCE = 50

MOTORCYCLE_KEYWORDS = [
    "moto", "motocicleta", "motociclismo", "motoneta", "scooter",
    "cb 300", "cb 250", "cb 500", "cb 600", "cb 1000",
    "cg 125", "cg 150", "cg 160",
    # With displacement so "titan" never hits Ford Titanium
    "titan 125", "titan 150", "titan 160",
    "fan 125", "fan 150", "fan 160",
    "xre", "xtz", "fazer", "mt-03", "mt-07", "mt-09", "crosser", "biz",
    "hornet", "cbr", "twister", "factor", "pop", "bros", "pcx", "nmax", "neo",
]

# Brands that also build cars (Mercedes, Volvo) are deliberately absent
TRUCK_KEYWORDS = [
    "caminhão", "caminhao", "truck", "ônibus", "onibus", "bus",
    "carreta", "bitrem", "rodotrem", "cavalo mecânico", "cavalo mecanico", "toco",
    "scania", "iveco", "daf", "man", "agrale",
    "accelo", "atego", "axor", "actros",
    "fh", "fm", "vm",
    "cargo", "constellation", "delivery", "worker",
    "stralis", "tector", "eurocargo",
    "ranger militar", "viatura militar",
    "militar", "exército", "exercito",
]

VAN_KEYWORDS = [
    "van", "minivan", "kombi", "master", "ducato", "sprinter",
    "furgão", "furgon", "panel",
]

CAR_CONTEXT_KEYWORDS = [
    "hatch", "sedan", "suv", "crossover", "coupe", "pickup",
    "picape", "wagon", "station", "executivo",
]


@dataclass
class ClassificationResult:
    type: str
    confidence: int
    source: str
    reasons: List[str] = field(default_factory=list)


@dataclass
class TitleSignal:
    type: Optional[str]
    confidence: int
    keywords: List[str]


@dataclass
class CharacteristicCheck:
    valid: bool
    confidence: Optional[int]
    reason: str
    forced_type: Optional[str] = None


def _fold(value: Optional[str]) -> str:
    return to_canonical_upper(value or "").lower()


def _keyword_pattern(keyword: str):
    return re.compile(r"(?<![a-z0-9])" + re.escape(_fold(keyword)) + r"(?![a-z0-9])")


_MOTORCYCLE_PATTERNS = [(k, _keyword_pattern(k)) for k in MOTORCYCLE_KEYWORDS]
_TRUCK_PATTERNS = [(k, _keyword_pattern(k)) for k in TRUCK_KEYWORDS]
_VAN_PATTERNS = [(k, _keyword_pattern(k)) for k in VAN_KEYWORDS]
_CAR_PATTERNS = [(k, _keyword_pattern(k)) for k in CAR_CONTEXT_KEYWORDS]


def extract_type_from_title(title: Optional[str]) -> TitleSignal:
    """
    Infer a vehicle type from keywords in the title.

    Example:
        >>> extract_type_from_title("HONDA CB 300R 2012").type
        'motorcycle'
    """
    text = _fold(title)
    keywords = []
    vehicle_type = None
    confidence = 0

    for keyword, pattern in _MOTORCYCLE_PATTERNS:
        if pattern.search(text):
            keywords.append(keyword)
            if vehicle_type is None:
                vehicle_type = VehicleType.MOTORCYCLE
                confidence = 85 if len(keyword) > 3 else 70

    # Truck wins over motorcycle when both appear
    for keyword, pattern in _TRUCK_PATTERNS:
        if pattern.search(text):
            keywords.append(keyword)
            vehicle_type = VehicleType.TRUCK
            confidence = 90 if len(keyword) > 4 else 80
            break

    for keyword, pattern in _VAN_PATTERNS:
        if pattern.search(text):
            keywords.append(keyword)
            if vehicle_type is None or (vehicle_type != VehicleType.VAN and confidence < 80):
                vehicle_type = VehicleType.VAN
                confidence = 80

    if vehicle_type is None and len(text) > 5:
        if any(pattern.search(text) for _, pattern in _CAR_PATTERNS):
            vehicle_type = VehicleType.CAR
            confidence = 60

    return TitleSignal(
        type=str(vehicle_type) if vehicle_type else None,
        confidence=confidence,
        keywords=keywords,
    )


def validate_type_by_characteristics(
    vehicle_type: str,
    brand: Optional[str],
    model: Optional[str],
    fuel_type: Optional[str] = None,
    mileage: Optional[int] = None,
    price: Optional[Union[int, float, Decimal]] = None,
) -> CharacteristicCheck:
    """
    Sanity-check a type against fuel, price and known brand+model facts.

    Returns:
        CharacteristicCheck. ``valid=False`` means a contradiction;
        ``forced_type`` is set when a hard-coded exception decides the type.
    """
    fuel = _fold(fuel_type)

    if vehicle_type == VehicleType.MOTORCYCLE:
        if fuel and "diesel" in fuel:
            return CharacteristicCheck(False, 20, "Motorcycle with diesel fuel")
        if mileage and mileage > 150000:
            return CharacteristicCheck(True, 70, "Motorcycle with very high mileage")

    if vehicle_type == VehicleType.TRUCK:
        if fuel and "diesel" not in fuel:
            return CharacteristicCheck(True, 60, "Truck without diesel fuel")
        if price and price < 20000:
            return CharacteristicCheck(True, 60, "Truck priced under 20000")

    if brand and model:
        brand_lower = _fold(brand)
        model_lower = _fold(model)

        if "honda" in brand_lower:
            if re.search(r"\b(civic|fit|crv|cr-v)\b", model_lower):
                if vehicle_type != VehicleType.CAR:
                    return CharacteristicCheck(
                        False, 10, "Honda Civic/Fit/CR-V are cars", VehicleType.CAR
                    )
            elif re.search(r"\b(cb|cg|xre)", model_lower):
                if vehicle_type != VehicleType.MOTORCYCLE:
                    return CharacteristicCheck(
                        False, 10, "Honda CB/CG/XRE are motorcycles", VehicleType.MOTORCYCLE
                    )

        if "yamaha" in brand_lower and re.search(r"\b(xtz|fazer)", model_lower):
            if vehicle_type != VehicleType.MOTORCYCLE:
                return CharacteristicCheck(
                    False, 10, "Yamaha XTZ/Fazer are motorcycles", VehicleType.MOTORCYCLE
                )

    return CharacteristicCheck(True, None, "Characteristics consistent")


def _clamp(confidence: int) -> int:
    return max(0, min(100, int(confidence)))


class VehicleTypeClassifier:
    """
    Confidence-weighted vehicle categorizer.

    Example:
        >>> classifier = VehicleTypeClassifier(get_taxonomy_cache())
        >>> result = classifier.classify("HONDA CB 300", "HONDA", "CB 300")
        >>> result.type, result.confidence
        ('motorcycle', 85)
    """

    def __init__(self, taxonomy: TaxonomyCache):
        self.taxonomy = taxonomy

    def classify_from_taxonomy(
        self, brand: Optional[str], model: Optional[str]
    ) -> Tuple[Optional[str], str]:
        """
        Determine the partition of a brand (and model) in the taxonomy.

        Returns:
            (vehicle_type or None, reason)
        """
        if not brand:
            return None, "Taxonomy: no brand to check"

        key = build_search_key(brand)
        alias = BRAND_ALIASES.get(key)
        if alias:
            key = build_search_key(alias)

        records = self.taxonomy.brand_categories(key)
        if not records:
            return None, "Taxonomy: brand not found"

        if len(records) == 1:
            return records[0].category, f"Taxonomy: {records[0].category} (brand {brand})"

        if model:
            hits = [
                record for record in records
                if match_model(self.taxonomy, record.id, model) is not None
            ]
            if len(hits) == 1:
                return hits[0].category, f"Taxonomy: {hits[0].category} (brand {brand}, model {model})"

        categories = ", ".join(record.category for record in records)
        return None, f"Taxonomy: brand {brand} ambiguous ({categories})"

    def classify(
        self,
        title: Optional[str],
        brand: Optional[str],
        model: Optional[str],
        fuel_type: Optional[str] = None,
        mileage: Optional[int] = None,
        price: Optional[Union[int, float, Decimal]] = None,
    ) -> ClassificationResult:
        """
        Classify one lot.

        Never raises; the worst case is the car fallback at confidence 50.
        """
        reasons: List[str] = []
        title_signal = extract_type_from_title(title)

        # Layer 1: taxonomy
        taxonomy_type, reason = self.classify_from_taxonomy(brand, model)
        reasons.append(reason)

        if taxonomy_type:
            vehicle_type = taxonomy_type
            confidence = TAXONOMY_CONFIDENCE
            check = validate_type_by_characteristics(
                vehicle_type, brand, model, fuel_type, mileage, price
            )
            if not check.valid:
                confidence = TAXONOMY_PENALIZED_CONFIDENCE
                if check.forced_type:
                    vehicle_type = str(check.forced_type)
                reasons.append(f"Characteristics conflict: {check.reason}")
            elif check.confidence is not None and check.confidence < confidence:
                confidence = check.confidence
                reasons.append(f"Characteristics: {check.reason}")

            if (
                title_signal.type
                and title_signal.confidence > 70
                and title_signal.type != vehicle_type
            ):
                reasons.append(
                    f"Title suggests {title_signal.type}, taxonomy indicates {vehicle_type}"
                )
                confidence = max(60, confidence - 15)

            return ClassificationResult(vehicle_type, _clamp(confidence), "taxonomy", reasons)

        # Layer 2: title keywords
        if title_signal.type and title_signal.confidence > 50:
            vehicle_type = title_signal.type
            confidence = title_signal.confidence
            reasons.append(
                f"Title: {vehicle_type} (keywords: {', '.join(title_signal.keywords) or 'context'})"
            )

            # Layer 3: characteristics adjust the title result
            check = validate_type_by_characteristics(
                vehicle_type, brand, model, fuel_type, mileage, price
            )
            if not check.valid:
                reasons.append(f"Characteristics conflict: {check.reason}")
                if check.forced_type:
                    return ClassificationResult(
                        str(check.forced_type),
                        _clamp(TAXONOMY_PENALIZED_CONFIDENCE),
                        "characteristics",
                        reasons,
                    )
                confidence = max(50, confidence - 20)
            elif check.confidence is not None and check.confidence < confidence:
                confidence = check.confidence
                reasons.append(f"Characteristics: {check.reason}")

            return ClassificationResult(vehicle_type, _clamp(confidence), "title-keyword", reasons)

        # Hard-coded brand+model facts still apply without any other signal
        check = validate_type_by_characteristics(
            VehicleType.CAR, brand, model, fuel_type, mileage, price
        )
        if check.forced_type:
            reasons.append(check.reason)
            return ClassificationResult(
                str(check.forced_type),
                _clamp(TAXONOMY_PENALIZED_CONFIDENCE),
                "characteristics",
                reasons,
            )

        reasons.append("Fallback: assuming car")
        return ClassificationResult(
            str(VehicleType.CAR), FALLBACK_CONFIDENCE, "fallback", reasons
        )
