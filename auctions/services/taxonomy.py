"""
Reference Taxonomy Cache.

Loads the brand/model/price reference tables once per process into plain
immutable records with lookup indexes, so the normalizer and classifier can
match thousands of lots without touching the database.

Indexes:
    Brands (per category partition):
        search_name -> BrandRecord
        name_upper  -> BrandRecord

    Models (per brand):
        base_search_name -> [ModelRecord]
        search_name      -> [ModelRecord]

    Reference prices:
        (model_id, year) -> latest monthly price

Usage:
    from auctions.services.taxonomy import get_taxonomy_cache

    taxonomy = get_taxonomy_cache()
    normalizer = BrandModelNormalizer(taxonomy)
    classifier = VehicleTypeClassifier(taxonomy)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from auctions.utils.text import build_search_key

logger = logging.getLogger(__name__)

# Partition search order when no category hint is given
CATEGORY_ORDER = ("car", "motorcycle", "truck")


@dataclass(frozen=True)
class BrandRecord:
    id: int
    name: str
    name_upper: str
    search_name: str
    category: str


@dataclass(frozen=True)
class ModelRecord:
    id: int
    brand_id: int
    name: str
    name_upper: str
    base_name_upper: str
    base_search_name: str
    search_name: str


class TaxonomyCache:
    """
    Read-only in-memory view of the reference taxonomy.

    Built once and shared; nothing mutates it after construction.
    """

    def __init__(
        self,
        brands: Iterable[BrandRecord] = (),
        models: Iterable[ModelRecord] = (),
        reference_prices: Optional[Dict[Tuple[int, int], Decimal]] = None,
    ):
        self.brands: List[BrandRecord] = list(brands)
        self.models: List[ModelRecord] = list(models)
        self.reference_prices: Dict[Tuple[int, int], Decimal] = dict(reference_prices or {})

        self._brands_by_category: Dict[str, List[BrandRecord]] = defaultdict(list)
        self._brand_by_search: Dict[str, Dict[str, BrandRecord]] = defaultdict(dict)
        self._brand_by_upper: Dict[str, Dict[str, BrandRecord]] = defaultdict(dict)
        for brand in self.brands:
            self._brands_by_category[brand.category].append(brand)
            self._brand_by_search[brand.category].setdefault(brand.search_name, brand)
            self._brand_by_upper[brand.category].setdefault(brand.name_upper, brand)

        self._models_by_brand: Dict[int, List[ModelRecord]] = defaultdict(list)
        self._model_by_base: Dict[int, Dict[str, List[ModelRecord]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._model_by_search: Dict[int, Dict[str, List[ModelRecord]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for model in self.models:
            self._models_by_brand[model.brand_id].append(model)
            self._model_by_base[model.brand_id][model.base_search_name].append(model)
            self._model_by_search[model.brand_id][model.search_name].append(model)

    def __repr__(self):
        return f"<TaxonomyCache brands={len(self.brands)} models={len(self.models)}>"

    @property
    def categories(self) -> List[str]:
        """Known partitions in search order, then any others."""
        present = set(self._brands_by_category)
        ordered = [c for c in CATEGORY_ORDER if c in present]
        return ordered + sorted(present - set(ordered))

    # ------------------------------------------------------------------
    # Brand lookups
    # ------------------------------------------------------------------

    def brands_in(self, category: str) -> List[BrandRecord]:
        return self._brands_by_category.get(category, [])

    def brand_by_search_key(self, category: str, key: str) -> Optional[BrandRecord]:
        return self._brand_by_search.get(category, {}).get(key)

    def brand_by_name_upper(self, category: str, name_upper: str) -> Optional[BrandRecord]:
        return self._brand_by_upper.get(category, {}).get(name_upper)

    def brand_categories(self, search_key: str) -> List[BrandRecord]:
        """Every partition record whose search key equals ``search_key``."""
        return [
            self._brand_by_search[category][search_key]
            for category in self.categories
            if search_key in self._brand_by_search[category]
        ]

    # ------------------------------------------------------------------
    # Model lookups
    # ------------------------------------------------------------------

    def models_for_brand(self, brand_id: int) -> List[ModelRecord]:
        return self._models_by_brand.get(brand_id, [])

    def models_by_key(self, brand_id: int, key: str) -> List[ModelRecord]:
        """Models of one brand whose base or full search key equals ``key``."""
        if brand_id not in self._models_by_brand:
            return []
        by_base = self._model_by_base[brand_id].get(key, [])
        if by_base:
            return by_base
        return self._model_by_search[brand_id].get(key, [])

    # ------------------------------------------------------------------
    # Reference prices
    # ------------------------------------------------------------------

    def get_reference_price(self, model: ModelRecord, year: Optional[int]) -> Optional[Decimal]:
        """
        Reference price for a model and year.

        Lots rarely name the exact reference version, so the price is the mean
        of the latest prices of every model of the brand sharing the same base
        name ("ONIX LT 1.0", "ONIX LTZ 1.4", ...) for that year.
        """
        if model is None or not year:
            return None

        siblings = self._model_by_base.get(model.brand_id, {}).get(model.base_search_name) or [model]
        prices = [
            self.reference_prices[(sibling.id, year)]
            for sibling in siblings
            if (sibling.id, year) in self.reference_prices
        ]
        if not prices:
            return None

        return (sum(prices) / len(prices)).quantize(Decimal("0.01"))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_database(cls) -> "TaxonomyCache":
        """Load every taxonomy row; keeps only the latest price per model year."""
        from auctions.models import PriceReference, TaxonomyBrand, TaxonomyModel

        brands = [
            BrandRecord(
                id=row["id"],
                name=row["name"],
                name_upper=row["name_upper"],
                search_name=row["search_name"],
                category=row["category__vehicle_type"],
            )
            for row in TaxonomyBrand.objects.values(
                "id", "name", "name_upper", "search_name", "category__vehicle_type"
            )
        ]

        models = [
            ModelRecord(
                id=row["id"],
                brand_id=row["brand_id"],
                name=row["name"],
                name_upper=row["name_upper"],
                base_name_upper=row["base_name_upper"],
                base_search_name=row["base_search_name"],
                search_name=build_search_key(row["name"]),
            )
            for row in TaxonomyModel.objects.values(
                "id", "brand_id", "name", "name_upper", "base_name_upper", "base_search_name"
            )
        ]

        reference_prices: Dict[Tuple[int, int], Decimal] = {}
        price_rows = PriceReference.objects.values_list(
            "model_year__model_id", "model_year__year", "price"
        ).order_by("model_year__model_id", "model_year__year", "-reference_month")
        for model_id, year, price in price_rows:
            reference_prices.setdefault((model_id, year), price)

        logger.info(
            f"Loaded taxonomy cache: {len(brands)} brands, {len(models)} models, "
            f"{len(reference_prices)} reference prices"
        )
        return cls(brands, models, reference_prices)


# Singleton instance for module-level access
_taxonomy_cache: Optional[TaxonomyCache] = None


def get_taxonomy_cache() -> TaxonomyCache:
    """
    Get the process-wide TaxonomyCache, loading it on first call.

    Returns:
        The shared TaxonomyCache instance.
    """
    global _taxonomy_cache
    if _taxonomy_cache is None:
        _taxonomy_cache = TaxonomyCache.from_database()
    return _taxonomy_cache


def reset_taxonomy_cache() -> None:
    """
    Drop the cached taxonomy so the next get_taxonomy_cache() reloads it.

    Called after taxonomy imports and in tests.
    """
    global _taxonomy_cache
    _taxonomy_cache = None
