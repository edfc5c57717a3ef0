"""
Reference taxonomy writer.

Upserts categories, brands, models, model years and monthly prices, filling
in the derived columns (canonical upper, search keys, model base/variant)
the normalizer indexes on. Shared by the import_taxonomy command (JSON
files) and the reference price API sync.

JSON import format::

    {
      "categories": [
        {
          "slug": "carros",
          "name": "Carros",
          "brands": [
            {
              "code": "21",
              "name": "Fiat",
              "models": [
                {
                  "code": "4828",
                  "name": "UNO MILLE 1.0 Fire",
                  "years": [
                    {
                      "code": "2012-1",
                      "name": "2012 Gasolina",
                      "prices": [{"month": "janeiro de 2025", "price": "R$ 20.431,00"}]
                    }
                  ]
                }
              ]
            }
          ]
        }
      ]
    }
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from auctions.models import (
    PriceReference,
    TaxonomyBrand,
    TaxonomyModel,
    TaxonomyModelYear,
    VehicleCategory,
)
from auctions.utils.parsing import parse_price
from auctions.utils.text import extract_model_base, normalize_brand_name, strip_diacritics

logger = logging.getLogger(__name__)

CATEGORY_NAMES = {
    "carros": "Carros",
    "motos": "Motos",
    "caminhoes": "Caminhões",
}

MONTHS = {
    "janeiro": 1,
    "fevereiro": 2,
    "marco": 3,
    "abril": 4,
    "maio": 5,
    "junho": 6,
    "julho": 7,
    "agosto": 8,
    "setembro": 9,
    "outubro": 10,
    "novembro": 11,
    "dezembro": 12,
}

_ISO_MONTH = re.compile(r"^(\d{4})-(\d{2})")
_YEAR_CODE = re.compile(r"^(\d{4})(?:-|$)")


def parse_reference_month(label: Any) -> Optional[date]:
    """
    First day of a reference month.

    Accepts "janeiro de 2025", "marco/2025" and ISO "2025-01" / "2025-01-01".
    """
    if isinstance(label, date):
        return label.replace(day=1)
    if not label:
        return None

    text = str(label).strip()
    iso = _ISO_MONTH.match(text)
    if iso:
        month = int(iso.group(2))
        return date(int(iso.group(1)), month, 1) if 1 <= month <= 12 else None

    words = re.split(r"[\s/]+", strip_diacritics(text).lower())
    words = [word for word in words if word and word != "de"]
    if len(words) < 2 or words[0] not in MONTHS or not words[1].isdigit():
        return None
    return date(int(words[1]), MONTHS[words[0]], 1)


def parse_year_label(code: str, name: str = "") -> Tuple[Optional[int], str]:
    """
    Model year and fuel label of a year entry ("2012-1", "2012 Gasolina").

    The year code wins over the name. The "32000" placeholder used for
    brand-new vehicles has no model year.
    """
    year = None
    code_year = _YEAR_CODE.match(code or "")
    if code_year:
        year = int(code_year.group(1))

    parts = (name or "").split(" ")
    if year is None and parts and len(parts[0]) == 4 and parts[0].isdigit():
        year = int(parts[0])

    fuel = " ".join(parts[1:]).strip() if len(parts) > 1 else ""
    return year, fuel


@dataclass
class ImportStats:
    categories: int = 0
    brands: int = 0
    models: int = 0
    years: int = 0
    prices: int = 0

    def __str__(self):
        return (
            f"{self.categories} categories, {self.brands} brands, {self.models} models, "
            f"{self.years} years, {self.prices} prices"
        )


class TaxonomyWriter:
    """Idempotent upserts for each taxonomy level; counts what it touched."""

    def __init__(self):
        self.stats = ImportStats()

    def category(self, slug: str, name: Optional[str] = None) -> VehicleCategory:
        if slug not in VehicleCategory.SLUG_TO_VEHICLE_TYPE:
            raise ValueError(f"Unknown taxonomy category: {slug}")

        category, _ = VehicleCategory.objects.update_or_create(
            slug=slug,
            defaults={
                "name": name or CATEGORY_NAMES[slug],
                "vehicle_type": VehicleCategory.SLUG_TO_VEHICLE_TYPE[slug],
            },
        )
        self.stats.categories += 1
        return category

    def brand(self, category: VehicleCategory, name: str, code: str = "") -> TaxonomyBrand:
        forms = normalize_brand_name(name)
        if not forms.search:
            raise ValueError(f"Brand name without letters or digits: {name!r}")

        brand, _ = TaxonomyBrand.objects.update_or_create(
            category=category,
            search_name=forms.search,
            defaults={
                "name": name.strip(),
                "name_upper": forms.upper,
                "reference_code": str(code or ""),
            },
        )
        self.stats.brands += 1
        return brand

    def model(self, brand: TaxonomyBrand, name: str, code: str = "") -> TaxonomyModel:
        base = extract_model_base(name)
        defaults = {
            "name": name.strip(),
            "name_upper": base.name_upper,
            "base_name": base.base_name,
            "base_name_upper": base.base_name_upper,
            "base_search_name": base.base_search_name,
            "variant_name": base.variant_name,
        }

        if code:
            model, _ = TaxonomyModel.objects.update_or_create(
                brand=brand, reference_code=str(code), defaults=defaults
            )
        else:
            model = TaxonomyModel.objects.filter(brand=brand, name_upper=base.name_upper).first()
            if model:
                for field_name, value in defaults.items():
                    setattr(model, field_name, value)
                model.save()
            else:
                model = TaxonomyModel.objects.create(brand=brand, **defaults)

        self.stats.models += 1
        return model

    def model_year(
        self, model: TaxonomyModel, code: str, name: str = "", year: Optional[int] = None, fuel: str = ""
    ) -> Optional[TaxonomyModelYear]:
        parsed_year, parsed_fuel = parse_year_label(code, name)
        year = year or parsed_year
        if year is None:
            logger.warning(f"Skipping year entry without a year: {model} {code!r} {name!r}")
            return None

        model_year, _ = TaxonomyModelYear.objects.update_or_create(
            model=model,
            year_code=str(code or year),
            defaults={"year": year, "fuel_label": (fuel or parsed_fuel)[:30]},
        )
        self.stats.years += 1
        return model_year

    def price(
        self, model_year: TaxonomyModelYear, month_label: Any, price_value: Any
    ) -> Optional[PriceReference]:
        reference_month = parse_reference_month(month_label)
        price = parse_price(price_value)
        if reference_month is None or price is None:
            logger.warning(
                f"Skipping price for {model_year}: month={month_label!r} price={price_value!r}"
            )
            return None

        reference, _ = PriceReference.objects.update_or_create(
            model_year=model_year,
            reference_month=reference_month,
            defaults={
                "price": price.quantize(Decimal("0.01")),
                "raw_price_text": str(price_value)[:50],
                "reference_label": str(month_label)[:50],
            },
        )
        self.stats.prices += 1
        return reference

    def import_tree(self, data: Dict[str, Any]) -> ImportStats:
        """Write a whole JSON tree (see module docstring)."""
        for category_data in data.get("categories", []):
            category = self.category(category_data["slug"], category_data.get("name"))

            for brand_data in category_data.get("brands", []):
                brand = self.brand(category, brand_data["name"], brand_data.get("code", ""))

                for model_data in brand_data.get("models", []):
                    model = self.model(brand, model_data["name"], model_data.get("code", ""))

                    for year_data in model_data.get("years", []):
                        model_year = self.model_year(
                            model,
                            str(year_data.get("code") or year_data.get("year") or ""),
                            year_data.get("name", ""),
                            year=year_data.get("year"),
                            fuel=year_data.get("fuel", ""),
                        )
                        if model_year is None:
                            continue

                        for price_data in year_data.get("prices", []):
                            self.price(model_year, price_data.get("month"), price_data.get("price"))

        logger.info(f"Imported taxonomy: {self.stats}")
        return self.stats


def clear_taxonomy() -> int:
    """Delete every taxonomy row; returns the number of deleted categories."""
    deleted = VehicleCategory.objects.count()
    VehicleCategory.objects.all().delete()
    return deleted
