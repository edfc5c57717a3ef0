"""
Brand/Model Normalization Engine.

Matches the noisy brand and model text printed by auction sites against the
reference taxonomy.

Brand resolution (first match wins):
    1. Alias table ("VW" -> VOLKSWAGEN, "GM" -> CHEVROLET, ...)
    2. Exact search key within the category partition
    3. Exact canonical uppercase name
    4. Containment of search keys (both sides >= 3 chars)
    5. Fuzzy ratio (rapidfuzz) for typos such as "VOLKSWAGUEN"

Model resolution is always scoped to the resolved brand: exact base/full
search key first, then containment.

Nothing in this module raises on bad input. Every entry point returns a
best-effort fallback together with a matched/is_valid flag.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from rapidfuzz import fuzz, process

from auctions.services.taxonomy import BrandRecord, ModelRecord, TaxonomyCache
from auctions.utils.text import (
    ModelBase,
    build_search_key,
    clean_text,
    extract_model_base,
    to_canonical_upper,
)

logger = logging.getLogger(__name__)

MIN_CONTAINMENT_LENGTH = 3
MIN_FUZZY_LENGTH = 4

# Keyed by search key
BRAND_ALIASES = {
    "VW": "VOLKSWAGEN",
    "GM": "CHEVROLET",
    "GENERALMOTORS": "CHEVROLET",
    "CHEVY": "CHEVROLET",
    "CHEV": "CHEVROLET",
    "CITROEN": "CITROEN",
    "CITROEM": "CITROEN",
    "MERCEDES": "MERCEDES-BENZ",
    "MERCEDESBENZ": "MERCEDES-BENZ",
    "MERCEDEZ": "MERCEDES-BENZ",
    "MERCEDEZBENZ": "MERCEDES-BENZ",
    "MB": "MERCEDES-BENZ",
    "MBENZ": "MERCEDES-BENZ",
    "BENZ": "MERCEDES-BENZ",
    "LR": "LAND ROVER",
    "HARLEY": "HARLEY-DAVIDSON",
}

BANNED_BRAND_NAMES = frozenset({
    "cross lander", "crosslander",
    "conservado", "conservada", "conservados", "conservadas",
    "desconhecido", "desconhecida", "desconhecidos", "desconhecidas",
    "não informado", "nao informado", "não-informado", "nao-informado",
    "naoinformado",
    "importado", "importados",
    "diverso", "diversos", "diversa", "diversas",
})

PARTS_WORDS = frozenset({
    "condensador", "embreagem", "radiador", "bateria", "pneu", "pneus",
    "freio", "freios", "filtro", "filtros", "óleo", "oleo", "lubrificante",
    "correia", "vela", "bobina", "carburador", "injetor", "bomba",
    "alternador", "motor", "câmbio", "cambio", "transmissão", "diferencial",
    "suspensão", "amortecedor", "mola", "disco", "pastilha", "tambor",
    "escapamento", "catalisador", "silenciador", "parachoque", "farol",
    "lanterna", "retrovisor", "vidro", "porta", "portas", "capô", "teto",
    "painel", "volante", "banco", "cinto", "airbag", "abs", "esp", "tcs",
    "ebd", "bas", "sensor", "atualizador", "reparo", "revisão",
    "manutenção", "serviço", "peça", "peças", "acessório", "acessórios",
    "kit", "kits", "conjunto", "conjuntos", "par", "pares",
})

INVALID_BRAND_WORDS = frozenset({
    "ano", "km", "cor", "combustível", "combustivel", "versão", "versao",
    "edição", "edicao", "especial", "limited", "sport", "comfort",
    "premium", "turbo", "flex", "gasolina", "diesel", "etanol", "alcool",
    "álcool", "manual", "automático", "automatico", "4x4", "4x2", "2p",
    "4p", "branco", "preto", "prata", "cinza", "azul", "vermelho", "novo",
    "usado", "seminovo", "leilão", "leilao", "lote", "financiamento",
    "venda", "garantia", "sinistro", "sinistrado", "batido", "reparado",
    "recuperado", "sucata", "documentado", "veículo", "veiculo",
})

_ONLY_NUMBERS = re.compile(r"^\d+$")

# Ordered: slash, dash, then "BRAND WORD WORD"
SEPARATION_PATTERNS = [
    re.compile(r"^([^/]+)/(.+)$"),
    re.compile(r"^([^-]+)\s*-\s*(.+)$"),
    re.compile(r"^([A-Z]+)\s+([A-Z]+(?:\s+[A-Z]+)*)$", re.IGNORECASE),
]


def is_only_numbers(value: str) -> bool:
    return bool(_ONLY_NUMBERS.match((value or "").strip()))


def is_part(value: str) -> bool:
    """True for vehicle part words, singular or plural."""
    lowered = (value or "").lower().strip()
    return lowered in PARTS_WORDS or re.sub(r"s$", "", lowered) in PARTS_WORDS


def is_invalid_brand_word(value: str) -> bool:
    return (value or "").lower().strip() in INVALID_BRAND_WORDS


def is_banned_brand_name(value: str) -> bool:
    return (value or "").lower().strip() in BANNED_BRAND_NAMES


@dataclass
class BrandResolution:
    matched: bool
    canonical_brand: str
    record: Optional[BrandRecord] = None
    category: Optional[str] = None


@dataclass
class ModelResolution:
    matched: bool
    canonical_model: str
    variant: str
    record: Optional[ModelRecord] = None


@dataclass
class SeparatedBrandModel:
    brand: str
    model: str


@dataclass
class BrandModelNormalization:
    """Lot-level normalization result."""

    brand: Optional[str]
    model: Optional[str]
    variant: str = ""
    is_valid: bool = False
    was_separated: bool = False
    was_normalized: bool = False
    brand_record: Optional[BrandRecord] = None
    model_record: Optional[ModelRecord] = None


def separate_combined_brand_model(text: Optional[str]) -> Optional[SeparatedBrandModel]:
    """
    Split combined values such as "CHEVROLET/CORSA" or "FIAT - UNO".

    Returns None when no pattern yields a plausible brand and model.
    """
    if not text or not text.strip():
        return None

    trimmed = text.strip()
    for pattern in SEPARATION_PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue

        brand, model = match.group(1).strip(), match.group(2).strip()
        if not brand or not model:
            continue
        if is_only_numbers(brand) or is_part(brand):
            continue
        if is_only_numbers(model) or is_part(model):
            continue
        return SeparatedBrandModel(brand=brand, model=model)

    return None


def match_model(
    taxonomy: TaxonomyCache, brand_id: int, model_text: str
) -> Optional[ModelRecord]:
    """
    Find a reference model of one brand for free-text ``model_text``.

    Exact candidate keys first, then containment preferring the longest
    base name.
    """
    if not model_text:
        return None

    base = extract_model_base(model_text)
    keys = _candidate_model_keys(base, model_text)
    if not keys:
        return None

    for key in keys:
        hits = taxonomy.models_by_key(brand_id, key)
        if hits:
            return hits[0]

    best = None
    for model in taxonomy.models_for_brand(brand_id):
        target = model.base_search_name
        if len(target) < MIN_CONTAINMENT_LENGTH:
            continue
        for key in keys:
            if len(key) < MIN_CONTAINMENT_LENGTH:
                continue
            if key in target or target in key:
                if best is None or len(target) > len(best.base_search_name):
                    best = model
                break

    return best


def _candidate_model_keys(base: ModelBase, model_text: str) -> List[str]:
    keys = []
    for key in (
        base.base_search_name,
        build_search_key(model_text),
        build_search_key(base.base_name_upper),
    ):
        if key and key not in keys:
            keys.append(key)
    return keys


class BrandModelNormalizer:
    """
    Resolves brands and models against an injected TaxonomyCache.

    Example:
        >>> normalizer = BrandModelNormalizer(get_taxonomy_cache())
        >>> normalizer.resolve_brand("vw").canonical_brand
        'VOLKSWAGEN'
    """

    def __init__(self, taxonomy: TaxonomyCache, fuzzy_threshold: Optional[int] = None):
        self.taxonomy = taxonomy
        if fuzzy_threshold is None:
            fuzzy_threshold = getattr(settings, "AUCTIONS_FUZZY_BRAND_THRESHOLD", 90)
        self.fuzzy_threshold = fuzzy_threshold

    def _partitions(self, category_hint: Optional[str]) -> List[str]:
        categories = self.taxonomy.categories
        if category_hint and category_hint in categories:
            return [category_hint]
        return categories

    def resolve_brand(
        self, raw_text: Optional[str], category_hint: Optional[str] = None
    ) -> BrandResolution:
        """
        Resolve a brand to its canonical taxonomy form.

        Args:
            raw_text: Brand as printed by the site
            category_hint: "car", "motorcycle" or "truck"; restricts the
                search to that partition when present in the taxonomy

        Returns:
            BrandResolution; unmatched input falls back to its canonical
            uppercase form with matched=False.
        """
        fallback = to_canonical_upper(clean_text(raw_text))
        key = build_search_key(raw_text)
        if not key:
            return BrandResolution(matched=False, canonical_brand=fallback)

        partitions = self._partitions(category_hint)

        # 1. Alias table
        alias = BRAND_ALIASES.get(key)
        if alias:
            alias_key = build_search_key(alias)
            for category in partitions:
                record = self.taxonomy.brand_by_search_key(category, alias_key)
                if record:
                    return BrandResolution(True, record.name_upper, record, category)
            return BrandResolution(matched=True, canonical_brand=alias)

        # 2. Exact search key
        for category in partitions:
            record = self.taxonomy.brand_by_search_key(category, key)
            if record:
                return BrandResolution(True, record.name_upper, record, category)

        # 3. Canonical uppercase name
        for category in partitions:
            record = self.taxonomy.brand_by_name_upper(category, fallback)
            if record:
                return BrandResolution(True, record.name_upper, record, category)

        # 4. Containment
        if len(key) >= MIN_CONTAINMENT_LENGTH:
            for category in partitions:
                record = self._containment_match(category, key)
                if record:
                    return BrandResolution(True, record.name_upper, record, category)

        # 5. Fuzzy ratio
        if len(key) >= MIN_FUZZY_LENGTH:
            for category in partitions:
                record = self._fuzzy_match(category, key)
                if record:
                    logger.debug(f"Fuzzy brand match: {raw_text!r} -> {record.name_upper}")
                    return BrandResolution(True, record.name_upper, record, category)

        return BrandResolution(matched=False, canonical_brand=fallback)

    def _containment_match(self, category: str, key: str) -> Optional[BrandRecord]:
        best = None
        for brand in self.taxonomy.brands_in(category):
            target = brand.search_name
            if len(target) < MIN_CONTAINMENT_LENGTH:
                continue
            if key in target or target in key:
                if best is None or len(target) > len(best.search_name):
                    best = brand
        return best

    def _fuzzy_match(self, category: str, key: str) -> Optional[BrandRecord]:
        brands = self.taxonomy.brands_in(category)
        if not brands:
            return None
        result = process.extractOne(
            key,
            [brand.search_name for brand in brands],
            scorer=fuzz.ratio,
            score_cutoff=self.fuzzy_threshold,
        )
        if result is None:
            return None
        _, _, index = result
        return brands[index]

    def resolve_model(
        self, brand_record: Optional[BrandRecord], raw_model_text: Optional[str]
    ) -> ModelResolution:
        """
        Resolve a model within one brand.

        Unresolved models fall back to the canonical uppercase base name, and
        the trailing trim tokens become the variant.
        """
        base = extract_model_base(clean_text(raw_model_text))
        if not base.base_name:
            return ModelResolution(matched=False, canonical_model="", variant="")

        record = None
        if brand_record is not None:
            record = match_model(self.taxonomy, brand_record.id, raw_model_text)

        if record is None:
            return ModelResolution(
                matched=False,
                canonical_model=base.base_name_upper,
                variant=to_canonical_upper(base.variant_name),
            )

        return ModelResolution(
            matched=True,
            canonical_model=record.base_name_upper,
            variant=to_canonical_upper(base.variant_name),
            record=record,
        )

    def normalize_lot_brand_model(
        self,
        brand: Optional[str],
        model: Optional[str],
        category_hint: Optional[str] = None,
    ) -> BrandModelNormalization:
        """
        Lot-level entry point: split, filter, then resolve brand and model.

        Args:
            brand: Raw brand (may hold "BRAND/MODEL")
            model: Raw model
            category_hint: Optional partition hint

        Returns:
            BrandModelNormalization
        """
        final_brand = clean_text(brand) or None
        final_model = clean_text(model) or None
        was_separated = False
        was_normalized = False

        if final_brand and not final_model:
            separated = separate_combined_brand_model(final_brand)
            if separated:
                final_brand, final_model = separated.brand, separated.model
                was_separated = True

        if final_brand and is_banned_brand_name(final_brand):
            final_brand = None

        if final_brand and "/" in final_brand:
            separated = separate_combined_brand_model(final_brand)
            if separated:
                final_brand = separated.brand
                final_model = final_model or separated.model
                was_separated = True

        if final_brand and (
            is_only_numbers(final_brand)
            or is_part(final_brand)
            or is_invalid_brand_word(final_brand)
            or is_banned_brand_name(final_brand)
        ):
            final_brand = None

        brand_resolution = None
        if final_brand:
            brand_resolution = self.resolve_brand(final_brand, category_hint)
            if brand_resolution.canonical_brand != final_brand:
                was_normalized = True
            final_brand = brand_resolution.canonical_brand or None

        variant = ""
        model_record = None
        if final_model and final_brand:
            if is_only_numbers(final_model) or is_part(final_model):
                final_model = to_canonical_upper(final_model)
            else:
                model_resolution = self.resolve_model(
                    brand_resolution.record if brand_resolution else None, final_model
                )
                if model_resolution.canonical_model:
                    if model_resolution.canonical_model != final_model:
                        was_normalized = True
                    final_model = model_resolution.canonical_model
                    variant = model_resolution.variant
                    model_record = model_resolution.record
        elif final_model:
            final_model = to_canonical_upper(final_model)

        return BrandModelNormalization(
            brand=final_brand,
            model=final_model,
            variant=variant,
            is_valid=bool(final_brand) and bool(brand_resolution and brand_resolution.matched),
            was_separated=was_separated,
            was_normalized=was_normalized,
            brand_record=brand_resolution.record if brand_resolution else None,
            model_record=model_record,
        )
