"""
Persistence/Upsert Orchestrator.

Runs one auction house end to end:

1. Resolve the AuctionHouse row (exact name, then candidate slugs, then
   create it)
2. Crawl the site inside a browser session (fresh event loop)
3. For each lot: normalize brand/model, classify the vehicle type, look up
   the reference price, compute discount and deal score, upsert on
   (auction_house, external_id) and replace the image set
4. Mark the house as crawled and write the CrawlRun audit row

Page failures from the crawl become CrawlError rows. A failing lot is
counted in the run errors and the remaining lots are still processed. A
browser that cannot start fails the house run, which is still recorded.

Usage:
    orchestrator = LotPersistenceOrchestrator.from_settings()
    result = orchestrator.run(SodreSantoroSite())
"""

import asyncio
import logging
import time
import traceback
from dataclasses import asdict, dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from auctions.exceptions import BrowserStartupError
from auctions.fetchers import BrowserSession
from auctions.models import AuctionHouse, CrawlRun, ErrorType, Lot, LotImage
from auctions.monitoring import create_crawl_error_record, log_error_with_context
from auctions.scoring import get_deal_score_function
from auctions.services.brand_model_normalizer import BrandModelNormalizer
from auctions.services.crawl_orchestrator import CrawlOrchestrator, CrawlOutcome
from auctions.services.lot_transformer import CanonicalLot
from auctions.services.taxonomy import TaxonomyCache, get_taxonomy_cache
from auctions.services.vehicle_classifier import VehicleTypeClassifier
from auctions.sites.base import AuctionSite
from auctions.utils.text import to_canonical_upper

logger = logging.getLogger(__name__)

MAX_DISCOUNT = Decimal("100")
MIN_DISCOUNT = Decimal("-9999.99")

# Lot fields recomputed by renormalize_lot
RENORMALIZED_FIELDS = (
    "brand",
    "model",
    "version",
    "vehicle_type",
    "classification_confidence",
    "reference_price",
    "discount_percentage",
    "deal_score",
)


@dataclass
class CrawlRunResult:
    """Outcome of one house run; persisted once as a CrawlRun row."""

    auctioneer: str
    success: bool = False
    lots_scraped: int = 0
    lots_created: int = 0
    lots_updated: int = 0
    errors: List[str] = field(default_factory=list)
    duration: float = 0.0
    pages_fetched: int = 0
    filters_visited: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_discount(reference_price: Optional[Decimal], bid: Optional[Decimal]) -> Optional[Decimal]:
    """
    Discount of the bid against the reference price, in percent.

    Returns None without a positive reference price or a bid. Bids above the
    reference give a negative discount.
    """
    if not reference_price or reference_price <= 0 or bid is None:
        return None

    discount = (reference_price - bid) / reference_price * 100
    discount = discount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return min(max(discount, MIN_DISCOUNT), MAX_DISCOUNT)


class LotPersistenceOrchestrator:
    """
    Crawl one house and upsert its lots.

    Args:
        normalizer: BrandModelNormalizer bound to the taxonomy cache
        classifier: VehicleTypeClassifier bound to the taxonomy cache
        deal_score_fn: score(discount_pct, year, mileage, auction_type, has_financing)
        taxonomy: TaxonomyCache used for reference prices
        session_factory: Callable returning an async-context-manager session
    """

    def __init__(
        self,
        normalizer: BrandModelNormalizer,
        classifier: VehicleTypeClassifier,
        deal_score_fn: Callable[..., Any],
        taxonomy: TaxonomyCache,
        session_factory: Callable[[], Any] = BrowserSession,
    ):
        self.normalizer = normalizer
        self.classifier = classifier
        self.deal_score_fn = deal_score_fn
        self.taxonomy = taxonomy
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls, taxonomy: Optional[TaxonomyCache] = None) -> "LotPersistenceOrchestrator":
        """Build with the process taxonomy cache and the configured deal score."""
        taxonomy = taxonomy or get_taxonomy_cache()
        return cls(
            normalizer=BrandModelNormalizer(taxonomy),
            classifier=VehicleTypeClassifier(taxonomy),
            deal_score_fn=get_deal_score_function(),
            taxonomy=taxonomy,
        )

    # ------------------------------------------------------------------
    # House run
    # ------------------------------------------------------------------

    def run(self, site: AuctionSite, session_factory: Optional[Callable[[], Any]] = None) -> CrawlRunResult:
        """
        Run one auction house.

        Never raises for crawl or lot failures; they end up in the returned
        result and in the CrawlRun row.
        """
        started = time.monotonic()
        result = CrawlRunResult(auctioneer=site.name)
        house = None

        logger.info(f"[{site.name}] Starting house run")

        try:
            house = self.resolve_auction_house(site)

            outcome = self.crawl_site(site, session_factory or self.session_factory)
            result.lots_scraped = len(outcome.lots)
            result.pages_fetched = outcome.pages_fetched
            result.filters_visited = list(outcome.filters_visited)
            result.errors.extend(outcome.errors)

            for failure in outcome.failures:
                create_crawl_error_record(
                    auction_house=house,
                    url=failure.url,
                    error_type=failure.error_type,
                    message=failure.message,
                    stack_trace=failure.stack_trace,
                )

            self.persist_lots(house, outcome.lots, result)

            house.mark_crawled()
            result.success = True

        except BrowserStartupError as e:
            logger.error(f"[{site.name}] Browser failed to start")
            result.errors.append(str(e))
            log_error_with_context(e, house, url=site.base_url, error_type=ErrorType.BROWSER)

        except Exception as e:
            logger.error(f"[{site.name}] House run failed", exc_info=True)
            result.errors.append(str(e))
            log_error_with_context(e, house, url=site.base_url, error_type=ErrorType.UNKNOWN)

        result.duration = time.monotonic() - started

        CrawlRun.record(result, auction_house=house)

        logger.info(
            f"[{site.name}] House run {'succeeded' if result.success else 'failed'}: "
            f"{result.lots_scraped} scraped, {result.lots_created} created, "
            f"{result.lots_updated} updated, {len(result.errors)} errors "
            f"in {result.duration:.1f}s"
        )
        return result

    def resolve_auction_house(self, site: AuctionSite) -> AuctionHouse:
        """Exact name, then any candidate slug, then auto-create."""
        house = AuctionHouse.objects.filter(name=site.name).first()
        if house:
            return house

        slugs = site.candidate_slugs
        house = (
            AuctionHouse.objects.filter(Q(slug__in=slugs) | Q(name__iexact=site.name))
            .order_by("created_at")
            .first()
        )
        if house:
            logger.debug(f"[{site.name}] Resolved auction house by slug: {house.slug}")
            return house

        house = AuctionHouse.objects.create(
            name=site.name,
            slug=site.slug or slugs[0],
            website_url=site.base_url,
        )
        logger.info(f"[{site.name}] Created auction house {house.slug}")
        return house

    def crawl_site(self, site: AuctionSite, session_factory: Callable[[], Any]) -> CrawlOutcome:
        """Run the async crawl to completion in a fresh event loop."""

        async def crawl():
            async with session_factory() as session:
                return await CrawlOrchestrator(site, session).crawl()

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(crawl())
        finally:
            loop.close()
            asyncio.set_event_loop(None)

    # ------------------------------------------------------------------
    # Lots
    # ------------------------------------------------------------------

    def persist_lots(self, house: AuctionHouse, lots: List[CanonicalLot], result: CrawlRunResult) -> None:
        """Upsert every lot, collecting per-lot failures in ``result.errors``."""
        for lot in lots:
            try:
                created = self.upsert_lot(house, lot)
            except Exception as e:
                message = f"{lot.external_id}: {e}"
                logger.warning(f"[{house.name}] Failed to persist lot {message}")
                result.errors.append(message)
                create_crawl_error_record(
                    auction_house=house,
                    url=lot.original_url,
                    error_type=ErrorType.PERSISTENCE,
                    message=message,
                    stack_trace=traceback.format_exc(),
                )
                continue

            if created:
                result.lots_created += 1
            else:
                result.lots_updated += 1

    def build_lot_fields(self, lot: CanonicalLot) -> Dict[str, Any]:
        """Normalize, classify and score one lot into Lot model fields."""
        normalization = self.normalizer.normalize_lot_brand_model(
            lot.raw_brand, lot.raw_model, lot.vehicle_type_hint
        )
        brand = normalization.brand or ""
        model = normalization.model or (to_canonical_upper(lot.raw_model) if brand else "")

        bid = lot.current_bid if lot.current_bid is not None else lot.minimum_bid
        classification = self.classifier.classify(
            lot.title,
            brand or lot.raw_brand,
            model or lot.raw_model,
            fuel_type=lot.fuel_type,
            mileage=lot.mileage,
            price=bid,
        )

        # A brand found in several partitions is searched again in the classified one
        resolved_category = getattr(normalization.brand_record, "category", None)
        if (
            classification.type != resolved_category
            and classification.type in self.taxonomy.categories
            and lot.raw_brand
        ):
            retry = self.normalizer.normalize_lot_brand_model(
                lot.raw_brand, lot.raw_model, classification.type
            )
            if retry.brand_record is not None:
                normalization = retry
                brand = retry.brand or brand
                model = retry.model or model

        year = lot.year_model or lot.year_manufacture
        reference_price = self.taxonomy.get_reference_price(normalization.model_record, year)
        discount = calculate_discount(reference_price, bid)

        deal_score = self.deal_score_fn(
            float(discount) if discount is not None else 0,
            year or timezone.localdate().year,
            lot.mileage or 0,
            lot.auction_type or "online",
            lot.has_financing or False,
        )

        return {
            "lot_number": lot.lot_number[:50],
            "title": lot.title,
            "raw_brand": lot.raw_brand[:100],
            "raw_model": lot.raw_model[:200],
            "brand": brand[:100],
            "model": model[:200],
            "version": (normalization.variant or "")[:200],
            "year_manufacture": lot.year_manufacture,
            "year_model": lot.year_model,
            "vehicle_type": classification.type,
            "classification_confidence": classification.confidence,
            "color": lot.color[:30],
            "fuel_type": lot.fuel_type[:30],
            "transmission": lot.transmission[:30],
            "mileage": lot.mileage,
            "license_plate": lot.license_plate[:20],
            "condition": lot.condition[:100],
            "state": lot.state or "",
            "city": (lot.city or "")[:100],
            "current_bid": lot.current_bid,
            "minimum_bid": lot.minimum_bid,
            "appraised_value": lot.appraised_value,
            "reference_price": reference_price,
            "discount_percentage": discount,
            "deal_score": int(deal_score) if deal_score is not None else None,
            "auction_date": lot.auction_date,
            "auction_type": lot.auction_type,
            "has_financing": lot.has_financing,
            "original_url": lot.original_url,
            "thumbnail_url": lot.thumbnail_url,
            "description": lot.description,
            "last_seen_at": timezone.now(),
        }

    def upsert_lot(self, house: AuctionHouse, lot: CanonicalLot) -> bool:
        """
        Insert or update one lot and replace its images.

        Returns:
            True when the row was created
        """
        fields = self.build_lot_fields(lot)

        with transaction.atomic():
            record, created = Lot.objects.update_or_create(
                auction_house=house,
                external_id=lot.external_id,
                defaults=fields,
            )
            self.replace_images(record, lot.images)

        logger.debug(
            f"[{house.name}] {'Created' if created else 'Updated'} lot {lot.external_id} "
            f"({record.brand} {record.model}, {record.vehicle_type})"
        )
        return created

    @staticmethod
    def replace_images(record: Lot, urls: List[str]) -> Tuple[int, int]:
        """Delete every image of the lot, then insert ``urls`` in order."""
        deleted, _ = record.images.all().delete()

        unique_urls = list(dict.fromkeys(url for url in urls if url))
        LotImage.objects.bulk_create(
            [
                LotImage(lot=record, url=url, is_primary=index == 0, display_order=index)
                for index, url in enumerate(unique_urls)
            ]
        )
        return deleted, len(unique_urls)

    # ------------------------------------------------------------------
    # Re-normalization of stored lots
    # ------------------------------------------------------------------

    def renormalize_lot(self, record: Lot) -> Dict[str, Any]:
        """
        Run the normalizer and classifier again over a stored lot.

        Returns:
            The fields whose value changed, already set on ``record``
            but not saved
        """
        lot = CanonicalLot(
            external_id=record.external_id,
            title=record.title,
            raw_brand=record.raw_brand or record.brand,
            raw_model=record.raw_model or record.model,
            year_manufacture=record.year_manufacture,
            year_model=record.year_model,
            fuel_type=record.fuel_type,
            mileage=record.mileage,
            current_bid=record.current_bid,
            minimum_bid=record.minimum_bid,
            auction_type=record.auction_type or "online",
            has_financing=record.has_financing,
        )
        fields = self.build_lot_fields(lot)

        changes = {}
        for name in RENORMALIZED_FIELDS:
            if getattr(record, name) != fields[name]:
                changes[name] = fields[name]
                setattr(record, name, fields[name])
        return changes
