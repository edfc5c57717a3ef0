"""
Celery tasks for the auction crawler.

- crawl_all_auction_houses: Periodic batch over every enabled house (beat, every 6 hours)
- crawl_auction_house: Crawl one house by slug or alias
- sync_taxonomy: Refresh the reference taxonomy from the FIPE API
"""

import logging
from typing import Any, Dict, List, Optional

from celery import shared_task

from auctions.services.crawl_batch import run_batch
from auctions.services.lot_persistence import CrawlRunResult, LotPersistenceOrchestrator
from auctions.sites import get_site

logger = logging.getLogger(__name__)


@shared_task(name="auctions.tasks.crawl_all_auction_houses")
def crawl_all_auction_houses(houses: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Crawl every enabled auction house, one at a time.

    Args:
        houses: Optional slugs/aliases; AUCTIONS_ENABLED_HOUSES when omitted

    Returns:
        Batch summary with per-house results
    """
    logger.info(f"Starting scheduled auction crawl (houses={houses or 'enabled'})")
    return run_batch(houses)


@shared_task(name="auctions.tasks.crawl_auction_house", bind=True)
def crawl_auction_house(self, slug: str) -> Dict[str, Any]:
    """
    Crawl a single auction house.

    Args:
        slug: Site slug, alias or name

    Returns:
        CrawlRunResult as a dict
    """
    site = get_site(slug)
    if site is None:
        logger.error(f"Unknown auction house: {slug}")
        return CrawlRunResult(auctioneer=slug, success=False, errors=[f"Unknown auction house: {slug}"]).to_dict()

    logger.info(f"Task {self.request.id}: crawling {site.name}")
    result = LotPersistenceOrchestrator.from_settings().run(site)
    return result.to_dict()


@shared_task(name="auctions.tasks.sync_taxonomy")
def sync_taxonomy(categories: Optional[List[str]] = None, skip_prices: bool = False) -> Dict[str, Any]:
    """Refresh the reference taxonomy from the FIPE API."""
    from auctions.services.taxonomy_sync import FipeClient, SyncOptions, TaxonomySync

    options = SyncOptions(skip_prices=skip_prices)
    with FipeClient() as client:
        stats = TaxonomySync(client).sync(categories, options)

    return {
        "categories": stats.categories,
        "brands": stats.brands,
        "models": stats.models,
        "years": stats.years,
        "prices": stats.prices,
        "errors": options.errors,
    }
