"""
Batch runner.

Crawls auction houses one at a time with a pause between houses. One house
failing never stops the batch; the returned summary has an explicit
success flag and error list per house.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings

from auctions.models import AuctionHouse
from auctions.services.lot_persistence import CrawlRunResult, LotPersistenceOrchestrator
from auctions.sites import select_sites

logger = logging.getLogger(__name__)


def enabled_house_names() -> List[str]:
    """AUCTIONS_ENABLED_HOUSES as a list; empty means every house."""
    configured = getattr(settings, "AUCTIONS_ENABLED_HOUSES", "") or ""
    if isinstance(configured, str):
        configured = configured.split(",")
    return [name.strip() for name in configured if name and name.strip()]


def _is_disabled(site) -> bool:
    return AuctionHouse.objects.filter(slug__in=site.candidate_slugs, is_active=False).exists()


def run_batch(
    houses: Optional[Iterable[str]] = None,
    orchestrator: Optional[LotPersistenceOrchestrator] = None,
    inter_house_delay: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Crawl the selected houses sequentially.

    Args:
        houses: Slugs/aliases to crawl; AUCTIONS_ENABLED_HOUSES when None
        orchestrator: Persistence orchestrator (built from settings when None)
        inter_house_delay: Seconds between houses (AUCTIONS_INTER_HOUSE_DELAY)

    Returns:
        Summary dict with per-house results and totals
    """
    wanted = list(houses) if houses else enabled_house_names()
    sites = [site for site in select_sites(wanted) if not _is_disabled(site)]
    delay = (
        inter_house_delay
        if inter_house_delay is not None
        else getattr(settings, "AUCTIONS_INTER_HOUSE_DELAY", 5.0)
    )

    if not sites:
        logger.warning(f"No auction houses selected (requested: {wanted or 'all'})")
        return {"success": False, "houses": [], "total_scraped": 0, "total_created": 0, "total_updated": 0}

    orchestrator = orchestrator or LotPersistenceOrchestrator.from_settings()
    results: List[CrawlRunResult] = []

    logger.info(f"Starting batch for {len(sites)} auction houses: {', '.join(s.name for s in sites)}")

    for index, site in enumerate(sites):
        if index > 0 and delay > 0:
            time.sleep(delay)

        try:
            result = orchestrator.run(site)
        except Exception as e:
            logger.error(f"[{site.name}] Unexpected batch failure: {e}", exc_info=True)
            result = CrawlRunResult(auctioneer=site.name, success=False, errors=[str(e)])

        results.append(result)

    summary = {
        "success": all(result.success for result in results),
        "houses": [result.to_dict() for result in results],
        "total_scraped": sum(result.lots_scraped for result in results),
        "total_created": sum(result.lots_created for result in results),
        "total_updated": sum(result.lots_updated for result in results),
    }

    logger.info(
        f"Batch finished: {summary['total_scraped']} scraped, {summary['total_created']} created, "
        f"{summary['total_updated']} updated, "
        f"{sum(1 for result in results if not result.success)} failed houses"
    )
    return summary
