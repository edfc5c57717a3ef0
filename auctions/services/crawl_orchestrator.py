"""
Crawl Orchestrator.

Discovers the currently relevant lots of one auction house through a
BrowserSession and a site adapter.

Strategies:
    HTML pagination (HtmlListingSite):
        Numbered listing pages or infinite-scroll steps, once per static
        filter combination.

    Structured query API (QueryApiSite):
        Paged JSON queries. Page 1 requests facet counts; when a filter
        combination holds more results than the page ceiling can reach, the
        query is replayed once per value of the next facet field.

Rules:
    - Dedup on external_id across the whole run (process-local set)
    - Lots whose auction date is before today are dropped; undated lots kept
    - Per combination, stop on: zero lots, a short page, a terminal marker,
      two consecutive duplicate pages (HTML), or the page ceiling
    - Randomized politeness delay between network operations
    - Each page is retried, then skipped and reported as a PageFailure

Usage:
    async with BrowserSession() as session:
        outcome = await CrawlOrchestrator(site, session).crawl()
"""

import asyncio
import logging
import random
import traceback
from collections import deque
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from django.conf import settings
from django.utils import timezone

from auctions.exceptions import BrowserStartupError, PageFetchError
from auctions.monitoring import add_crawl_breadcrumb
from auctions.services.lot_transformer import CanonicalLot, transform_raw_lot
from auctions.sites.base import AuctionSite, HtmlListingSite, QueryApiSite, filter_signature

logger = logging.getLogger(__name__)

CONSECUTIVE_DUPLICATE_PAGES = 2


@dataclass
class PageFailure:
    """A page or query that failed after every retry."""

    url: str
    error_type: str
    message: str
    stack_trace: str = ""


@dataclass
class CrawlOutcome:
    """Everything one house crawl discovered."""

    lots: List[CanonicalLot] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    failures: List[PageFailure] = field(default_factory=list)
    pages_fetched: int = 0
    filters_visited: List[str] = field(default_factory=list)


@dataclass
class PageResult:
    """Per-page acceptance counts."""

    titles: List[str] = field(default_factory=list)
    new_lots: int = 0
    kept_lots: int = 0


class CrawlOrchestrator:
    """
    Drives one site adapter over one browser session.

    Args:
        site: HtmlListingSite or QueryApiSite adapter
        session: Started BrowserSession (or any object with the same methods)
        politeness_delay_ms: (min, max) delay between network operations
        max_retries: Retries per page after the first attempt
        today: Reference date for the auction-date cutoff
    """

    def __init__(
        self,
        site: AuctionSite,
        session,
        politeness_delay_ms: Optional[Tuple[int, int]] = None,
        max_retries: Optional[int] = None,
        today: Optional[date] = None,
    ):
        self.site = site
        self.session = session
        self.politeness_delay_ms = (
            politeness_delay_ms
            if politeness_delay_ms is not None
            else getattr(settings, "AUCTIONS_POLITENESS_DELAY_MS", (150, 800))
        )
        self.max_retries = (
            max_retries
            if max_retries is not None
            else getattr(settings, "AUCTIONS_PAGE_MAX_RETRIES", 2)
        )
        self.today = today or timezone.localdate()

        self._seen_ids: Set[str] = set()
        self._visited: Set[str] = set()
        self._operations = 0
        self.outcome = CrawlOutcome()

    async def crawl(self) -> CrawlOutcome:
        """
        Run the site's discovery strategy.

        Raises:
            BrowserStartupError: the browser died; fatal for this house only
        """
        logger.info(f"[{self.site.name}] Starting crawl (today={self.today.isoformat()})")

        if isinstance(self.site, QueryApiSite):
            await self._crawl_query_api()
        elif isinstance(self.site, HtmlListingSite):
            await self._crawl_html()
        else:
            raise TypeError(f"Unsupported site adapter: {self.site!r}")

        logger.info(
            f"[{self.site.name}] Crawl finished: {len(self.outcome.lots)} lots, "
            f"{self.outcome.pages_fetched} pages, {len(self.outcome.failures)} failed pages, "
            f"{len(self.outcome.filters_visited)} filter combinations"
        )
        return self.outcome

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------

    async def _polite_pause(self):
        low, high = self.politeness_delay_ms
        if high <= 0:
            return
        await asyncio.sleep(random.uniform(low, high) / 1000)

    async def _fetch(self, url: str, operation: Callable[[], Awaitable[Any]]) -> Optional[Any]:
        """
        Run one network operation with politeness and retries.

        Returns:
            The operation result, or None when every attempt failed
        """
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        last_trace = ""

        for attempt in range(1, attempts + 1):
            if self._operations > 0:
                await self._polite_pause()
            self._operations += 1

            try:
                return await operation()
            except BrowserStartupError:
                raise
            except PageFetchError as e:
                last_error, last_trace = e, traceback.format_exc()
                logger.warning(
                    f"[{self.site.name}] Attempt {attempt}/{attempts} failed for {url}: {e}"
                )
            except Exception as e:
                last_error, last_trace = e, traceback.format_exc()
                logger.warning(
                    f"[{self.site.name}] Unexpected error on attempt {attempt}/{attempts} "
                    f"for {url}: {e}"
                )

        error_type = getattr(last_error, "error_type", "unknown")
        message = str(last_error)
        self.outcome.failures.append(PageFailure(url, error_type, message, last_trace))
        self.outcome.errors.append(f"{url}: {message}")
        add_crawl_breadcrumb(
            source_name=self.site.name,
            url=url,
            message=f"Page skipped after {attempts} attempts: {message}",
            level="warning",
            extra_data={"error_type": error_type},
        )
        logger.warning(f"[{self.site.name}] Skipping {url} after {attempts} attempts")
        return None

    # ------------------------------------------------------------------
    # Lot acceptance
    # ------------------------------------------------------------------

    def _accept(self, raw_lots: List[Dict[str, Any]], hints: Dict[str, Any]) -> PageResult:
        result = PageResult()

        for raw in raw_lots:
            if not self.site.is_relevant(raw):
                continue

            payload = {**hints, **raw} if hints else raw
            lot = transform_raw_lot(payload, self.site, self.today)
            if lot is None:
                continue

            result.titles.append(lot.title)

            if lot.auction_date is not None and lot.auction_date < self.today:
                logger.debug(
                    f"[{self.site.name}] Past auction {lot.external_id} ({lot.auction_date})"
                )
                continue

            result.kept_lots += 1
            if lot.external_id in self._seen_ids:
                continue

            self._seen_ids.add(lot.external_id)
            self.outcome.lots.append(lot)
            result.new_lots += 1

        return result

    def _enter_combination(self, filters: Dict[str, Any]) -> bool:
        signature = filter_signature(filters)
        if signature in self._visited:
            return False
        self._visited.add(signature)
        self.outcome.filters_visited.append(signature)
        return True

    # ------------------------------------------------------------------
    # HTML pagination
    # ------------------------------------------------------------------

    async def _crawl_html(self):
        site: HtmlListingSite = self.site

        for filters in site.static_filters or [{}]:
            if not self._enter_combination(filters):
                continue
            await self._crawl_html_combination(site, filters)

    async def _crawl_html_combination(self, site: HtmlListingSite, filters: Dict[str, Any]):
        hints = site.filter_hints(filters)
        seen_titles: Set[str] = set()
        duplicate_pages = 0
        label = filter_signature(filters) or "default"

        for page in range(1, site.max_pages + 1):
            url = site.build_page_url(filters, 1 if site.infinite_scroll else page)

            if site.infinite_scroll and page > 1:
                html = await self._fetch(url, self.session.scroll_and_capture)
            else:
                html = await self._fetch(
                    url, lambda: self.session.fetch_html(url, wait_selector=site.wait_selector)
                )

            if html is None:
                # Scroll state is lost with the page; numbered pages can go on
                if page == 1 or site.infinite_scroll:
                    break
                continue

            self.outcome.pages_fetched += 1
            raw_lots = site.parse_listing(html)
            if not raw_lots:
                logger.info(f"[{site.name}] [{label}] Page {page}: no lots, stopping")
                break

            result = self._accept(raw_lots, hints)
            logger.info(
                f"[{site.name}] [{label}] Page {page}: {len(raw_lots)} lots, "
                f"{result.new_lots} new"
            )

            if result.titles:
                repeated = sum(1 for title in result.titles if title in seen_titles)
                ratio = repeated / len(result.titles)
                seen_titles.update(result.titles)
                duplicate_pages = duplicate_pages + 1 if ratio >= site.duplicate_page_threshold else 0
                if duplicate_pages >= CONSECUTIVE_DUPLICATE_PAGES:
                    logger.info(f"[{site.name}] [{label}] Repeated pages, stopping")
                    break

            if site.is_terminal_page(html):
                logger.info(f"[{site.name}] [{label}] Terminal marker on page {page}")
                break

            if site.page_size and len(raw_lots) < site.page_size:
                break

            if (
                site.stop_when_no_future_after_page
                and page >= site.stop_when_no_future_after_page
                and result.kept_lots == 0
            ):
                logger.info(f"[{site.name}] [{label}] No future lots on page {page}, stopping")
                break

    # ------------------------------------------------------------------
    # Query API with facet replay
    # ------------------------------------------------------------------

    async def _crawl_query_api(self):
        site: QueryApiSite = self.site
        reach = (site.page_size or 0) * site.max_pages
        queue = deque([({}, 0)])

        while queue:
            filters, facet_index = queue.popleft()
            if not self._enter_combination(filters):
                continue

            label = filter_signature(filters) or "default"

            for page in range(1, site.max_pages + 1):
                include_facets = page == 1 and facet_index < len(site.facet_fields)
                url = site.build_query_url(filters, page, include_facets)
                payload = await self._fetch(url, lambda: self.session.fetch_json(url))

                if payload is None:
                    if page == 1:
                        logger.warning(f"[{site.name}] [{label}] Abandoning combination")
                        break
                    continue

                self.outcome.pages_fetched += 1
                query_page = site.parse_query_response(payload)

                if include_facets and (query_page.total is None or query_page.total > reach):
                    field_name = site.facet_fields[facet_index]
                    values = site.facet_values(query_page.facets, field_name)
                    for value in values:
                        queue.append(({**filters, field_name: value}, facet_index + 1))
                    if values:
                        logger.info(
                            f"[{site.name}] [{label}] {query_page.total} results, "
                            f"replaying over {len(values)} values of {field_name}"
                        )

                if not query_page.raw_lots:
                    break

                result = self._accept(query_page.raw_lots, site.filter_hints(filters))
                logger.info(
                    f"[{site.name}] [{label}] Page {page}: {len(query_page.raw_lots)} lots, "
                    f"{result.new_lots} new"
                )

                if site.page_size and len(query_page.raw_lots) < site.page_size:
                    break
                if query_page.total is not None and page * (site.page_size or 0) >= query_page.total:
                    break
