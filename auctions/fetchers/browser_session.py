"""
Headless browser session - Playwright Chromium.

One session is owned by one house crawl: a single browser, context and page
used sequentially for HTML navigation, infinite scrolling and JSON queries
issued through the browser context (so site cookies and anti-bot checks
apply to the API calls too).

Failures:
    - Launch failures raise BrowserStartupError (fatal for the house run)
    - Navigation/request failures raise PageFetchError (recoverable)
"""

import asyncio
import logging
from typing import Any, Optional

from django.conf import settings

from auctions.exceptions import BrowserStartupError, PageFetchError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]

VIEWPORT = {"width": 1920, "height": 1080}


def classify_playwright_error(error: Exception) -> str:
    """Map a Playwright/asyncio exception to a CrawlError type."""
    message = str(error)
    if "Timeout" in type(error).__name__ or "Timeout" in message:
        return "timeout"
    if "net::ERR" in message or "ECONNREFUSED" in message or "ECONNRESET" in message:
        return "connection"
    return "navigation"


class BrowserSession:
    """
    Playwright browser session for one auction house.

    Usage:
        async with BrowserSession() as session:
            html = await session.fetch_html(url, wait_selector=".card")
            payload = await session.fetch_json(api_url)
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        timeout: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize the session (nothing is launched until start()).

        Args:
            headless: Run Chromium headless (AUCTIONS_HEADLESS by default)
            timeout: Navigation/request timeout in seconds
            user_agent: User agent of the browser context
        """
        self.headless = (
            headless if headless is not None else getattr(settings, "AUCTIONS_HEADLESS", True)
        )
        self.timeout = timeout or getattr(settings, "AUCTIONS_NAVIGATION_TIMEOUT", 30)
        self.user_agent = user_agent

        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @property
    def timeout_ms(self) -> float:
        return self.timeout * 1000

    async def start(self):
        """Launch Chromium and open the working page."""
        if self._page is not None:
            return

        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport=VIEWPORT,
                locale="pt-BR",
            )
            self._page = await self._context.new_page()
            self._page.set_default_timeout(self.timeout_ms)
            logger.info("Playwright browser session started")

        except ImportError as e:
            raise BrowserStartupError(
                "Playwright not installed. Install with: "
                "pip install playwright && playwright install chromium"
            ) from e
        except Exception as e:
            await self.close()
            raise BrowserStartupError(f"Failed to launch browser: {e}") from e

    async def close(self):
        """Close page, context, browser and Playwright, ignoring close errors."""
        for name in ("_page", "_context", "_browser"):
            resource = getattr(self, name)
            if resource is not None:
                try:
                    await resource.close()
                except Exception as e:
                    logger.debug(f"Error closing {name.strip('_')}: {e}")
                setattr(self, name, None)

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping Playwright: {e}")
            self._playwright = None

    def _require_page(self):
        if self._page is None:
            raise PageFetchError("Browser session not started", error_type="browser")
        return self._page

    async def fetch_html(
        self,
        url: str,
        wait_selector: Optional[str] = None,
        wait_until: str = "domcontentloaded",
    ) -> str:
        """
        Navigate to ``url`` and return the rendered HTML.

        Args:
            url: Page URL
            wait_selector: Optional CSS selector to wait for; a miss is not an
                error (the listing may simply be empty)
            wait_until: Playwright load state for goto()

        Raises:
            PageFetchError: navigation failed, timed out or returned >= 400
        """
        page = self._require_page()

        try:
            response = await page.goto(url, wait_until=wait_until, timeout=self.timeout_ms)
        except Exception as e:
            raise PageFetchError(
                f"Navigation failed: {e}", url=url, error_type=classify_playwright_error(e)
            ) from e

        if response is not None and response.status >= 400:
            raise PageFetchError(
                f"HTTP {response.status}",
                url=url,
                error_type="connection",
                status_code=response.status,
            )

        if wait_selector:
            try:
                await page.wait_for_selector(wait_selector, timeout=self.timeout_ms)
            except Exception as e:
                logger.debug(f"Selector {wait_selector} not found on {url}: {e}")

        return await page.content()

    async def scroll_and_capture(self, pause_ms: int = 1500) -> str:
        """
        Scroll to the bottom of the current page and return the new HTML.

        Used by infinite-scroll listings; each call is one "page".
        """
        page = self._require_page()
        try:
            await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            await asyncio.sleep(pause_ms / 1000)
            return await page.content()
        except Exception as e:
            raise PageFetchError(
                f"Scroll failed: {e}", url=page.url, error_type=classify_playwright_error(e)
            ) from e

    async def fetch_json(self, url: str, headers: Optional[dict] = None) -> Any:
        """
        GET a JSON endpoint through the browser context.

        Raises:
            PageFetchError: request failed, returned non-2xx or invalid JSON
        """
        page = self._require_page()

        try:
            response = await page.request.get(
                url,
                headers={"Accept": "application/json", **(headers or {})},
                timeout=self.timeout_ms,
            )
        except Exception as e:
            raise PageFetchError(
                f"Request failed: {e}", url=url, error_type=classify_playwright_error(e)
            ) from e

        if not response.ok:
            raise PageFetchError(
                f"HTTP {response.status}",
                url=url,
                error_type="connection",
                status_code=response.status,
            )

        try:
            return await response.json()
        except Exception as e:
            raise PageFetchError(f"Invalid JSON: {e}", url=url, error_type="parse") from e
