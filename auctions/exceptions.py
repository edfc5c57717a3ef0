"""
Exceptions raised by the crawl pipeline.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawl pipeline errors."""


class BrowserStartupError(CrawlerError):
    """The headless browser could not be launched. Fatal for one house run."""


class PageFetchError(CrawlerError):
    """
    A single navigation or browser-context request failed.

    Recoverable: the orchestrator retries and then skips the page.
    """

    def __init__(self, message: str, url: str = "", error_type: str = "navigation",
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.error_type = error_type
        self.status_code = status_code
