"""
Browser fetching for auction sites.

Every target site is reached through a Playwright Chromium context; see
browser_session.BrowserSession.
"""

from .browser_session import BrowserSession, classify_playwright_error

__all__ = [
    "BrowserSession",
    "classify_playwright_error",
]
