"""
Site adapter registry.

Usage:
    from auctions.sites import get_site, select_sites

    site = get_site("sodre-santoro")
    sites = select_sites(["superbid", "freitas"])
"""

from typing import Iterable, List, Optional

from .base import AuctionSite, HtmlListingSite, QueryApiSite, QueryPage, filter_signature
from .freitas import FreitasSite
from .sodre_santoro import SodreSantoroSite
from .superbid import SuperbidSite

SITE_CLASSES = [SuperbidSite, SodreSantoroSite, FreitasSite]


def get_all_sites() -> List[AuctionSite]:
    """One adapter instance per supported auction house, in crawl order."""
    return [site_class() for site_class in SITE_CLASSES]


def get_site(name: str) -> Optional[AuctionSite]:
    """Adapter matching a slug, alias or display name, or None."""
    for site in get_all_sites():
        if site.matches(name):
            return site
    return None


def select_sites(wanted: Optional[Iterable[str]] = None) -> List[AuctionSite]:
    """
    Adapters filtered by slugs/aliases; all adapters when ``wanted`` is empty.

    Unknown names are ignored.
    """
    names = [name.strip() for name in (wanted or []) if name and name.strip()]
    sites = get_all_sites()
    if not names:
        return sites
    return [site for site in sites if any(site.matches(name) for name in names)]


__all__ = [
    "AuctionSite",
    "HtmlListingSite",
    "QueryApiSite",
    "QueryPage",
    "filter_signature",
    "SuperbidSite",
    "SodreSantoroSite",
    "FreitasSite",
    "get_all_sites",
    "get_site",
    "select_sites",
]
