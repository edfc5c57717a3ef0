"""
Pytest configuration and fixtures for the Auction Lot Crawler test suite.
"""

import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and create the tables."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def user(db):
    """A regular authenticated user."""
    from django.contrib.auth.models import User

    return User.objects.create_user(username="analyst", password="secret")


@pytest.fixture
def admin_user(db):
    """A staff user allowed to trigger crawls."""
    from django.contrib.auth.models import User

    return User.objects.create_user(username="ops", password="secret", is_staff=True)


@pytest.fixture
def auction_house(db):
    """Create the Sodré Santoro auction house."""
    from auctions.models import AuctionHouse

    return AuctionHouse.objects.create(
        name="Sodré Santoro",
        slug="sodre-santoro",
        website_url="https://www.sodresantoro.com.br",
    )


@pytest.fixture
def crawl_runs(auction_house):
    """One successful and one failed run, the failed one newest."""
    from datetime import timedelta

    from django.utils import timezone

    from auctions.models import CrawlRun

    now = timezone.now()
    success = CrawlRun.objects.create(
        auction_house=auction_house,
        auctioneer="Sodré Santoro",
        status="success",
        lots_scraped=120,
        lots_created=30,
        lots_updated=90,
        started_at=now - timedelta(hours=7),
        completed_at=now - timedelta(hours=6),
    )
    failed = CrawlRun.objects.create(
        auctioneer="Superbid",
        status="error",
        errors_count=1,
        error_message="Executable doesn't exist",
        started_at=now - timedelta(minutes=5),
        completed_at=now - timedelta(minutes=4),
    )
    return success, failed
