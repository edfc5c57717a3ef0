"""
Tests for the persistence/upsert orchestrator.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from auctions.exceptions import BrowserStartupError, PageFetchError
from auctions.models import AuctionHouse, CrawlError, CrawlRun, Lot
from auctions.scoring import calculate_deal_score
from auctions.services.lot_persistence import LotPersistenceOrchestrator, calculate_discount
from auctions.sites import SodreSantoroSite
from auctions.tests.fakes import FakeListingSite, FakeSession, listing_html

PAGE_1 = "https://leiloes.test/lotes?page=1"
PAGE_2 = "https://leiloes.test/lotes?page=2"

LISTING = listing_html(
    {
        "title": "CHEVROLET ONIX LT 1.0 2020/2020",
        "url": "/lote/1",
        "price": "R$ 42.000,00",
        "image": "https://img.test/onix.jpg",
    },
    {"title": "HONDA CB 300R 2020", "url": "/lote/2", "price": "R$ 9.000,00"},
)


def session_factory(pages=None):
    return lambda: FakeSession(pages=pages if pages is not None else {PAGE_1: LISTING})


def broken_browser():
    raise BrowserStartupError("Executable doesn't exist")


@pytest.fixture
def orchestrator(normalizer, classifier, taxonomy):
    return LotPersistenceOrchestrator(
        normalizer=normalizer,
        classifier=classifier,
        deal_score_fn=calculate_deal_score,
        taxonomy=taxonomy,
        session_factory=session_factory(),
    )


@pytest.mark.django_db
class TestHouseRun:
    """Tests for LotPersistenceOrchestrator.run."""

    def test_creates_enriched_lots(self, orchestrator):
        """Lots are normalized, classified, priced and scored."""
        result = orchestrator.run(FakeListingSite())

        assert result.success is True
        assert result.lots_scraped == 2
        assert result.lots_created == 2
        assert result.lots_updated == 0

        onix = Lot.objects.get(external_id="1")
        assert onix.brand == "CHEVROLET"
        assert onix.model == "ONIX"
        assert onix.vehicle_type == "car"
        assert onix.classification_confidence == 95
        assert onix.reference_price == Decimal("70000.00")
        assert onix.discount_percentage == Decimal("40.00")
        assert onix.deal_score == calculate_deal_score(40.0, 2020, 0, "online", False)
        assert (onix.state, onix.city) == ("SP", "São Paulo")
        assert onix.original_url == "https://leiloes.test/lote/1"
        assert [image.url for image in onix.images.all()] == ["https://img.test/onix.jpg"]
        assert onix.images.get().is_primary is True

        cb = Lot.objects.get(external_id="2")
        assert cb.vehicle_type == "motorcycle"
        assert cb.reference_price is None
        assert cb.discount_percentage is None

    def test_rerun_updates_in_place(self, orchestrator):
        """The second run updates the same rows."""
        orchestrator.run(FakeListingSite())
        result = orchestrator.run(FakeListingSite())

        assert result.lots_created == 0
        assert result.lots_updated == 2
        assert Lot.objects.count() == 2
        assert CrawlRun.objects.count() == 2

    def test_records_crawl_run(self, orchestrator):
        """Every run writes one audit row."""
        orchestrator.run(FakeListingSite())

        run = CrawlRun.objects.get()
        assert run.auctioneer == "Leilões Teste"
        assert run.status == "success"
        assert run.lots_created == 2
        assert run.auction_house.slug == "leiloes-teste"
        assert run.metadata["filters_visited"] == [""]
        assert AuctionHouse.objects.get().last_crawled_at is not None

    def test_page_failures_become_crawl_errors(self, orchestrator):
        """Skipped pages are stored with their error type."""
        pages = {
            PAGE_1: LISTING,
            PAGE_2: PageFetchError("Timeout 30000ms", url=PAGE_2, error_type="timeout"),
        }

        result = orchestrator.run(FakeListingSite(), session_factory(pages))

        assert result.success is True
        assert result.lots_created == 2
        error = CrawlError.objects.get()
        assert error.url == PAGE_2
        assert error.error_type == "timeout"

    def test_browser_startup_failure(self, orchestrator):
        """A browser that cannot start fails the run, which is still recorded."""
        result = orchestrator.run(FakeListingSite(), broken_browser)

        assert result.success is False
        assert "Executable doesn't exist" in result.errors
        assert CrawlRun.objects.get().status == "error"
        assert CrawlError.objects.get().error_type == "browser"
        assert Lot.objects.count() == 0

    def test_failing_lot_does_not_stop_the_run(self, orchestrator):
        """One lot failing is counted and the rest are persisted."""
        with patch.object(
            orchestrator, "upsert_lot", side_effect=[True, RuntimeError("disk full")]
        ):
            result = orchestrator.run(FakeListingSite())

        assert result.success is True
        assert result.lots_created == 1
        assert result.errors == ["2: disk full"]
        assert CrawlError.objects.get().error_type == "persistence"
        assert CrawlRun.objects.get().errors_count == 1

    def test_unexpected_failure_is_recorded(self, orchestrator):
        """Any other failure also fails the run and is stored as a CrawlError."""
        with patch.object(orchestrator, "crawl_site", side_effect=RuntimeError("boom")):
            result = orchestrator.run(FakeListingSite())

        assert result.success is False
        assert result.errors == ["boom"]
        assert CrawlRun.objects.get().status == "error"
        error = CrawlError.objects.get()
        assert error.error_type == "unknown"
        assert error.auction_house.slug == "leiloes-teste"
        assert "boom" in error.message

    def test_brand_resolved_in_classified_partition(self, orchestrator):
        """A motorcycle from a brand that also makes cars is priced as a motorcycle."""
        pages = {
            PAGE_1: listing_html(
                {"title": "HONDA CG 160 FAN 2022", "url": "/lote/3", "price": "R$ 9.000,00"}
            )
        }

        orchestrator.run(FakeListingSite(), session_factory(pages))

        cg = Lot.objects.get(external_id="3")
        assert cg.brand == "HONDA"
        assert cg.vehicle_type == "motorcycle"
        assert cg.reference_price == Decimal("15000.00")
        assert cg.discount_percentage == Decimal("40.00")


@pytest.mark.django_db
class TestResolveAuctionHouse:
    """Tests for auction house resolution."""

    def test_resolves_by_alias_slug(self, orchestrator):
        """Existing rows are found through any candidate slug."""
        existing = AuctionHouse.objects.create(name="Sodre Santoro Leiloes", slug="sodresantoro")

        assert orchestrator.resolve_auction_house(SodreSantoroSite()) == existing

    def test_exact_name_wins(self, orchestrator):
        """An exact name match is preferred over slugs."""
        AuctionHouse.objects.create(name="Other", slug="sodre-santoro")
        named = AuctionHouse.objects.create(name="Sodré Santoro", slug="sodre-2")

        assert orchestrator.resolve_auction_house(SodreSantoroSite()) == named

    def test_creates_missing_house(self, orchestrator):
        """Unknown houses are created from the adapter."""
        house = orchestrator.resolve_auction_house(FakeListingSite())

        assert house.slug == "leiloes-teste"
        assert house.website_url == "https://leiloes.test"
        assert house.is_active is True


@pytest.mark.django_db
class TestRenormalizeLot:
    """Tests for re-normalizing stored lots."""

    def test_reclassifies_and_reprices(self, orchestrator):
        """Stale brand/model/type fields are recomputed from the raw fields."""
        house = AuctionHouse.objects.create(name="Casa", slug="casa")
        lot = Lot.objects.create(
            auction_house=house,
            external_id="1",
            title="HONDA CG 160 FAN 2022",
            raw_brand="HONDA",
            raw_model="CG 160 FAN",
            brand="HONDA",
            model="CG 160 FAN",
            year_model=2022,
            vehicle_type="car",
            classification_confidence=50,
            current_bid=Decimal("9000.00"),
        )

        changes = orchestrator.renormalize_lot(lot)

        assert changes["vehicle_type"] == "motorcycle"
        assert changes["reference_price"] == Decimal("15000.00")
        assert changes["discount_percentage"] == Decimal("40.00")
        assert lot.vehicle_type == "motorcycle"
        lot.refresh_from_db()
        assert lot.vehicle_type == "car"

    def test_unchanged_lot(self, orchestrator):
        """A second pass over an up-to-date lot changes nothing."""
        house = AuctionHouse.objects.create(name="Casa", slug="casa")
        lot = Lot.objects.create(
            auction_house=house,
            external_id="1",
            title="CHEVROLET ONIX LT 1.0 2020/2020",
            raw_brand="CHEVROLET",
            raw_model="ONIX LT",
            year_model=2020,
            current_bid=Decimal("42000.00"),
        )
        orchestrator.renormalize_lot(lot)
        lot.save()
        lot.refresh_from_db()

        assert orchestrator.renormalize_lot(lot) == {}


@pytest.mark.django_db
class TestReplaceImages:
    """Tests for image replacement."""

    def test_dedup_and_order(self):
        """Duplicates and blanks are dropped; the first image is primary."""
        house = AuctionHouse.objects.create(name="Casa", slug="casa")
        lot = Lot.objects.create(auction_house=house, external_id="1", title="GOL")

        assert LotPersistenceOrchestrator.replace_images(
            lot, ["https://i.test/a.jpg", "https://i.test/a.jpg", "", "https://i.test/b.jpg"]
        ) == (0, 2)
        assert LotPersistenceOrchestrator.replace_images(lot, ["https://i.test/c.jpg"]) == (2, 1)

        images = list(lot.images.all())
        assert [image.url for image in images] == ["https://i.test/c.jpg"]
        assert images[0].is_primary is True


class TestCalculateDiscount:
    """Tests for calculate_discount."""

    def test_discount(self):
        assert calculate_discount(Decimal("70000"), Decimal("42000")) == Decimal("40.00")
        assert calculate_discount(Decimal("3"), Decimal("1")) == Decimal("66.67")

    def test_bid_above_reference_is_negative(self):
        assert calculate_discount(Decimal("100"), Decimal("150")) == Decimal("-50.00")

    def test_clamped(self):
        """Extreme values stay within the stored range."""
        assert calculate_discount(Decimal("1"), Decimal("100000")) == Decimal("-9999.99")
        assert calculate_discount(Decimal("100"), Decimal("-50")) == Decimal("100")

    @pytest.mark.parametrize(
        "reference, bid",
        [(None, Decimal("1")), (Decimal("0"), Decimal("1")), (Decimal("100"), None)],
    )
    def test_missing_inputs(self, reference, bid):
        assert calculate_discount(reference, bid) is None
