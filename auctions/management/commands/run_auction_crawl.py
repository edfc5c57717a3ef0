"""
Management command to crawl auction houses.

Usage:
    python manage.py run_auction_crawl
    python manage.py run_auction_crawl --house sodre-santoro --house freitas
    python manage.py run_auction_crawl --house superbid --dry-run --limit 20
"""

from django.core.management.base import BaseCommand, CommandError

from auctions.services.crawl_batch import enabled_house_names, run_batch
from auctions.services.lot_persistence import LotPersistenceOrchestrator
from auctions.sites import get_all_sites, select_sites


class Command(BaseCommand):
    help = "Crawl auction houses and upsert their lots"

    def add_arguments(self, parser):
        parser.add_argument(
            "--house",
            action="append",
            dest="houses",
            default=[],
            help="Slug, alias or name of a house to crawl (repeatable; default: AUCTIONEERS or all)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Crawl and normalize but print the lots instead of saving them",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=10,
            help="Lots printed per house in dry-run mode (default: 10)",
        )
        parser.add_argument(
            "--delay",
            type=float,
            default=None,
            help="Seconds between houses (default: AUCTIONS_INTER_HOUSE_DELAY)",
        )

    def handle(self, *args, **options):
        houses = options["houses"] or enabled_house_names()
        sites = select_sites(houses)

        if not sites:
            available = ", ".join(site.slug for site in get_all_sites())
            raise CommandError(f"No auction house matches {houses}. Available: {available}")

        if options["dry_run"]:
            self._dry_run(sites, options["limit"])
            return

        self.stdout.write(f"Crawling {len(sites)} auction house(s): {', '.join(s.name for s in sites)}")
        summary = run_batch([site.slug for site in sites], inter_house_delay=options["delay"])

        for house in summary["houses"]:
            style = self.style.SUCCESS if house["success"] else self.style.ERROR
            self.stdout.write(
                style(
                    f"  {house['auctioneer']}: {house['lots_scraped']} scraped, "
                    f"{house['lots_created']} created, {house['lots_updated']} updated, "
                    f"{len(house['errors'])} errors ({house['duration']:.1f}s)"
                )
            )
            for error in house["errors"][:5]:
                self.stdout.write(f"      - {error}")

        self.stdout.write(
            f"\nTotal: {summary['total_scraped']} scraped, {summary['total_created']} created, "
            f"{summary['total_updated']} updated"
        )

    def _dry_run(self, sites, limit):
        orchestrator = LotPersistenceOrchestrator.from_settings()

        for site in sites:
            self.stdout.write(self.style.WARNING(f"\n[DRY RUN] {site.name} ({site.base_url})"))
            outcome = orchestrator.crawl_site(site, orchestrator.session_factory)
            self.stdout.write(
                f"  {len(outcome.lots)} lots, {outcome.pages_fetched} pages, "
                f"{len(outcome.failures)} failed pages"
            )

            for lot in outcome.lots[:limit]:
                fields = orchestrator.build_lot_fields(lot)
                self.stdout.write(
                    f"  - {lot.external_id}: {fields['brand'] or '?'} {fields['model'] or '?'} "
                    f"{fields['year_model'] or ''} | {fields['vehicle_type']} "
                    f"({fields['classification_confidence']}) | bid {fields['current_bid']} | "
                    f"{fields['auction_date'] or 'no date'} | {fields['city']}/{fields['state']}"
                )

            for error in outcome.errors[:5]:
                self.stdout.write(self.style.ERROR(f"  ! {error}"))
