"""
Management command to sync the reference taxonomy from the FIPE API.

Usage:
    python manage.py sync_taxonomy
    python manage.py sync_taxonomy --types carros,motos --skip-prices
    python manage.py sync_taxonomy --types carros --brand-limit 2 --model-limit 5
"""

from django.core.management.base import BaseCommand, CommandError

from auctions.services.taxonomy_sync import CATEGORY_SLUGS, FipeClient, SyncOptions, TaxonomySync


class Command(BaseCommand):
    help = "Sync brands, models, years and reference prices from the FIPE API"

    def add_arguments(self, parser):
        parser.add_argument(
            "--types",
            type=str,
            default=",".join(CATEGORY_SLUGS),
            help="Comma-separated categories (carros, motos, caminhoes)",
        )
        parser.add_argument("--skip-prices", action="store_true", help="Only sync brands/models/years")
        parser.add_argument("--throttle", type=int, default=None, help="Delay between requests (ms)")
        parser.add_argument("--brand-limit", type=int, default=None)
        parser.add_argument("--model-limit", type=int, default=None)
        parser.add_argument("--year-limit", type=int, default=None)

    def handle(self, *args, **options):
        categories = [slug.strip() for slug in options["types"].split(",") if slug.strip()]
        unknown = [slug for slug in categories if slug not in CATEGORY_SLUGS]
        if unknown:
            raise CommandError(f"Unknown categories: {', '.join(unknown)}")

        sync_options = SyncOptions(
            skip_prices=options["skip_prices"],
            brand_limit=options["brand_limit"],
            model_limit=options["model_limit"],
            year_limit=options["year_limit"],
        )

        self.stdout.write(f"Syncing taxonomy for {', '.join(categories)}...")
        with FipeClient(throttle_ms=options["throttle"]) as client:
            stats = TaxonomySync(client).sync(categories, sync_options)

        for error in sync_options.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))
        self.stdout.write(self.style.SUCCESS(f"Synced {stats}"))
