"""
Management command to re-run brand/model normalization and vehicle type
classification over stored lots.

Useful after a taxonomy import or sync, or after alias and keyword changes.

Usage:
    python manage.py renormalize_lots
    python manage.py renormalize_lots --house superbid --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Q

from auctions.models import AuctionHouse, Lot
from auctions.services.lot_persistence import RENORMALIZED_FIELDS, LotPersistenceOrchestrator
from auctions.sites import select_sites


class Command(BaseCommand):
    help = "Normalize brand/model and classify the vehicle type of stored lots again"

    def add_arguments(self, parser):
        parser.add_argument(
            "--house",
            action="append",
            dest="houses",
            default=[],
            help="Slug, alias or name of a house to process (repeatable; default: all)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the changes without saving them",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=500,
            help="Lots read per database round trip (default: 500)",
        )

    def handle(self, *args, **options):
        lots = Lot.objects.select_related("auction_house").order_by("created_at")
        if options["houses"]:
            houses = self._select_houses(options["houses"])
            lots = lots.filter(auction_house__in=houses)

        orchestrator = LotPersistenceOrchestrator.from_settings()
        dry_run = options["dry_run"]
        if dry_run:
            self.stdout.write(self.style.WARNING("[DRY RUN] Nothing will be saved"))

        checked = changed = type_changes = 0
        for record in lots.iterator(chunk_size=options["batch_size"]):
            checked += 1
            previous_type = record.vehicle_type
            changes = orchestrator.renormalize_lot(record)
            if not changes:
                continue

            changed += 1
            if "vehicle_type" in changes:
                type_changes += 1
                self.stdout.write(
                    f"  {record.auction_house.name} {record.external_id}: "
                    f"{previous_type} -> {record.vehicle_type} ({record.title[:60]})"
                )
            if not dry_run:
                record.save(update_fields=[*RENORMALIZED_FIELDS, "updated_at"])

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {checked} lots: {changed} {'would change' if dry_run else 'updated'}, "
                f"{type_changes} vehicle type changes"
            )
        )

    def _select_houses(self, names):
        query = Q(slug__in=names) | Q(name__in=names)
        for site in select_sites(names):
            query |= Q(slug__in=site.candidate_slugs) | Q(name__iexact=site.name)

        houses = AuctionHouse.objects.filter(query)
        if not houses.exists():
            raise CommandError(f"No auction house matches {names}")
        return houses
