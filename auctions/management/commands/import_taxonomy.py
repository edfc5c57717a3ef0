"""
Management command to import the reference taxonomy from a JSON file.

Usage:
    python manage.py import_taxonomy /path/to/taxonomy.json
    python manage.py import_taxonomy /path/to/taxonomy.json --clear
    python manage.py import_taxonomy /path/to/taxonomy.json --dry-run

See auctions.services.taxonomy_import for the file format.
"""

import json

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from auctions.services.taxonomy import reset_taxonomy_cache
from auctions.services.taxonomy_import import TaxonomyWriter, clear_taxonomy


class Command(BaseCommand):
    help = "Import reference taxonomy (categories, brands, models, years, prices) from JSON"

    def add_arguments(self, parser):
        parser.add_argument("json_file", type=str, help="Path to the taxonomy JSON file")
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Delete the existing taxonomy before importing",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be imported without saving",
        )

    def handle(self, *args, **options):
        json_file = options["json_file"]

        try:
            with open(json_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise CommandError(f"File not found: {json_file}")
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON in {json_file}: {e}")

        categories = data.get("categories") if isinstance(data, dict) else None
        if not isinstance(categories, list):
            raise CommandError('Expected a JSON object with a "categories" list')

        if options["dry_run"]:
            self._summarize(categories)
            return

        try:
            with transaction.atomic():
                if options["clear"]:
                    deleted = clear_taxonomy()
                    self.stdout.write(f"Cleared {deleted} categories and everything under them")
                stats = TaxonomyWriter().import_tree(data)
        except (KeyError, ValueError) as e:
            raise CommandError(f"Import failed, nothing was saved: {e}")

        reset_taxonomy_cache()
        self.stdout.write(self.style.SUCCESS(f"Imported {stats}"))

    def _summarize(self, categories):
        self.stdout.write(self.style.WARNING("[DRY RUN] Nothing will be saved"))
        for category in categories:
            brands = category.get("brands", [])
            models = sum(len(brand.get("models", [])) for brand in brands)
            self.stdout.write(f"  {category.get('slug')}: {len(brands)} brands, {models} models")
