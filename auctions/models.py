"""
Django models for the Auction Lot Crawler.

Models: VehicleCategory, TaxonomyBrand, TaxonomyModel, TaxonomyModelYear,
        PriceReference, AuctionHouse, Lot, LotImage, CrawlRun, CrawlError

The taxonomy models hold the official price-reference tables (read-only while
crawling, populated by the import_taxonomy/sync_taxonomy commands). The lot
models hold the deduplicated, normalized auction listings.
"""

import uuid
from datetime import timedelta

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class VehicleType(models.TextChoices):
    """Vehicle category assigned by the classifier."""

    CAR = "car", "Car"
    MOTORCYCLE = "motorcycle", "Motorcycle"
    TRUCK = "truck", "Truck"
    VAN = "van", "Van"
    OTHER = "other", "Other"


class AuctionType(models.TextChoices):
    """How bids are taken."""

    ONLINE = "online", "Online"
    PRESENCIAL = "presencial", "Presencial"
    HIBRIDO = "hibrido", "Híbrido"


class CrawlRunStatus(models.TextChoices):
    """Outcome of one crawl invocation."""

    SUCCESS = "success", "Success"
    ERROR = "error", "Error"


class ErrorType(models.TextChoices):
    """Types of crawl errors."""

    NAVIGATION = "navigation", "Navigation Error"
    TIMEOUT = "timeout", "Timeout"
    CONNECTION = "connection", "Connection Error"
    PARSE = "parse", "Parse Error"
    PERSISTENCE = "persistence", "Persistence Error"
    BROWSER = "browser", "Browser Startup Error"
    UNKNOWN = "unknown", "Unknown Error"


# ============================================================
# Reference Taxonomy
# ============================================================


class VehicleCategory(models.Model):
    """
    Top-level taxonomy partition (carros, motos, caminhoes).

    A brand belongs to exactly one category, so "HONDA" exists once under
    carros and once under motos.
    """

    SLUG_TO_VEHICLE_TYPE = {
        "carros": VehicleType.CAR,
        "motos": VehicleType.MOTORCYCLE,
        "caminhoes": VehicleType.TRUCK,
    }

    slug = models.SlugField(max_length=20, unique=True)
    name = models.CharField(max_length=50)
    vehicle_type = models.CharField(max_length=20, choices=VehicleType.choices)

    class Meta:
        db_table = "taxonomy_categories"
        ordering = ["slug"]
        verbose_name_plural = "vehicle categories"

    def __str__(self):
        return self.name


class TaxonomyBrand(models.Model):
    """Reference brand within one category partition."""

    category = models.ForeignKey(
        VehicleCategory, on_delete=models.CASCADE, related_name="brands"
    )
    reference_code = models.CharField(max_length=20, blank=True)
    name = models.CharField(max_length=100)
    name_upper = models.CharField(max_length=100, db_index=True)
    search_name = models.CharField(max_length=100, db_index=True)

    class Meta:
        db_table = "taxonomy_brands"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["category", "search_name"], name="unique_brand_per_category"
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.category.slug})"


class TaxonomyModel(models.Model):
    """
    Reference model of a brand.

    ``base_name`` is the model name with trim/version tokens removed
    ("CIVIC EXL 2.0" -> "CIVIC"); ``variant_name`` holds the rest.
    """

    brand = models.ForeignKey(
        TaxonomyBrand, on_delete=models.CASCADE, related_name="models"
    )
    reference_code = models.CharField(max_length=20, blank=True)
    name = models.CharField(max_length=200)
    name_upper = models.CharField(max_length=200)
    base_name = models.CharField(max_length=100)
    base_name_upper = models.CharField(max_length=100, db_index=True)
    base_search_name = models.CharField(max_length=100, db_index=True)
    variant_name = models.CharField(max_length=200, blank=True)

    class Meta:
        db_table = "taxonomy_models"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["brand", "base_search_name"]),
        ]

    def __str__(self):
        return f"{self.brand.name} {self.name}"


class TaxonomyModelYear(models.Model):
    """Year/fuel variant of a reference model ("2020-1" = 2020 gasoline)."""

    model = models.ForeignKey(
        TaxonomyModel, on_delete=models.CASCADE, related_name="years"
    )
    year_code = models.CharField(max_length=20)
    year = models.IntegerField()
    fuel_label = models.CharField(max_length=30, blank=True)

    class Meta:
        db_table = "taxonomy_model_years"
        ordering = ["-year"]
        constraints = [
            models.UniqueConstraint(
                fields=["model", "year_code"], name="unique_year_code_per_model"
            ),
        ]

    def __str__(self):
        return f"{self.model} {self.year_code}"


class PriceReference(models.Model):
    """Monthly reference price of one model year."""

    model_year = models.ForeignKey(
        TaxonomyModelYear, on_delete=models.CASCADE, related_name="prices"
    )
    reference_month = models.DateField(help_text="First day of the reference month")
    reference_label = models.CharField(max_length=50, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    raw_price_text = models.CharField(max_length=50, blank=True)

    class Meta:
        db_table = "taxonomy_prices"
        ordering = ["-reference_month"]
        constraints = [
            models.UniqueConstraint(
                fields=["model_year", "reference_month"], name="unique_price_per_month"
            ),
        ]

    def __str__(self):
        return f"{self.model_year} {self.reference_month:%Y-%m}: {self.price}"


# ============================================================
# Auction Houses and Lots
# ============================================================


class AuctionHouse(models.Model):
    """
    An auctioneer whose site is crawled.

    Created automatically the first time a site adapter runs if no row
    matches its name or slugs.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    website_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True, help_text="Enable/disable crawling")
    last_crawled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "auction_houses"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def mark_crawled(self):
        """Record a successful crawl."""
        self.last_crawled_at = timezone.now()
        self.save(update_fields=["last_crawled_at", "updated_at"])


class Lot(models.Model):
    """
    One vehicle offered at auction.

    Unique per (auction_house, external_id); repeated crawls update the row
    in place.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction_house = models.ForeignKey(
        AuctionHouse, on_delete=models.CASCADE, related_name="lots"
    )
    external_id = models.CharField(max_length=200, help_text="Site-specific lot id")
    lot_number = models.CharField(max_length=50, blank=True)
    title = models.TextField()

    # Vehicle identity
    raw_brand = models.CharField(max_length=100, blank=True)
    raw_model = models.CharField(max_length=200, blank=True)
    brand = models.CharField(max_length=100, blank=True, db_index=True)
    model = models.CharField(max_length=200, blank=True)
    version = models.CharField(max_length=200, blank=True)
    year_manufacture = models.IntegerField(null=True, blank=True)
    year_model = models.IntegerField(null=True, blank=True)
    vehicle_type = models.CharField(
        max_length=20, choices=VehicleType.choices, default=VehicleType.CAR
    )
    classification_confidence = models.IntegerField(
        default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )

    # Characteristics
    color = models.CharField(max_length=30, blank=True)
    fuel_type = models.CharField(max_length=30, blank=True)
    transmission = models.CharField(max_length=30, blank=True)
    mileage = models.IntegerField(null=True, blank=True)
    license_plate = models.CharField(max_length=20, blank=True)
    condition = models.CharField(max_length=100, blank=True)

    # Location
    state = models.CharField(max_length=2, blank=True)
    city = models.CharField(max_length=100, blank=True)

    # Pricing
    current_bid = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    minimum_bid = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    appraised_value = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    reference_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    discount_percentage = models.DecimalField(
        max_digits=6, decimal_places=2, null=True, blank=True
    )
    deal_score = models.IntegerField(null=True, blank=True)

    # Auction
    auction_date = models.DateField(null=True, blank=True)
    auction_type = models.CharField(
        max_length=20, choices=AuctionType.choices, default=AuctionType.ONLINE
    )
    has_financing = models.BooleanField(default=False)

    # Links
    original_url = models.URLField(max_length=2000, blank=True)
    thumbnail_url = models.URLField(max_length=2000, blank=True)
    description = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    last_seen_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "lots"
        ordering = ["auction_date", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["auction_house", "external_id"], name="unique_lot_per_house"
            ),
        ]
        indexes = [
            models.Index(fields=["vehicle_type", "auction_date"]),
            models.Index(fields=["brand", "model"]),
            models.Index(fields=["state", "city"]),
        ]

    def __str__(self):
        return f"{self.external_id} - {self.title[:60]}"


class LotImage(models.Model):
    """Image of a lot; index 0 of the scraped list is the primary one."""

    lot = models.ForeignKey(Lot, on_delete=models.CASCADE, related_name="images")
    url = models.URLField(max_length=2000)
    is_primary = models.BooleanField(default=False)
    display_order = models.IntegerField(default=0)

    class Meta:
        db_table = "lot_images"
        ordering = ["display_order"]

    def __str__(self):
        return self.url[:100]


# ============================================================
# Run Audit
# ============================================================


class CrawlRun(models.Model):
    """
    Audit row written once per crawl invocation, even when it fails.

    Never updated after creation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction_house = models.ForeignKey(
        AuctionHouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="crawl_runs",
    )
    auctioneer = models.CharField(max_length=100, help_text="Site name as crawled")
    status = models.CharField(max_length=20, choices=CrawlRunStatus.choices)

    lots_scraped = models.IntegerField(default=0)
    lots_created = models.IntegerField(default=0)
    lots_updated = models.IntegerField(default=0)
    errors_count = models.IntegerField(default=0)
    error_message = models.TextField(blank=True)
    execution_time_ms = models.IntegerField(default=0)

    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(default=timezone.now)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "crawl_runs"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["auctioneer", "started_at"]),
            models.Index(fields=["status", "started_at"]),
        ]

    def __str__(self):
        return f"Run {self.auctioneer} ({self.status}) {self.started_at:%Y-%m-%d %H:%M}"

    @classmethod
    def record(cls, result, auction_house=None):
        """
        Persist a CrawlRunResult.

        Args:
            result: CrawlRunResult from the persistence orchestrator
            auction_house: Resolved AuctionHouse, if resolution succeeded

        Returns:
            The created CrawlRun
        """
        completed_at = timezone.now()
        return cls.objects.create(
            auction_house=auction_house,
            auctioneer=result.auctioneer,
            status=CrawlRunStatus.SUCCESS if result.success else CrawlRunStatus.ERROR,
            lots_scraped=result.lots_scraped,
            lots_created=result.lots_created,
            lots_updated=result.lots_updated,
            errors_count=len(result.errors),
            error_message="; ".join(result.errors),
            execution_time_ms=int(result.duration * 1000),
            started_at=completed_at - timedelta(seconds=result.duration),
            completed_at=completed_at,
            metadata={
                "errors": list(result.errors),
                "pages_fetched": result.pages_fetched,
                "filters_visited": result.filters_visited,
            },
        )


class CrawlError(models.Model):
    """
    Persistent error logging for page/request failures.

    Provides detailed context for debugging and monitoring.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction_house = models.ForeignKey(
        AuctionHouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="errors",
    )
    url = models.URLField(max_length=2000, blank=True, help_text="URL that caused the error")

    error_type = models.CharField(
        max_length=20,
        choices=ErrorType.choices,
        help_text="Category of error",
    )
    message = models.TextField(help_text="Error message")
    stack_trace = models.TextField(blank=True, help_text="Full stack trace if available")

    timestamp = models.DateTimeField(default=timezone.now)
    resolved = models.BooleanField(
        default=False,
        help_text="Whether this error has been resolved",
    )

    class Meta:
        db_table = "crawl_errors"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["auction_house", "timestamp"]),
            models.Index(fields=["error_type", "timestamp"]),
            models.Index(fields=["resolved"]),
        ]

    def __str__(self):
        return f"{self.error_type}: {self.message[:50]}... ({self.timestamp})"
