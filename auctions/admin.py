"""
Django admin configuration for the auction models.

Auction houses can be enabled/disabled and crawled on demand; lots, crawl
runs and crawl errors are read-mostly views for debugging extraction and
normalization.
"""

from django.contrib import admin
from django.utils.html import format_html

from auctions.models import (
    AuctionHouse,
    CrawlError,
    CrawlRun,
    Lot,
    LotImage,
    PriceReference,
    TaxonomyBrand,
    TaxonomyModel,
    VehicleCategory,
)
from auctions.tasks import crawl_auction_house

BADGE = (
    '<span style="background-color: {}; color: white; '
    'padding: 2px 8px; border-radius: 4px;">{}</span>'
)


@admin.register(AuctionHouse)
class AuctionHouseAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "is_active", "last_crawled_at", "lot_count"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    readonly_fields = ["id", "last_crawled_at", "created_at", "updated_at"]
    actions = ["trigger_crawl", "disable_houses", "enable_houses"]

    def lot_count(self, obj):
        return obj.lots.count()
    lot_count.short_description = "Lots"

    @admin.action(description="Trigger crawl now")
    def trigger_crawl(self, request, queryset):
        """Queue a crawl for each selected active house."""
        count = 0
        for house in queryset.filter(is_active=True):
            crawl_auction_house.apply_async(args=[house.slug])
            count += 1
        self.message_user(request, f"Queued crawl for {count} auction house(s).")

    @admin.action(description="Disable selected houses")
    def disable_houses(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f"Disabled {count} auction house(s).")

    @admin.action(description="Enable selected houses")
    def enable_houses(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f"Enabled {count} auction house(s).")


class LotImageInline(admin.TabularInline):
    model = LotImage
    extra = 0
    fields = ["display_order", "is_primary", "url"]
    readonly_fields = fields


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = [
        "external_id",
        "auction_house",
        "brand",
        "model",
        "year_model",
        "vehicle_type",
        "classification_confidence",
        "current_bid",
        "deal_score",
        "auction_date",
    ]
    list_filter = ["auction_house", "vehicle_type", "auction_type", "state"]
    search_fields = ["external_id", "title", "brand", "model", "raw_brand", "raw_model"]
    readonly_fields = ["id", "created_at", "updated_at", "last_seen_at"]
    ordering = ["auction_date"]
    inlines = [LotImageInline]

    fieldsets = (
        ("Listing", {
            "fields": ("id", "auction_house", "external_id", "lot_number", "title", "original_url"),
        }),
        ("Vehicle", {
            "fields": (
                ("raw_brand", "raw_model"),
                ("brand", "model", "version"),
                ("year_manufacture", "year_model"),
                ("vehicle_type", "classification_confidence"),
                ("color", "fuel_type", "transmission"),
                ("mileage", "license_plate", "condition"),
            ),
        }),
        ("Pricing", {
            "fields": (
                ("current_bid", "minimum_bid", "appraised_value"),
                ("reference_price", "discount_percentage", "deal_score"),
            ),
        }),
        ("Auction", {
            "fields": ("auction_date", "auction_type", "has_financing", ("state", "city")),
        }),
        ("Timestamps", {
            "fields": ("created_at", "updated_at", "last_seen_at"),
            "classes": ("collapse",),
        }),
    )


@admin.register(CrawlRun)
class CrawlRunAdmin(admin.ModelAdmin):
    list_display = [
        "started_at",
        "auctioneer",
        "status_badge",
        "lots_scraped",
        "lots_created",
        "lots_updated",
        "errors_count",
        "execution_time_ms",
    ]
    list_filter = ["status", "auctioneer", ("started_at", admin.DateFieldListFilter)]
    ordering = ["-started_at"]

    def status_badge(self, obj):
        color = "#28a745" if obj.status == "success" else "#dc3545"
        return format_html(BADGE, color, obj.get_status_display())
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        # Audit rows are never edited
        return False


@admin.register(CrawlError)
class CrawlErrorAdmin(admin.ModelAdmin):
    list_display = ["timestamp", "auction_house", "url_truncated", "error_type", "resolved"]
    list_filter = ["auction_house", "error_type", "resolved", ("timestamp", admin.DateFieldListFilter)]
    search_fields = ["url", "message"]
    readonly_fields = ["id", "auction_house", "url", "error_type", "message", "stack_trace", "timestamp"]
    ordering = ["-timestamp"]
    actions = ["mark_resolved", "mark_unresolved"]

    def url_truncated(self, obj):
        max_length = 50
        if len(obj.url) > max_length:
            return obj.url[:max_length] + "..."
        return obj.url
    url_truncated.short_description = "URL"

    @admin.action(description="Mark selected errors as resolved")
    def mark_resolved(self, request, queryset):
        count = queryset.update(resolved=True)
        self.message_user(request, f"Marked {count} error(s) as resolved.")

    @admin.action(description="Mark selected errors as unresolved")
    def mark_unresolved(self, request, queryset):
        count = queryset.update(resolved=False)
        self.message_user(request, f"Marked {count} error(s) as unresolved.")

    def has_add_permission(self, request):
        return False


@admin.register(VehicleCategory)
class VehicleCategoryAdmin(admin.ModelAdmin):
    list_display = ["slug", "name", "vehicle_type"]


@admin.register(TaxonomyBrand)
class TaxonomyBrandAdmin(admin.ModelAdmin):
    list_display = ["name", "name_upper", "search_name", "category", "reference_code"]
    list_filter = ["category"]
    search_fields = ["name", "search_name"]


@admin.register(TaxonomyModel)
class TaxonomyModelAdmin(admin.ModelAdmin):
    list_display = ["name", "brand", "base_name_upper", "variant_name", "reference_code"]
    list_filter = ["brand__category"]
    search_fields = ["name", "base_search_name", "brand__name"]
    list_select_related = ["brand"]


@admin.register(PriceReference)
class PriceReferenceAdmin(admin.ModelAdmin):
    list_display = ["model_year", "reference_month", "price"]
    list_filter = ["reference_month"]
    list_select_related = ["model_year__model__brand"]
