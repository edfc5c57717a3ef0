"""
Serializers for the auctions API.
"""

from rest_framework import serializers

from auctions.models import CrawlRun


class CrawlRunSerializer(serializers.ModelSerializer):
    """Read-only view of one CrawlRun audit row."""

    auction_house_slug = serializers.SlugRelatedField(
        source="auction_house", slug_field="slug", read_only=True
    )

    class Meta:
        model = CrawlRun
        fields = [
            "id",
            "auctioneer",
            "auction_house_slug",
            "status",
            "lots_scraped",
            "lots_created",
            "lots_updated",
            "errors_count",
            "error_message",
            "execution_time_ms",
            "started_at",
            "completed_at",
            "metadata",
        ]
        read_only_fields = fields


class CrawlTriggerSerializer(serializers.Serializer):
    """Body of POST /api/v1/crawl/."""

    house = serializers.CharField(required=False, allow_blank=True)
