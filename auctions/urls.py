"""
Auctions URL configuration.

URL patterns for the auctions API endpoints.
"""

from django.urls import include, path

urlpatterns = [
    path("", include("auctions.api.urls")),
]
