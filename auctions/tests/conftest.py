"""
Shared fixtures for the auctions unit tests.
"""

import pytest

from auctions.tests.fakes import build_taxonomy


@pytest.fixture
def taxonomy():
    """In-memory TaxonomyCache; see fakes.build_taxonomy."""
    return build_taxonomy()


@pytest.fixture
def normalizer(taxonomy):
    from auctions.services.brand_model_normalizer import BrandModelNormalizer

    return BrandModelNormalizer(taxonomy, fuzzy_threshold=90)


@pytest.fixture
def classifier(taxonomy):
    from auctions.services.vehicle_classifier import VehicleTypeClassifier

    return VehicleTypeClassifier(taxonomy)
