"""
Geolocation.

    result = await get_geo_service().geocode("12 rue Myrha, Paris")

Deterministic offline points in development, Google Maps elsewhere.
"""

from functools import lru_cache

from marketplace.core.config import get_settings
from marketplace.services.geo.base import (
    BaseGeoService,
    DistanceResult,
    GeocodeResult,
    NearbyResult,
    RouteResult,
)
from marketplace.services.geo.mock import MockGeoService
from marketplace.services.geo.google import GoogleGeoService


@lru_cache()
def get_geo_service() -> BaseGeoService:
    settings = get_settings()
    if settings.use_real_services:
        return GoogleGeoService()
    return MockGeoService(
        failure_rate=settings.mock_failure_rate,
        min_latency=settings.mock_min_latency,
        max_latency=settings.mock_max_latency,
    )


__all__ = [
    "get_geo_service",
    "BaseGeoService",
    "GeocodeResult",
    "DistanceResult",
    "RouteResult",
    "NearbyResult",
    "MockGeoService",
    "GoogleGeoService",
]
