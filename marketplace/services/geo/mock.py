"""
Offline geolocation for development and tests.

Addresses hash to stable points within roughly 10 km of central Paris, so
the same address always lands on the same coordinates. Distances are
great-circle distances stretched by a road factor, travelled by scooter.
Routes go straight from stop to stop; nearby places are spread inside the
requested radius.
"""

import asyncio
import hashlib
import math
import random
import logging
from typing import Sequence

from googlemaps.convert import encode_polyline

from marketplace.services.geo.base import (
    BaseGeoService,
    DistanceResult,
    GeocodeResult,
    NearbyResult,
    RouteResult,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

PARIS = (48.8566, 2.3522)
ROAD_FACTOR = 1.3
SCOOTER_SPEED_KMH = 20.0

STREETS = ("Rue Myrha", "Rue des Poissonniers", "Boulevard Barbès", "Rue Polonceau")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = math.radians(lat2 - lat1) / 2
    half_dlambda = math.radians(lng2 - lng1) / 2
    h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlambda) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def point_for(address: str) -> tuple[float, float]:
    digest = hashlib.sha256(address.strip().lower().encode("utf-8")).digest()
    u = int.from_bytes(digest[:4], "big") / 0xFFFFFFFF - 0.5
    v = int.from_bytes(digest[4:8], "big") / 0xFFFFFFFF - 0.5
    return round(PARIS[0] + u * 0.18, 6), round(PARIS[1] + v * 0.27, 6)


class MockGeoService(BaseGeoService):

    def __init__(self, failure_rate: float = 0.05, min_latency: float = 0.1, max_latency: float = 0.5):
        self.failure_rate = failure_rate
        self.latency_range = (min_latency, max(min_latency, max_latency))

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _lookup(self) -> tuple[bool, float]:
        """Wait like a network call; returns (outage, elapsed ms)."""
        delay = random.uniform(*self.latency_range)
        if delay:
            await asyncio.sleep(delay)
        return random.random() < self.failure_rate, delay * 1000

    @staticmethod
    def _unavailable(elapsed: float) -> GeocodeResult:
        return GeocodeResult(
            found=False,
            error_code="service_unavailable",
            error_message="Geocoding temporarily unavailable",
            response_time_ms=elapsed,
        )

    async def geocode(self, address: str) -> GeocodeResult:
        outage, elapsed = await self._lookup()
        if outage:
            return self._unavailable(elapsed)
        if not address or not address.strip():
            return GeocodeResult(found=False, error_code="invalid_address", response_time_ms=elapsed)

        lat, lng = point_for(address)
        return GeocodeResult(
            found=True,
            latitude=lat,
            longitude=lng,
            formatted_address=address.strip().title(),
            response_time_ms=elapsed,
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        outage, elapsed = await self._lookup()
        if outage:
            return self._unavailable(elapsed)

        number = int(abs(latitude * 1000)) % 150 + 1
        street = STREETS[int(abs(longitude * 1000)) % len(STREETS)]
        return GeocodeResult(
            found=True,
            latitude=latitude,
            longitude=longitude,
            formatted_address=f"{number} {street}, Paris, France",
            response_time_ms=elapsed,
        )

    async def calculate_distance(self, origin: str, destination: str) -> DistanceResult:
        outage, _ = await self._lookup()
        if outage:
            return DistanceResult(success=False, error_message="Distance temporarily unavailable")

        road_km = haversine_km(*point_for(origin), *point_for(destination)) * ROAD_FACTOR
        minutes = max(1, int(round(road_km / SCOOTER_SPEED_KMH * 60)))
        return DistanceResult.from_meters(road_km * 1000, minutes)

    async def route(self, origin: str, destination: str, waypoints: Sequence[str] = ()) -> RouteResult:
        outage, _ = await self._lookup()
        if outage:
            return RouteResult(found=False, error_message="Directions temporarily unavailable")

        stops = [origin, *waypoints, destination]
        points = [point_for(stop) for stop in stops]
        steps = []
        for (start, end), (a, b) in zip(zip(stops, stops[1:]), zip(points, points[1:])):
            road_km = haversine_km(*a, *b) * ROAD_FACTOR
            steps.append({
                "instruction": f"De {start.strip().title()} à {end.strip().title()}",
                "distance_km": round(road_km, 2),
                "duration_minutes": max(1, int(round(road_km / SCOOTER_SPEED_KMH * 60))),
            })

        return RouteResult(
            found=True,
            distance_km=round(sum(s["distance_km"] for s in steps), 2),
            duration_minutes=sum(s["duration_minutes"] for s in steps),
            polyline=encode_polyline(points),
            steps=steps,
        )

    async def nearby(self, latitude: float, longitude: float, radius_m: int, place_type: str) -> NearbyResult:
        outage, _ = await self._lookup()
        if outage:
            return NearbyResult(success=False, error_message="Places temporarily unavailable")

        places = []
        for index, street in enumerate(STREETS):
            lat, lng = point_for(f"{place_type} {index} {latitude:.3f} {longitude:.3f}")
            # Pull the hashed point towards the center so it falls inside the radius
            ratio = (index + 1) / (len(STREETS) + 1) * radius_m / 1000 / max(
                haversine_km(latitude, longitude, lat, lng), 1e-6
            )
            lat = round(latitude + (lat - latitude) * ratio, 6)
            lng = round(longitude + (lng - longitude) * ratio, 6)
            places.append({
                "place_id": f"mock-{place_type}-{index}",
                "name": f"{place_type.title()} {street}",
                "address": f"{index * 7 + 3} {street}, Paris",
                "lat": lat,
                "lng": lng,
                "distance_m": int(round(haversine_km(latitude, longitude, lat, lng) * 1000)),
            })
        return NearbyResult(success=True, places=places)

    async def health_check(self) -> bool:
        return True
