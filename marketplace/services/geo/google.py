"""
Google Maps geolocation (staging / production).

Needs GOOGLE_MAPS_API_KEY with the Geocoding, Distance Matrix, Directions
and Places APIs enabled. The googlemaps client blocks, calls go through a
worker thread.
"""

import asyncio
import logging
import time
from typing import Sequence

import googlemaps
from googlemaps.exceptions import ApiError, HTTPError, Timeout, TransportError

from marketplace.core.config import get_settings
from marketplace.services.geo.base import (
    BaseGeoService,
    DistanceResult,
    GeocodeResult,
    NearbyResult,
    RouteResult,
)

logger = logging.getLogger(__name__)

GOOGLE_ERRORS = (ApiError, HTTPError, Timeout, TransportError)


class GoogleGeoService(BaseGeoService):

    def __init__(self):
        api_key = get_settings().google_maps_api_key
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY must be set when ENV_MODE is not development")
        self._client = googlemaps.Client(key=api_key)

    @property
    def provider_name(self) -> str:
        return "google"

    async def _resolve(self, method, query) -> GeocodeResult:
        """Run a geocoding call and keep its best match."""
        started = time.perf_counter()
        try:
            matches = await asyncio.to_thread(method, query)
        except GOOGLE_ERRORS as e:
            logger.error(f"Google geocoding of {query!r} failed: {e}")
            return GeocodeResult(
                found=False,
                error_code=type(e).__name__.lower(),
                error_message="Geocoding service error",
                response_time_ms=(time.perf_counter() - started) * 1000,
            )

        elapsed = (time.perf_counter() - started) * 1000
        if not matches:
            return GeocodeResult(found=False, error_code="not_found", response_time_ms=elapsed)

        best = matches[0]
        location = best.get("geometry", {}).get("location", {})
        return GeocodeResult(
            found=True,
            latitude=location.get("lat"),
            longitude=location.get("lng"),
            formatted_address=best.get("formatted_address"),
            response_time_ms=elapsed,
        )

    async def geocode(self, address: str) -> GeocodeResult:
        return await self._resolve(self._client.geocode, address)

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        return await self._resolve(self._client.reverse_geocode, (latitude, longitude))

    async def calculate_distance(self, origin: str, destination: str) -> DistanceResult:
        try:
            matrix = await asyncio.to_thread(
                self._client.distance_matrix,
                origins=[origin],
                destinations=[destination],
                mode="driving",
                units="metric",
            )
        except GOOGLE_ERRORS as e:
            logger.error(f"Google distance {origin!r} -> {destination!r} failed: {e}")
            return DistanceResult(success=False, error_message=str(e))

        route = matrix["rows"][0]["elements"][0]
        if route["status"] != "OK":
            return DistanceResult(success=False, error_message=f"No route ({route['status']})")

        return DistanceResult.from_meters(
            route["distance"]["value"],
            int(round(route["duration"]["value"] / 60)),
        )

    async def route(self, origin: str, destination: str, waypoints: Sequence[str] = ()) -> RouteResult:
        try:
            routes = await asyncio.to_thread(
                self._client.directions,
                origin,
                destination,
                mode="driving",
                waypoints=list(waypoints) or None,
                units="metric",
            )
        except GOOGLE_ERRORS as e:
            logger.error(f"Google directions {origin!r} -> {destination!r} failed: {e}")
            return RouteResult(found=False, error_message=str(e))

        if not routes:
            return RouteResult(found=False, error_message="No route found")

        legs = routes[0]["legs"]
        steps = [
            {
                "instruction": step.get("html_instructions", ""),
                "distance_km": round(step["distance"]["value"] / 1000, 2),
                "duration_minutes": int(round(step["duration"]["value"] / 60)),
            }
            for leg in legs
            for step in leg.get("steps", [])
        ]
        return RouteResult(
            found=True,
            distance_km=round(sum(leg["distance"]["value"] for leg in legs) / 1000, 2),
            duration_minutes=int(round(sum(leg["duration"]["value"] for leg in legs) / 60)),
            polyline=routes[0].get("overview_polyline", {}).get("points"),
            steps=steps,
        )

    async def nearby(self, latitude: float, longitude: float, radius_m: int, place_type: str) -> NearbyResult:
        try:
            response = await asyncio.to_thread(
                self._client.places_nearby,
                location=(latitude, longitude),
                radius=radius_m,
                type=place_type,
            )
        except GOOGLE_ERRORS as e:
            logger.error(f"Google nearby search around {latitude},{longitude} failed: {e}")
            return NearbyResult(success=False, error_message=str(e))

        places = []
        for place in response.get("results", []):
            location = place.get("geometry", {}).get("location", {})
            places.append({
                "place_id": place.get("place_id"),
                "name": place.get("name"),
                "address": place.get("vicinity"),
                "lat": location.get("lat"),
                "lng": location.get("lng"),
                "rating": place.get("rating"),
            })
        return NearbyResult(success=True, places=places)

    async def health_check(self) -> bool:
        result = await self.geocode("Paris, France")
        return result.found
