"""
Geolocation Endpoints

Thin wrappers over the configured geo provider (Google Maps or mock):
geocoding, distances, driving routes and nearby places.
"""

from typing import Any

from fastapi import APIRouter, HTTPException

from marketplace.schemas import (
    DistanceRequest,
    GeocodeRequest,
    NearbyRequest,
    ReverseGeocodeRequest,
    RouteRequest,
)
from marketplace.services.geo import get_geo_service

router = APIRouter(prefix="/api/geo", tags=["Geolocation"])


@router.post("/geocode")
async def geocode(data: GeocodeRequest) -> dict[str, Any]:
    result = await get_geo_service().geocode(data.address)
    if not result.found:
        raise HTTPException(status_code=404, detail=result.error_message or "Address not found")
    return {
        "address": data.address,
        "lat": result.latitude,
        "lng": result.longitude,
        "formatted_address": result.formatted_address,
    }


@router.post("/reverse-geocode")
async def reverse_geocode(data: ReverseGeocodeRequest) -> dict[str, Any]:
    result = await get_geo_service().reverse_geocode(data.lat, data.lng)
    if not result.found:
        raise HTTPException(status_code=404, detail=result.error_message or "Location not found")
    return {"lat": data.lat, "lng": data.lng, "formatted_address": result.formatted_address}


@router.post("/distance")
async def distance(data: DistanceRequest) -> dict[str, Any]:
    result = await get_geo_service().calculate_distance(data.origin, data.destination)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error_message or "Distance unavailable")
    return {
        "origin": data.origin,
        "destination": data.destination,
        "distance_km": result.distance_km,
        "distance_miles": result.distance_miles,
        "duration_minutes": result.duration_minutes,
    }


@router.post("/route")
async def route(data: RouteRequest) -> dict[str, Any]:
    result = await get_geo_service().route(data.origin, data.destination, data.waypoints)
    if not result.found:
        raise HTTPException(status_code=404, detail=result.error_message or "No route found")
    return {
        "origin": data.origin,
        "destination": data.destination,
        "waypoints": data.waypoints,
        "distance_km": result.distance_km,
        "duration_minutes": result.duration_minutes,
        "polyline": result.polyline,
        "steps": result.steps,
    }


@router.post("/nearby")
async def nearby(data: NearbyRequest) -> dict[str, Any]:
    result = await get_geo_service().nearby(data.location.lat, data.location.lng, data.radius, data.type)
    if not result.success:
        raise HTTPException(status_code=503, detail=result.error_message or "Places unavailable")
    return {"location": data.location.model_dump(), "radius": data.radius, "places": result.places}
