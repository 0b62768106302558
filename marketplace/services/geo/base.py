"""
Geolocation provider contract: address <-> coordinates, the road distance
between a restaurant and a delivery address, driving routes and places
around a point.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from typing import Optional, Sequence

METERS_PER_MILE = 1609.34


@dataclass
class GeocodeResult:
    found: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted_address: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DistanceResult:
    success: bool
    distance_km: Optional[float] = None
    distance_miles: Optional[float] = None
    duration_minutes: Optional[int] = None
    error_message: Optional[str] = None

    @classmethod
    def from_meters(cls, meters: float, minutes: int) -> "DistanceResult":
        return cls(
            success=True,
            distance_km=round(meters / 1000, 2),
            distance_miles=round(meters / METERS_PER_MILE, 2),
            duration_minutes=minutes,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RouteResult:
    found: bool
    distance_km: Optional[float] = None
    duration_minutes: Optional[int] = None
    polyline: Optional[str] = None
    steps: list[dict] = field(default_factory=list)
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NearbyResult:
    success: bool
    places: list[dict] = field(default_factory=list)
    error_message: Optional[str] = None


class BaseGeoService(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @abstractmethod
    async def geocode(self, address: str) -> GeocodeResult:
        ...

    @abstractmethod
    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        ...

    @abstractmethod
    async def calculate_distance(self, origin: str, destination: str) -> DistanceResult:
        """Road distance and travel time, origin being the pickup address."""

    @abstractmethod
    async def route(self, origin: str, destination: str, waypoints: Sequence[str] = ()) -> RouteResult:
        """Driving route through the waypoints, in order."""

    @abstractmethod
    async def nearby(self, latitude: float, longitude: float, radius_m: int, place_type: str) -> NearbyResult:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...
