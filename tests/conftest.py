from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ezpark.config import settings
from ezpark.errors import RouteLookupFailed
from ezpark.main import create_app
from ezpark.models import Coordinate, ParkingSpot, RouteEstimate
from ezpark.storage import Storage, build_storage


def make_spot(name: str = "Test Lot", lat: float = 14.55, lng: float = 121.02, **kwargs) -> ParkingSpot:
    data = {
        "name": name,
        "address": f"{name} Street",
        "location": Coordinate(latitude=lat, longitude=lng),
        "total_spots": 10,
        "available_spots": 5,
    }
    data.update(kwargs)
    return ParkingSpot(**data)


class FakeLookup:
    """Route lookup returning preset distances keyed by spot latitude."""

    def __init__(self, distances: dict[float, float] | None = None, fail_for: set[float] | None = None):
        self.distances = distances or {}
        self.fail_for = fail_for or set()
        self.calls: list[tuple[Coordinate, Coordinate]] = []

    def lookup_distance(self, origin: Coordinate, destination: Coordinate) -> RouteEstimate:
        self.calls.append((origin, destination))
        if destination.latitude in self.fail_for:
            raise RouteLookupFailed("boom")
        km = self.distances.get(destination.latitude, 1.0)
        return RouteEstimate(distance_km=km, duration_sec=km * 90)


@pytest.fixture
def storage() -> Storage:
    return build_storage(settings.seed_path)


@pytest.fixture
def client(storage: Storage) -> TestClient:
    return TestClient(create_app(storage))
