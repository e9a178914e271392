from __future__ import annotations

import logging
import math
from typing import Any, Protocol

import requests

from ezpark.config import settings
from ezpark.errors import RouteLookupFailed
from ezpark.geo import distance_km
from ezpark.models import Coordinate, RouteEstimate

logger = logging.getLogger(__name__)


class RouteLookup(Protocol):
    def lookup_distance(self, origin: Coordinate, destination: Coordinate) -> RouteEstimate:
        ...


def _latlng(c: Coordinate) -> str:
    return f"{c.latitude},{c.longitude}"


def _shorten_error_text(s: str, max_len: int = 240) -> str:
    if not s:
        return ""
    one_line = " ".join(s.replace("\r", " ").replace("\n", " ").split())
    if len(one_line) <= max_len:
        return one_line
    return one_line[:max_len] + "..."


def directions_url(origin: Coordinate, destination: Coordinate) -> str:
    return f"https://www.mapquest.com/directions/to/{_latlng(destination)}/from/{_latlng(origin)}"


class MapQuestRouteLookup:
    """Distance/duration between two points from the MapQuest route matrix.

    One request per call, no retry. Any transport error, non-2xx status or
    payload without the destination's distance/time raises RouteLookupFailed.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_s: float | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.mapquest_api_key
        self.base_url = (base_url or settings.mapquest_base_url).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.route_timeout_s
        self.session = session or requests.Session()

    def lookup_distance(self, origin: Coordinate, destination: Coordinate) -> RouteEstimate:
        if not self.api_key:
            raise RouteLookupFailed("MAPQUEST_API_KEY is not set")

        payload = {
            "locations": [_latlng(origin), _latlng(destination)],
            "options": {"allToAll": False, "unit": "k"},
        }
        try:
            resp = self.session.post(
                f"{self.base_url}/directions/v2/routematrix",
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise RouteLookupFailed(f"Route matrix request failed: {e}") from e

        if not resp.ok:
            raise RouteLookupFailed(
                f"Route matrix failed: {resp.status_code} {_shorten_error_text(resp.text)}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RouteLookupFailed("Route matrix returned invalid JSON") from e

        return _parse_route_matrix(data)


def _parse_route_matrix(data: Any) -> RouteEstimate:
    if not isinstance(data, dict):
        raise RouteLookupFailed("Route matrix payload is not an object")

    # MapQuest reports routing errors in-band with HTTP 200.
    info = data.get("info") or {}
    status = info.get("statuscode", 0) if isinstance(info, dict) else 0
    if status:
        messages = info.get("messages") or []
        if not isinstance(messages, list):
            messages = [messages]
        raise RouteLookupFailed(f"Route matrix error {status}: {'; '.join(map(str, messages))}")

    distances = data.get("distance")
    times = data.get("time")
    if not (isinstance(distances, list) and isinstance(times, list)):
        raise RouteLookupFailed("Route matrix payload missing distance/time")
    if len(distances) < 2 or len(times) < 2:
        raise RouteLookupFailed("Route matrix payload has no destination entry")

    distance, duration = distances[1], times[1]
    if isinstance(distance, bool) or not isinstance(distance, (int, float)):
        raise RouteLookupFailed(f"Route matrix distance is not numeric: {distance!r}")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise RouteLookupFailed(f"Route matrix time is not numeric: {duration!r}")
    if not (math.isfinite(distance) and math.isfinite(duration)):
        raise RouteLookupFailed(f"Route matrix returned non-finite values: {distance!r}, {duration!r}")

    return RouteEstimate(distance_km=float(distance), duration_sec=float(duration))


class StraightLineRouteLookup:
    """Offline estimate: great-circle distance at a fixed average speed."""

    def __init__(self, avg_speed_kmh: float = 40.0):
        self.avg_speed_kmh = avg_speed_kmh

    def lookup_distance(self, origin: Coordinate, destination: Coordinate) -> RouteEstimate:
        km = distance_km(origin, destination)
        return RouteEstimate(distance_km=km, duration_sec=km / self.avg_speed_kmh * 3600)
