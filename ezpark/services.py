from __future__ import annotations

import asyncio
import logging
from typing import Sequence, TypeVar

from ezpark.errors import RouteLookupFailed
from ezpark.models import ClientSpot, Coordinate, EnrichedParkingSpot
from ezpark.repository import SpotRepository
from ezpark.routing import RouteLookup

logger = logging.getLogger(__name__)

# Spots whose distance is unknown sort as if they were this far away.
UNKNOWN_DISTANCE_KM = 999.0

S = TypeVar("S", bound=ClientSpot)


def _sort_key(spot: ClientSpot) -> float:
    d = getattr(spot, "distance_km", None)
    return UNKNOWN_DISTANCE_KM if d is None else d


def sort_by_distance(spots: Sequence[S]) -> list[S]:
    """Stable ascending sort; unknown distances keep their relative order at the end."""
    return sorted(spots, key=_sort_key)


async def _enrich_one(spot: ClientSpot, origin: Coordinate, lookup: RouteLookup) -> EnrichedParkingSpot:
    base = spot.model_dump(exclude={"distance_km", "duration_sec"})
    try:
        route = await asyncio.to_thread(lookup.lookup_distance, origin, spot.location)
    except RouteLookupFailed as e:
        logger.warning("Distance lookup failed for spot %s: %s", spot.id, e)
        return EnrichedParkingSpot(**base)
    except Exception:
        logger.warning("Distance lookup crashed for spot %s", spot.id, exc_info=True)
        return EnrichedParkingSpot(**base)
    return EnrichedParkingSpot(**base, distance_km=route.distance_km, duration_sec=route.duration_sec)


async def enrich_spots(
    spots: Sequence[ClientSpot],
    origin: Coordinate | None,
    lookup: RouteLookup,
) -> list[ClientSpot]:
    """Attach driving distance/duration from ``origin`` to every spot.

    - An invalid origin returns the spots unchanged, in the same order.
    - Lookups run concurrently; a failed lookup leaves that spot without
      distance instead of dropping it, so the output length always matches.
    - The result is sorted by distance with unknowns last.
    """
    if not spots:
        return []

    if origin is None or not origin.is_valid():
        logger.error("Invalid origin for enrichment: %r", origin)
        return list(spots)

    enriched = await asyncio.gather(*(_enrich_one(s, origin, lookup) for s in spots))
    logger.debug("Enriched %d spots, sorting by distance", len(enriched))
    return sort_by_distance(enriched)


def find_nearby(
    repository: SpotRepository,
    origin: Coordinate,
    radius_km: float,
) -> list[ClientSpot]:
    return [ClientSpot.from_spot(s) for s in repository.get_by_radius(origin, radius_km)]
