from __future__ import annotations

import logging

from ezpark.models import Favorite, ParkingSpot
from ezpark.repository import FavoriteTable, SpotRepository

logger = logging.getLogger(__name__)


class FavoritesStore:
    """Per-user bookmarks joined against the spot repository.

    There is no cascading delete, so rows pointing at a missing spot are
    skipped when listing.
    """

    def __init__(self, spots: SpotRepository, table: FavoriteTable | None = None):
        self._spots = spots
        self._table = table if table is not None else FavoriteTable()

    def count(self) -> int:
        return len(self._table)

    def entries(self, user_id: int) -> list[tuple[Favorite, ParkingSpot]]:
        out: list[tuple[Favorite, ParkingSpot]] = []
        for fav in self._table.for_user(user_id):
            spot = self._spots.get_by_id(fav.parking_spot_id)
            if spot is None:
                logger.debug("Favorite %s points at missing spot %s", fav.id, fav.parking_spot_id)
                continue
            out.append((fav, spot))
        return out

    def list(self, user_id: int) -> list[ParkingSpot]:
        return [spot for _, spot in self.entries(user_id)]

    def add(self, user_id: int, parking_spot_id: int) -> Favorite:
        fav, created = self._table.get_or_create(user_id, parking_spot_id)
        if created:
            logger.info("User %s favorited spot %s", user_id, parking_spot_id)
        return fav

    def remove(self, favorite_id: int) -> None:
        if self._table.delete(favorite_id):
            logger.info("Removed favorite %s", favorite_id)
