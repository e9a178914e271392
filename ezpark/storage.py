from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ezpark.data_loader import load_spots_from_file
from ezpark.favorites import FavoritesStore
from ezpark.repository import SpotRepository, UserRepository

logger = logging.getLogger(__name__)


@dataclass
class Storage:
    """Process-wide tables handed to the API at start-up."""

    spots: SpotRepository = field(default_factory=SpotRepository)
    users: UserRepository = field(default_factory=UserRepository)
    favorites: FavoritesStore | None = None

    def __post_init__(self) -> None:
        if self.favorites is None:
            self.favorites = FavoritesStore(self.spots)


def build_storage(seed_path: str | None, currency: str | None = None) -> Storage:
    if not seed_path:
        return Storage()

    kwargs = {"currency": currency} if currency else {}
    result = load_spots_from_file(seed_path, **kwargs)
    logger.info(
        "Loaded %d parking spots from %s (%d rows skipped)",
        len(result.spots),
        result.source,
        result.skipped,
    )
    return Storage(spots=SpotRepository(result.spots))
