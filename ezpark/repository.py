from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

from ezpark.geo import distance_km
from ezpark.models import Coordinate, Favorite, ParkingSpot, User, UserCreate

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SpotRepository:
    """In-memory spot table: id -> spot plus a monotonic id counter.

    Radius queries scan every row; fine for the tens of seeded spots,
    not for a real dataset.
    """

    def __init__(self, spots: Iterable[ParkingSpot] = ()):
        self._rows: dict[int, ParkingSpot] = {}
        self._next_id = 1
        self._lock = threading.RLock()
        for s in spots:
            self.create(s)

    def __len__(self) -> int:
        return len(self._rows)

    def get_by_id(self, spot_id: int) -> ParkingSpot | None:
        return self._rows.get(spot_id)

    def get_all(self) -> list[ParkingSpot]:
        with self._lock:
            return list(self._rows.values())

    def get_by_radius(self, origin: Coordinate, radius_km: float) -> list[ParkingSpot]:
        return [s for s in self.get_all() if distance_km(origin, s.location) <= radius_km]

    def create(self, spot: ParkingSpot) -> ParkingSpot:
        with self._lock:
            stored = spot.model_copy(update={"id": self._next_id})
            self._rows[stored.id] = stored
            self._next_id += 1
        return stored

    def update_availability(self, spot_id: int, available_spots: int) -> ParkingSpot | None:
        with self._lock:
            spot = self._rows.get(spot_id)
            if spot is None:
                return None
            if not 0 <= available_spots <= spot.total_spots:
                raise ValueError(
                    f"available_spots must be between 0 and {spot.total_spots}, got {available_spots}"
                )
            updated = spot.model_copy(update={"available_spots": available_spots})
            self._rows[spot_id] = updated
        logger.info("Spot %s availability: %s/%s", spot_id, available_spots, updated.total_spots)
        return updated


class UserRepository:
    def __init__(self) -> None:
        self._rows: dict[int, User] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def get_by_uid(self, uid: str) -> User | None:
        with self._lock:
            return next((u for u in self._rows.values() if u.uid == uid), None)

    def get_by_email(self, email: str) -> User | None:
        email = email.lower()
        with self._lock:
            return next((u for u in self._rows.values() if u.email.lower() == email), None)

    def all(self) -> list[User]:
        with self._lock:
            return list(self._rows.values())

    def create(self, data: UserCreate) -> User:
        """Insert a user, or return the existing one for the same uid.

        Raises ValueError when the email already belongs to another uid.
        """
        with self._lock:
            existing = self.get_by_uid(data.uid)
            if existing is not None:
                return existing
            if self.get_by_email(data.email) is not None:
                raise ValueError(f"Email already registered: {data.email}")

            user = User(
                id=self._next_id,
                uid=data.uid,
                email=data.email,
                display_name=data.display_name,
                photo_url=data.photo_url,
                provider=data.provider,
                created_at=_now(),
            )
            self._rows[user.id] = user
            self._next_id += 1
        logger.info("Created user %s for uid %s", user.id, user.uid)
        return user


class FavoriteTable:
    def __init__(self) -> None:
        self._rows: dict[int, Favorite] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._rows)

    def for_user(self, user_id: int) -> list[Favorite]:
        with self._lock:
            return [f for f in self._rows.values() if f.user_id == user_id]

    def get_or_create(self, user_id: int, parking_spot_id: int) -> tuple[Favorite, bool]:
        with self._lock:
            for f in self._rows.values():
                if f.user_id == user_id and f.parking_spot_id == parking_spot_id:
                    return f, False
            fav = Favorite(
                id=self._next_id,
                user_id=user_id,
                parking_spot_id=parking_spot_id,
                created_at=_now(),
            )
            self._rows[fav.id] = fav
            self._next_id += 1
        return fav, True

    def delete(self, favorite_id: int) -> bool:
        with self._lock:
            return self._rows.pop(favorite_id, None) is not None

