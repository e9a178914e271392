"""View models for the map, favorites and history screens.

Nothing here draws anything: each view model turns API, location and
enrichment results into plain render state (list items, empty/error states,
help text, retry flags) for whatever front end sits on top.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ezpark.client import ApiClient, ApiError
from ezpark.errors import LocationErrorReason, LocationUnavailable
from ezpark.location import CoordinateProvider
from ezpark.models import ClientSpot, LocatedCoordinate, User
from ezpark.recent import HistoryStore
from ezpark.routing import RouteLookup, directions_url
from ezpark.services import enrich_spots, sort_by_distance

logger = logging.getLogger(__name__)

LIMITED_THRESHOLD = 10

LOCATION_MESSAGES: dict[str, dict[LocationErrorReason, str]] = {
    "en": {
        LocationErrorReason.PERMISSION_DENIED: (
            "Location access is blocked. Please allow location permission in your browser or device settings."
        ),
        LocationErrorReason.POSITION_UNAVAILABLE: (
            "Location information is unavailable. Try again later or check your internet connection."
        ),
        LocationErrorReason.TIMEOUT: "The location request timed out. Check your connection and try again.",
        LocationErrorReason.IN_PROGRESS: "Still finding your location...",
    },
    "fil": {
        LocationErrorReason.PERMISSION_DENIED: (
            "Hindi pinapayagan ang pag-access sa location. "
            "Pakibukas ang location permission sa iyong browser/device settings."
        ),
        LocationErrorReason.POSITION_UNAVAILABLE: (
            "Hindi available ang impormasyon ng lokasyon. Subukan muli mamaya o i-check ang internet connection."
        ),
        LocationErrorReason.TIMEOUT: (
            "Nag-timeout ang pag-request ng lokasyon. Pakisuri ang iyong koneksyon at subukan muli."
        ),
        LocationErrorReason.IN_PROGRESS: "Hinahanap pa ang iyong lokasyon...",
    },
}

LOCATION_HELP: dict[str, list[str]] = {
    "en": [
        "Turn on location services (GPS) on your device.",
        "Allow this site to use your location in the browser's site settings.",
        "Move near a window or outdoors for a better signal.",
        "Check that you are connected to the internet, then tap Retry.",
    ],
    "fil": [
        "Buksan ang location services (GPS) sa iyong device.",
        "Payagan ang site na gamitin ang iyong lokasyon sa settings ng browser.",
        "Lumapit sa bintana o lumabas para sa mas malakas na signal.",
        "Siguraduhing may internet connection, pagkatapos ay pindutin ang Retry.",
    ],
}


def location_error_message(reason: LocationErrorReason, language: str = "en") -> str:
    messages = LOCATION_MESSAGES.get(language, LOCATION_MESSAGES["en"])
    return messages.get(reason, messages[LocationErrorReason.POSITION_UNAVAILABLE])


def format_distance(spot: ClientSpot) -> str:
    d = getattr(spot, "distance_km", None)
    if d is None:
        return "Distance unknown"
    return f"{d:.1f} km away"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return ""
    return f"{math.ceil(seconds / 60)} min"


def format_hours(spot: ClientSpot) -> str:
    if spot.is_open_24_hours:
        return "24/7"
    if spot.opening_time and spot.closing_time:
        return f"{spot.opening_time} - {spot.closing_time}"
    return "Hours not specified"


def format_rate(spot: ClientSpot) -> str:
    if spot.price_per_hour:
        return f"{spot.currency}{spot.price_per_hour:g}/hour"
    return "Free"


def availability_status(spot: ClientSpot) -> str:
    if spot.available_spots == 0:
        return "Full"
    if spot.available_spots < LIMITED_THRESHOLD:
        return "Limited"
    return "Available"


@dataclass(frozen=True)
class SpotListItem:
    id: int
    name: str
    address: str
    distance: str
    duration: str
    spots_left: str
    rate: str
    hours: str
    status: str
    is_favorite: bool

    @classmethod
    def from_spot(cls, spot: ClientSpot) -> SpotListItem:
        return cls(
            id=spot.id,
            name=spot.name,
            address=spot.address,
            distance=format_distance(spot),
            duration=format_duration(getattr(spot, "duration_sec", None)),
            spots_left=f"{spot.available_spots} spots left",
            rate=format_rate(spot),
            hours=format_hours(spot),
            status=availability_status(spot),
            is_favorite=spot.is_favorite,
        )


@dataclass
class ListState:
    status: str = "loading"  # loading | ready | empty | error
    items: list[SpotListItem] = field(default_factory=list)
    message: str = ""
    can_retry: bool = False

    @classmethod
    def from_spots(cls, spots: Sequence[ClientSpot], empty_message: str) -> ListState:
        if not spots:
            return cls(status="empty", message=empty_message)
        return cls(status="ready", items=[SpotListItem.from_spot(s) for s in sort_by_distance(spots)])

    @classmethod
    def failed(cls, message: str) -> ListState:
        return cls(status="error", message=message, can_retry=True)


@dataclass(frozen=True)
class LocationErrorState:
    reason: LocationErrorReason
    message: str
    help: list[str]
    can_retry: bool = True


@dataclass(frozen=True)
class DirectionsAction:
    enabled: bool
    url: Optional[str] = None
    reason: str = ""


class MapViewModel:
    EMPTY_MESSAGE = "No parking spots found nearby"

    def __init__(
        self,
        api: ApiClient,
        provider: CoordinateProvider,
        lookup: RouteLookup,
        history: Optional[HistoryStore] = None,
        user: Optional[User] = None,
        language: str = "en",
    ):
        self.api = api
        self.provider = provider
        self.lookup = lookup
        self.history = history
        self.user = user
        self.language = language

        self.location: Optional[LocatedCoordinate] = None
        self.location_error: Optional[LocationErrorState] = None
        self.spots: list[ClientSpot] = []
        self.list_state = ListState()
        self.selected: Optional[ClientSpot] = None
        self._spots_loaded = False

    async def locate(self) -> bool:
        """Try to get the user's position. Failures become an error state, never an exception."""
        try:
            self.location = await self.provider.acquire_location()
        except LocationUnavailable as e:
            self.location_error = LocationErrorState(
                reason=e.reason,
                message=location_error_message(e.reason, self.language),
                help=LOCATION_HELP.get(self.language, LOCATION_HELP["en"]),
                can_retry=e.reason is not LocationErrorReason.IN_PROGRESS,
            )
            return False
        self.location_error = None
        return True

    def load_spots(self) -> bool:
        try:
            spots = self.api.list_spots()
        except ApiError as e:
            logger.error("Error fetching parking spots: %s", e)
            self.spots = []
            self._spots_loaded = False
            self.list_state = ListState.failed("Could not load parking spots.")
            return False

        self.spots = self._mark_favorites(spots)
        self._spots_loaded = True
        self.list_state = ListState.from_spots(self.spots, self.EMPTY_MESSAGE)
        return True

    async def refresh(self) -> ListState:
        located = await self.locate()
        if not self._spots_loaded and not await asyncio.to_thread(self.load_spots):
            return self.list_state

        if located and self.location is not None:
            self.spots = await enrich_spots(self.spots, self.location.to_coordinate(), self.lookup)
        self.list_state = ListState.from_spots(self.spots, self.EMPTY_MESSAGE)
        return self.list_state

    def _mark_favorites(self, spots: list[ClientSpot]) -> list[ClientSpot]:
        if self.user is None:
            return spots
        try:
            favorites = {s.id: s.favorite_id for s in self.api.list_favorites(self.user.id)}
        except ApiError as e:
            logger.warning("Could not load favorites: %s", e)
            return spots
        return [
            s.model_copy(update={"is_favorite": s.id in favorites, "favorite_id": favorites.get(s.id)})
            for s in spots
        ]

    def find(self, spot_id: int) -> Optional[ClientSpot]:
        return next((s for s in self.spots if s.id == spot_id), None)

    def select(self, spot: ClientSpot) -> SpotListItem:
        self.selected = spot
        if self.history is not None:
            self.history.record(spot)
        return SpotListItem.from_spot(spot)

    def close_detail(self) -> None:
        self.selected = None

    def toggle_favorite(self, spot: ClientSpot) -> ClientSpot:
        if self.user is None:
            raise ApiError(401, "Sign in to save favorites")

        if spot.is_favorite and spot.favorite_id is not None:
            self.api.remove_favorite(spot.favorite_id)
            updated = spot.model_copy(update={"is_favorite": False, "favorite_id": None})
        else:
            fav = self.api.add_favorite(self.user.id, spot.id)
            updated = spot.model_copy(update={"is_favorite": True, "favorite_id": fav.id})

        self.spots = [updated if s.id == spot.id else s for s in self.spots]
        if self.selected is not None and self.selected.id == spot.id:
            self.selected = updated
        self.list_state = ListState.from_spots(self.spots, self.EMPTY_MESSAGE)
        return updated

    def directions_for(self, spot: ClientSpot) -> DirectionsAction:
        if self.location is None:
            return DirectionsAction(enabled=False, reason="Find your location first")
        if spot.available_spots == 0:
            return DirectionsAction(enabled=False, reason="This parking spot is full")
        return DirectionsAction(enabled=True, url=directions_url(self.location.to_coordinate(), spot.location))


class FavoritesViewModel:
    EMPTY_MESSAGE = "You have no favorite parking spots yet."

    def __init__(self, api: ApiClient, user: User):
        self.api = api
        self.user = user
        self.spots: list[ClientSpot] = []
        self.list_state = ListState()

    def load(self) -> ListState:
        try:
            self.spots = self.api.list_favorites(self.user.id)
        except ApiError as e:
            logger.error("Error fetching favorites: %s", e)
            self.list_state = ListState.failed("Could not load your favorites.")
            return self.list_state
        self.list_state = ListState.from_spots(self.spots, self.EMPTY_MESSAGE)
        return self.list_state

    def remove(self, spot: ClientSpot) -> ListState:
        if spot.favorite_id is not None:
            self.api.remove_favorite(spot.favorite_id)
        return self.load()


class HistoryViewModel:
    EMPTY_MESSAGE = "You have no parking history yet."

    def __init__(self, history: HistoryStore):
        self.history = history

    def load(self) -> ListState:
        spots = self.history.items()
        if not spots:
            return ListState(status="empty", message=self.EMPTY_MESSAGE)
        # Most recent first, not by distance.
        return ListState(status="ready", items=[SpotListItem.from_spot(s) for s in spots])

    def clear(self) -> ListState:
        self.history.clear()
        return self.load()
