from __future__ import annotations

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_CURRENCY = "₱"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)


class LocatedCoordinate(Coordinate):
    accuracy: float = Field(ge=0)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class ParkingSpot(CamelModel):
    """Internal storage shape. Never serialized directly; see ClientSpot."""

    id: int = 0
    name: str
    address: str
    location: Coordinate
    total_spots: int = Field(ge=0)
    available_spots: int = Field(ge=0)
    price_per_hour: float | None = Field(default=None, ge=0)
    currency: str = DEFAULT_CURRENCY
    is_open_24_hours: bool = False
    opening_time: str | None = None
    closing_time: str | None = None
    has_security_guard: bool = False
    has_card_payment: bool = False
    has_accessible_parking: bool = False
    has_ev_charging: bool = False

    @model_validator(mode="after")
    def _check_capacity(self) -> ParkingSpot:
        if self.available_spots > self.total_spots:
            raise ValueError("available_spots cannot exceed total_spots")
        return self


class SpotFeatures(CamelModel):
    has_security_guard: bool = False
    has_card_payment: bool = False
    has_accessible_parking: bool = False
    has_ev_charging: bool = False


class ClientSpot(CamelModel):
    id: int
    name: str
    address: str
    latitude: float
    longitude: float
    available_spots: int
    total_spots: int
    price_per_hour: float | None = None
    currency: str = DEFAULT_CURRENCY
    is_open_24_hours: bool = False
    opening_time: str | None = None
    closing_time: str | None = None
    features: SpotFeatures = Field(default_factory=SpotFeatures)
    is_favorite: bool = False
    favorite_id: int | None = None

    @classmethod
    def from_spot(
        cls,
        spot: ParkingSpot,
        *,
        is_favorite: bool = False,
        favorite_id: int | None = None,
    ) -> ClientSpot:
        return cls(
            id=spot.id,
            name=spot.name,
            address=spot.address,
            latitude=spot.location.latitude,
            longitude=spot.location.longitude,
            available_spots=spot.available_spots,
            total_spots=spot.total_spots,
            price_per_hour=spot.price_per_hour,
            currency=spot.currency,
            is_open_24_hours=spot.is_open_24_hours,
            opening_time=spot.opening_time,
            closing_time=spot.closing_time,
            features=SpotFeatures(
                has_security_guard=spot.has_security_guard,
                has_card_payment=spot.has_card_payment,
                has_accessible_parking=spot.has_accessible_parking,
                has_ev_charging=spot.has_ev_charging,
            ),
            is_favorite=is_favorite,
            favorite_id=favorite_id,
        )

    @property
    def location(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class EnrichedParkingSpot(ClientSpot):
    distance_km: float | None = None
    duration_sec: float | None = None


class RouteEstimate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)

    distance_km: float
    duration_sec: float

    @property
    def formatted_distance(self) -> str:
        return f"{self.distance_km:.1f} km"

    @property
    def formatted_duration(self) -> str:
        return f"{math.ceil(self.duration_sec / 60)} min"


class Favorite(CamelModel):
    id: int
    user_id: int
    parking_spot_id: int
    created_at: datetime


class User(CamelModel):
    id: int
    uid: str | None = None
    email: str
    display_name: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")
    provider: str | None = None
    created_at: datetime


class UserCreate(CamelModel):
    uid: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    display_name: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")
    provider: str | None = None


class FavoriteCreate(CamelModel):
    user_id: StrictInt
    parking_spot_id: StrictInt


class AvailabilityUpdate(CamelModel):
    available_spots: StrictInt = Field(ge=0)


class SpotSearch(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius: float = Field(default=5.0, ge=0)
