from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError

from ezpark.config import Settings, settings as default_settings
from ezpark.errors import EzParkError, InternalError, NotFoundError, ValidationError
from ezpark.logging_setup import configure_logging
from ezpark.models import (
    AvailabilityUpdate,
    ClientSpot,
    Coordinate,
    Favorite,
    FavoriteCreate,
    SpotSearch,
    User,
    UserCreate,
)
from ezpark.services import find_nearby
from ezpark.storage import Storage, build_storage

logger = logging.getLogger(__name__)

# int64-sized; longer digit runs are rejected before int() sees them
_ID_RE = re.compile(r"[+-]?[0-9]{1,18}")


def parse_id(raw: str, what: str) -> int:
    """Numeric path ids arrive as text so a bad one is a 400, not a framework 422.

    Signed integers parse; an id that matches no row is the caller's 404.
    """
    raw = (raw or "").strip()
    if not _ID_RE.fullmatch(raw):
        raise ValidationError(f"Invalid {what}")
    return int(raw)


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def ezpark_error_handler(request: Request, exc: EzParkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    detail = "Invalid request data"
    if any(fields):
        detail = f"{detail}: {', '.join(f for f in fields if f)}"
    return JSONResponse(status_code=400, content={"detail": detail})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return await ezpark_error_handler(request, InternalError("Internal server error"))


def create_app(storage: Storage | None = None, config: Settings = default_settings) -> FastAPI:
    if storage is None:
        storage = build_storage(config.seed_path, config.default_currency)

    app = FastAPI(title="EzPark API", version="0.1.0")
    app.state.storage = storage
    app.state.settings = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EzParkError, ezpark_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.get("/health")
    def health(storage: Storage = Depends(get_storage)):
        return {"status": "ok", "spotsLoaded": len(storage.spots)}

    # Users

    @app.get("/api/users/uid", include_in_schema=False)
    @app.get("/api/users/uid/", include_in_schema=False)
    def get_user_missing_uid():
        raise ValidationError("Missing uid")

    @app.get("/api/users/uid/{uid}", response_model=User)
    def get_user_by_uid(uid: str, storage: Storage = Depends(get_storage)) -> User:
        uid = uid.strip()
        if not uid:
            raise ValidationError("Missing uid")
        user = storage.users.get_by_uid(uid)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @app.post("/api/users", response_model=User, status_code=201)
    def create_user(body: UserCreate, storage: Storage = Depends(get_storage)) -> User:
        try:
            return storage.users.create(body)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    # Parking spots

    @app.get("/api/parking-spots", response_model=list[ClientSpot])
    def list_spots(storage: Storage = Depends(get_storage)) -> list[ClientSpot]:
        return [ClientSpot.from_spot(s) for s in storage.spots.get_all()]

    # Registered before /{spot_id} so "search" is not taken for an id.
    @app.get("/api/parking-spots/search", response_model=list[ClientSpot])
    def search_spots(
        lat: Optional[str] = None,
        lng: Optional[str] = None,
        radius: Optional[str] = None,
        storage: Storage = Depends(get_storage),
        config: Settings = Depends(get_settings),
    ) -> list[ClientSpot]:
        """
        Parking spots within ``radius`` km (default 5) of ``lat``/``lng``.
        """
        if radius in (None, ""):
            radius = config.default_search_radius_km
        raw = {"lat": lat, "lng": lng, "radius": radius}
        try:
            query = SpotSearch.model_validate(raw)
        except SchemaError as e:
            raise ValidationError("Invalid search parameters") from e

        origin = Coordinate(latitude=query.lat, longitude=query.lng)
        return find_nearby(storage.spots, origin, query.radius)

    @app.get("/api/parking-spots/{spot_id}", response_model=ClientSpot)
    def get_spot(spot_id: str, storage: Storage = Depends(get_storage)) -> ClientSpot:
        spot = storage.spots.get_by_id(parse_id(spot_id, "parking spot ID"))
        if spot is None:
            raise NotFoundError("Parking spot not found")
        return ClientSpot.from_spot(spot)

    @app.patch("/api/parking-spots/{spot_id}/availability", response_model=ClientSpot)
    def update_availability(
        spot_id: str,
        body: AvailabilityUpdate,
        storage: Storage = Depends(get_storage),
    ) -> ClientSpot:
        sid = parse_id(spot_id, "parking spot ID")
        spot = storage.spots.get_by_id(sid)
        if spot is None:
            raise NotFoundError("Parking spot not found")
        if body.available_spots > spot.total_spots:
            raise ValidationError(f"availableSpots cannot exceed totalSpots ({spot.total_spots})")

        updated = storage.spots.update_availability(sid, body.available_spots)
        if updated is None:
            raise NotFoundError("Parking spot not found")
        return ClientSpot.from_spot(updated)

    # Favorites

    @app.get("/api/favorites/{user_id}", response_model=list[ClientSpot])
    def list_favorites(user_id: str, storage: Storage = Depends(get_storage)) -> list[ClientSpot]:
        uid = parse_id(user_id, "user ID")
        return [
            ClientSpot.from_spot(spot, is_favorite=True, favorite_id=fav.id)
            for fav, spot in storage.favorites.entries(uid)
        ]

    @app.post("/api/favorites", response_model=Favorite, status_code=201)
    def add_favorite(body: FavoriteCreate, storage: Storage = Depends(get_storage)) -> Favorite:
        return storage.favorites.add(body.user_id, body.parking_spot_id)

    @app.delete("/api/favorites/{favorite_id}", status_code=204)
    def remove_favorite(favorite_id: str, storage: Storage = Depends(get_storage)) -> Response:
        storage.favorites.remove(parse_id(favorite_id, "favorite ID"))
        return Response(status_code=204)

    return app


def run(host: str | None = None, port: int | None = None, config: Settings = default_settings) -> None:
    import uvicorn

    configure_logging(config.log_level)
    uvicorn.run(create_app(config=config), host=host or config.host, port=port or config.port)
