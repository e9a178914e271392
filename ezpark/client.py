from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from ezpark.config import settings
from ezpark.models import ClientSpot, Favorite, User

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class ApiClient:
    """Thin requests wrapper over the EzPark HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as e:
            raise ApiError(0, f"Request to {path} failed: {e}") from e

        if resp.status_code == 204 or not resp.content:
            if not resp.ok:
                raise ApiError(resp.status_code, resp.reason or "Request failed")
            return None

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.ok:
            detail = data.get("detail") if isinstance(data, dict) else None
            raise ApiError(resp.status_code, str(detail or resp.reason or "Request failed"))
        return data

    # Users

    def get_user_by_uid(self, uid: str) -> User:
        return User.model_validate(self._request("GET", f"/api/users/uid/{uid}"))

    def create_user(self, uid: str, email: str, display_name: Optional[str] = None) -> User:
        body: dict[str, Any] = {"uid": uid, "email": email}
        if display_name:
            body["displayName"] = display_name
        return User.model_validate(self._request("POST", "/api/users", json=body))

    def ensure_user(self, uid: str, email: str, display_name: Optional[str] = None) -> User:
        """Backend user for an externally authenticated identity, created on first contact."""
        try:
            return self.get_user_by_uid(uid)
        except ApiError as e:
            if e.status_code != 404:
                raise
        logger.info("No backend user for uid %s yet, creating one", uid)
        return self.create_user(uid, email, display_name)

    # Parking spots

    def list_spots(self) -> list[ClientSpot]:
        return [ClientSpot.model_validate(row) for row in self._request("GET", "/api/parking-spots")]

    def get_spot(self, spot_id: int) -> ClientSpot:
        return ClientSpot.model_validate(self._request("GET", f"/api/parking-spots/{spot_id}"))

    def search_spots(self, lat: float, lng: float, radius_km: Optional[float] = None) -> list[ClientSpot]:
        params: dict[str, Any] = {"lat": lat, "lng": lng}
        if radius_km is not None:
            params["radius"] = radius_km
        rows = self._request("GET", "/api/parking-spots/search", params=params)
        return [ClientSpot.model_validate(row) for row in rows]

    def update_availability(self, spot_id: int, available_spots: int) -> ClientSpot:
        row = self._request(
            "PATCH",
            f"/api/parking-spots/{spot_id}/availability",
            json={"availableSpots": available_spots},
        )
        return ClientSpot.model_validate(row)

    # Favorites

    def list_favorites(self, user_id: int) -> list[ClientSpot]:
        return [ClientSpot.model_validate(row) for row in self._request("GET", f"/api/favorites/{user_id}")]

    def add_favorite(self, user_id: int, parking_spot_id: int) -> Favorite:
        row = self._request("POST", "/api/favorites", json={"userId": user_id, "parkingSpotId": parking_spot_id})
        return Favorite.model_validate(row)

    def remove_favorite(self, favorite_id: int) -> None:
        self._request("DELETE", f"/api/favorites/{favorite_id}")
