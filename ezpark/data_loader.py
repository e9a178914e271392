from __future__ import annotations

import csv
import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Iterable

from pydantic import ValidationError as SchemaError

from ezpark.models import DEFAULT_CURRENCY, Coordinate, ParkingSpot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    spots: list[ParkingSpot]
    source: str
    skipped: int = 0


def _try_parse_float(v: object) -> float | None:
    """Lenient float parse for CSV/JSON cells; blanks, bools and NaN/inf give None."""
    if v is None or isinstance(v, bool):
        return None
    if not isinstance(v, (int, float)):
        v = str(v).strip()
        if not v:
            return None
    try:
        f = float(v)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


def _try_parse_int(v: object) -> int | None:
    f = _try_parse_float(v)
    return None if f is None else int(f)


def _parse_bool(v: object) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in ("1", "true", "yes", "y")


def _row_get(row: dict, keys: Iterable[str]) -> object | None:
    # first non-blank value among the accepted column names
    for k in keys:
        v = row.get(k)
        if v is not None and v != "":
            return v
    return None


def _optional_str(row: dict, keys: Iterable[str]) -> str | None:
    v = _row_get(row, keys)
    return str(v).strip() if v is not None else None


def _normalize_spot(row: dict, currency: str = DEFAULT_CURRENCY) -> ParkingSpot | None:
    lat = _try_parse_float(_row_get(row, ["latitude", "lat", "LAT", "Y"]))
    lon = _try_parse_float(_row_get(row, ["longitude", "lng", "lon", "LON", "X"]))
    name = _optional_str(row, ["name", "NAME", "label", "LOT_NAME"])
    address = _optional_str(row, ["address", "ADDRESS", "street", "location"])
    total = _try_parse_int(_row_get(row, ["totalSpots", "total_spots", "capacity", "CAPACITY"]))
    if lat is None or lon is None or not name or address is None or total is None:
        return None

    available = _try_parse_int(_row_get(row, ["availableSpots", "available_spots", "available"]))

    try:
        return ParkingSpot(
            name=name,
            address=address,
            location=Coordinate(latitude=lat, longitude=lon),
            total_spots=total,
            available_spots=total if available is None else available,
            price_per_hour=_try_parse_float(_row_get(row, ["pricePerHour", "price_per_hour", "rate"])),
            currency=_optional_str(row, ["currency"]) or currency,
            is_open_24_hours=_parse_bool(_row_get(row, ["isOpen24Hours", "is_open_24_hours"])),
            opening_time=_optional_str(row, ["openingTime", "opening_time"]),
            closing_time=_optional_str(row, ["closingTime", "closing_time"]),
            has_security_guard=_parse_bool(_row_get(row, ["hasSecurityGuard", "has_security_guard"])),
            has_card_payment=_parse_bool(_row_get(row, ["hasCardPayment", "has_card_payment"])),
            has_accessible_parking=_parse_bool(
                _row_get(row, ["hasAccessibleParking", "has_accessible_parking"])
            ),
            has_ev_charging=_parse_bool(_row_get(row, ["hasEvCharging", "has_ev_charging"])),
        )
    except SchemaError as e:
        logger.warning("Skipping invalid spot row %r: %s", name, e)
        return None


def _collect(rows: Iterable[object], source: str, currency: str) -> LoadResult:
    spots: list[ParkingSpot] = []
    skipped = 0
    for row in rows:
        s = _normalize_spot(row, currency) if isinstance(row, dict) else None
        if s is None:
            skipped += 1
            continue
        spots.append(s)
    return LoadResult(spots=spots, source=source, skipped=skipped)


def load_spots_from_file(path: str, currency: str = DEFAULT_CURRENCY) -> LoadResult:
    """Read seed spots from a CSV file or a JSON list of objects.

    Rows missing a coordinate, name, address or capacity are skipped.
    Returned spots carry no id yet; the repository assigns them.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Parking spot seed file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return _collect(list(csv.DictReader(f)), path, currency)

    if ext == ".json":
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
        if isinstance(obj, dict) and isinstance(obj.get("spots"), list):
            obj = obj["spots"]
        if isinstance(obj, list):
            return _collect(obj, path, currency)
        raise ValueError(f"Unsupported JSON structure in {path}")

    raise ValueError(f"Unsupported file extension: {ext} (expected .csv/.json)")
