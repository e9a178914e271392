import asyncio
import math

from ezpark.models import ClientSpot, Coordinate, EnrichedParkingSpot
from ezpark.routing import MapQuestRouteLookup
from ezpark.services import UNKNOWN_DISTANCE_KM, enrich_spots, find_nearby, sort_by_distance

from conftest import FakeLookup, make_spot

ORIGIN = Coordinate(latitude=14.55, longitude=121.02)


def _client_spots(n: int) -> list[ClientSpot]:
    return [ClientSpot.from_spot(make_spot(f"Lot {i}", lat=14.0 + i).model_copy(update={"id": i + 1})) for i in range(n)]


def _enrich(spots, origin, lookup):
    return asyncio.run(enrich_spots(spots, origin, lookup))


def test_enrich_empty_list():
    assert _enrich([], ORIGIN, FakeLookup()) == []


def test_enrich_invalid_origin_returns_input_unchanged():
    spots = _client_spots(3)
    lookup = FakeLookup()
    for origin in (None, Coordinate(latitude=math.nan, longitude=121.0), Coordinate(latitude=14.0, longitude=math.inf)):
        result = _enrich(spots, origin, lookup)
        assert result == spots
        assert [s.id for s in result] == [1, 2, 3]
    assert lookup.calls == []


def test_enrich_sorts_by_distance():
    spots = _client_spots(4)
    lookup = FakeLookup(distances={14.0: 3.5, 15.0: 0.4, 16.0: 12.0, 17.0: 1.2})
    result = _enrich(spots, ORIGIN, lookup)
    assert [s.id for s in result] == [2, 4, 1, 3]
    assert all(isinstance(s, EnrichedParkingSpot) for s in result)
    assert result[0].distance_km == 0.4
    assert result[0].duration_sec == 0.4 * 90
    assert len(lookup.calls) == 4
    assert all(origin == ORIGIN for origin, _ in lookup.calls)


def test_enrich_keeps_every_spot_when_lookups_fail():
    spots = _client_spots(6)
    failing = {14.0 + i for i in range(0, 6, 2)}
    lookup = FakeLookup(distances={15.0: 5.0, 17.0: 2.0, 19.0: 9.0}, fail_for=failing)
    result = _enrich(spots, ORIGIN, lookup)

    assert len(result) == len(spots)
    assert sorted(s.id for s in result) == [1, 2, 3, 4, 5, 6]
    # known distances first, ascending; failed ones last in input order
    assert [s.id for s in result] == [4, 2, 6, 1, 3, 5]
    assert [s.distance_km for s in result[3:]] == [None, None, None]


def test_enrich_all_failures_keeps_input_order():
    spots = _client_spots(3)
    lookup = FakeLookup(fail_for={14.0, 15.0, 16.0})
    result = _enrich(spots, ORIGIN, lookup)
    assert [s.id for s in result] == [1, 2, 3]
    assert all(s.distance_km is None and s.duration_sec is None for s in result)


def test_sorting_law_over_mixed_distances():
    spots = _client_spots(8)
    distances = {14.0: 2.0, 15.0: 2.0, 16.0: 0.1, 18.0: 998.0, 19.0: 7.5, 21.0: 0.0}
    lookup = FakeLookup(distances=distances, fail_for={17.0, 20.0})
    result = _enrich(spots, ORIGIN, lookup)

    known = [s for s in result if s.distance_km is not None]
    for a, b in zip(known, known[1:]):
        assert a.distance_km <= b.distance_km
    # ties keep input order
    assert [s.id for s in known if s.distance_km == 2.0] == [1, 2]
    # unknown distances come after every known one
    first_unknown = next(i for i, s in enumerate(result) if s.distance_km is None)
    assert all(s.distance_km is None for s in result[first_unknown:])
    assert [s.id for s in result[first_unknown:]] == [4, 7]


def test_zero_distance_counts_as_known():
    a, b = _client_spots(2)
    ordered = sort_by_distance(
        [
            EnrichedParkingSpot(**a.model_dump()),
            EnrichedParkingSpot(**b.model_dump(), distance_km=0.0, duration_sec=0.0),
        ]
    )
    assert [s.id for s in ordered] == [2, 1]
    assert UNKNOWN_DISTANCE_KM == 999.0


def test_find_nearby_returns_client_shape(storage):
    found = find_nearby(storage.spots, Coordinate(latitude=14.5547, longitude=121.0244), 1)
    assert all(isinstance(s, ClientSpot) for s in found)
    first = next(s for s in found if s.id == 1)
    assert first.features.has_ev_charging is True
    assert first.latitude == 14.5547


class CrashingLookup(FakeLookup):
    def lookup_distance(self, origin, destination):
        if destination.latitude == 15.0:
            raise ConnectionResetError("reset")
        return super().lookup_distance(origin, destination)


def test_unexpected_lookup_error_only_affects_that_spot():
    spots = _client_spots(3)
    result = _enrich(spots, ORIGIN, CrashingLookup(distances={14.0: 4.0, 16.0: 2.0}))
    assert [s.id for s in result] == [3, 1, 2]
    assert result[2].distance_km is None


class MatrixResponse:
    ok = True
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


class MatrixSession:
    """Route matrix answers keyed by the destination "lat,lng" string."""

    def __init__(self, payloads):
        self.payloads = payloads

    def post(self, url, params=None, json=None, timeout=None):
        return MatrixResponse(self.payloads[json["locations"][1]])


def test_malformed_route_matrix_replies_do_not_break_ordering():
    def ok(km):
        return {"info": {"statuscode": 0}, "distance": [0, km], "time": [0, km * 60]}

    session = MatrixSession(
        {
            "14.0,121.02": ok(5.0),
            "15.0,121.02": {"info": {"statuscode": 0}, "distance": [0, math.nan], "time": [0, 60]},
            "16.0,121.02": ok(1.0),
            "17.0,121.02": {"info": {"statuscode": 500, "messages": 7}},
            "18.0,121.02": ok(3.0),
        }
    )
    lookup = MapQuestRouteLookup(api_key="k", base_url="https://mq.test", session=session)
    result = _enrich(_client_spots(5), ORIGIN, lookup)

    assert len(result) == 5
    assert [s.distance_km for s in result] == [1.0, 3.0, 5.0, None, None]
    assert [s.id for s in result[3:]] == [2, 4]
