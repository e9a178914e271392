import random

import pytest

from ezpark.geo import distance_km, haversine_km
from ezpark.models import Coordinate, UserCreate
from ezpark.repository import SpotRepository, UserRepository

from conftest import make_spot


def test_seed_spots_get_sequential_ids(storage):
    spots = storage.spots.get_all()
    assert len(spots) == 18
    assert [s.id for s in spots] == list(range(1, 19))
    first = storage.spots.get_by_id(1)
    assert first.name == "SM Mall Parking"
    assert first.location == Coordinate(latitude=14.5547, longitude=121.0244)
    assert first.available_spots == 45


def test_create_assigns_next_id():
    repo = SpotRepository([make_spot("A"), make_spot("B")])
    created = repo.create(make_spot("C"))
    assert created.id == 3
    assert repo.get_by_id(3).name == "C"
    assert repo.get_by_id(99) is None


def test_haversine_known_distance():
    # Makati to Quezon City, roughly 11 km
    d = haversine_km(14.5547, 121.0244, 14.6561, 121.0311)
    assert 11.0 < d < 11.6
    assert haversine_km(14.5, 121.0, 14.5, 121.0) == 0.0


def test_radius_search_contains_point_itself(storage):
    found = storage.spots.get_by_radius(Coordinate(latitude=14.5547, longitude=121.0244), 1)
    ids = {s.id for s in found}
    assert 1 in ids
    assert 13 not in ids  # Intramuros is several km away


def test_zero_radius_excludes_distant_spot():
    repo = SpotRepository([make_spot(lat=14.5547, lng=121.0244)])
    # about 50 km north
    origin = Coordinate(latitude=14.5547 + 0.45, longitude=121.0244)
    assert distance_km(origin, repo.get_by_id(1).location) > 49
    assert repo.get_by_radius(origin, 0) == []


def test_radius_search_only_returns_spots_within_radius(storage):
    rng = random.Random(1234)
    for _ in range(200):
        origin = Coordinate(latitude=rng.uniform(14.3, 14.8), longitude=rng.uniform(120.8, 121.2))
        radius = rng.uniform(0, 20)
        found = storage.spots.get_by_radius(origin, radius)
        for spot in found:
            assert distance_km(origin, spot.location) <= radius
        missing = [s for s in storage.spots.get_all() if s not in found]
        for spot in missing:
            assert distance_km(origin, spot.location) > radius


def test_update_availability():
    repo = SpotRepository([make_spot(total_spots=10, available_spots=5)])
    updated = repo.update_availability(1, 0)
    assert updated.available_spots == 0
    assert repo.get_by_id(1).available_spots == 0


def test_update_availability_unknown_id_returns_none():
    repo = SpotRepository([make_spot()])
    assert repo.update_availability(42, 3) is None


def test_update_availability_rejects_over_capacity():
    repo = SpotRepository([make_spot(total_spots=10, available_spots=5)])
    with pytest.raises(ValueError):
        repo.update_availability(1, 11)
    assert repo.get_by_id(1).available_spots == 5


def test_spot_rejects_available_over_total():
    with pytest.raises(ValueError):
        make_spot(total_spots=3, available_spots=4)


def test_user_create_is_keyed_by_uid():
    users = UserRepository()
    first = users.create(UserCreate(uid="abc", email="a@example.com", display_name="Ana"))
    again = users.create(UserCreate(uid="abc", email="a@example.com"))
    assert first.id == again.id == 1
    assert users.get_by_uid("abc") == first
    assert users.get_by_email("A@example.com") == first
    assert len(users.all()) == 1


def test_user_email_must_be_unique():
    users = UserRepository()
    users.create(UserCreate(uid="abc", email="a@example.com"))
    with pytest.raises(ValueError):
        users.create(UserCreate(uid="other", email="a@example.com"))
