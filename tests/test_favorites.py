from ezpark.favorites import FavoritesStore
from ezpark.repository import FavoriteTable, SpotRepository

from conftest import make_spot


def _store():
    spots = SpotRepository([make_spot("A"), make_spot("B")])
    return FavoritesStore(spots)


def test_add_is_idempotent():
    store = _store()
    first = store.add(1, 1)
    second = store.add(1, 1)
    assert first.id == second.id
    assert store.count() == 1
    assert [s.id for s in store.list(1)] == [1]


def test_favorites_are_per_user():
    store = _store()
    store.add(1, 1)
    store.add(2, 1)
    store.add(2, 2)
    assert store.count() == 3
    assert [s.id for s in store.list(1)] == [1]
    assert [s.id for s in store.list(2)] == [1, 2]
    assert store.list(3) == []


def test_remove_missing_id_is_noop():
    store = _store()
    store.add(1, 1)
    store.remove(999)
    assert store.count() == 1


def test_remove_deletes_row():
    store = _store()
    fav = store.add(1, 2)
    store.remove(fav.id)
    assert store.count() == 0
    assert store.list(1) == []


def test_list_skips_favorites_of_missing_spots():
    spots = SpotRepository([make_spot("A")])
    table = FavoriteTable()
    store = FavoritesStore(spots, table)
    store.add(1, 1)
    store.add(1, 7)
    assert store.count() == 2
    assert [s.id for s in store.list(1)] == [1]
    assert [(f.parking_spot_id, s.id) for f, s in store.entries(1)] == [(1, 1)]
