from __future__ import annotations

import json
import logging
import os
import threading
from collections import deque
from typing import Any, Callable, Generic, Hashable, Iterable, Iterator, TypeVar

from ezpark.config import Settings, settings as default_settings
from ezpark.models import ClientSpot

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 20


class RecentList(Generic[T]):
    """Most-recent-first list with a fixed capacity, unique by key.

    push() drops any item with the same key, inserts at the front and
    evicts from the back once over capacity.
    """

    def __init__(
        self,
        key: Callable[[T], Hashable],
        capacity: int = DEFAULT_CAPACITY,
        items: Iterable[T] = (),
    ):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._key = key
        self.capacity = capacity
        self._items: deque[T] = deque()
        # Loaded items are already most-recent-first; keep the first of any duplicates.
        for item in items:
            if len(self._items) >= capacity:
                break
            if self.find(key(item)) is None:
                self._items.append(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def find(self, key: Hashable) -> T | None:
        return next((i for i in self._items if self._key(i) == key), None)

    def remove(self, key: Hashable) -> bool:
        item = self.find(key)
        if item is None:
            return False
        self._items.remove(item)
        return True

    def push(self, item: T) -> None:
        self.remove(self._key(item))
        self._items.appendleft(item)
        while len(self._items) > self.capacity:
            self._items.pop()

    def clear(self) -> None:
        self._items.clear()

    def to_list(self) -> list[T]:
        return list(self._items)


class LocalStorage:
    """Key/value JSON file standing in for the browser's local storage."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable local storage %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Any | None:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def history_key(uid: str) -> str:
    return f"history_{uid}"


class HistoryStore:
    """Recently viewed spots for one signed-in user, kept on the client."""

    def __init__(self, storage: LocalStorage, uid: str, capacity: int = DEFAULT_CAPACITY):
        self._storage = storage
        self._key = history_key(uid)
        self._recent: RecentList[ClientSpot] = RecentList(
            key=lambda s: s.id,
            capacity=capacity,
            items=self._load(),
        )

    @classmethod
    def from_settings(cls, uid: str, config: Settings = default_settings) -> HistoryStore:
        return cls(LocalStorage(config.local_storage_path), uid, capacity=config.history_capacity)

    def _load(self) -> list[ClientSpot]:
        raw = self._storage.get_item(self._key)
        if not isinstance(raw, list):
            return []
        spots: list[ClientSpot] = []
        for row in raw:
            try:
                spots.append(ClientSpot.model_validate(row))
            except ValueError as e:
                logger.warning("Dropping malformed history entry: %s", e)
        return spots

    def _save(self) -> None:
        self._storage.set_item(
            self._key,
            [s.model_dump(mode="json", by_alias=True) for s in self._recent],
        )

    def record(self, spot: ClientSpot) -> None:
        self._recent.push(spot)
        self._save()

    def items(self) -> list[ClientSpot]:
        return self._recent.to_list()

    def clear(self) -> None:
        self._recent.clear()
        self._storage.remove_item(self._key)
