from __future__ import annotations

import threading
from typing import List

from rightprops.domain.entities.property_map import PropertyMap


class ResultSet:
    """Append-only, unordered collection of completed property maps shared by all workers."""

    def __init__(self) -> None:
        self._items: List[PropertyMap] = []
        self._lock = threading.Lock()

    def add(self, props: PropertyMap) -> None:
        with self._lock:
            self._items.append(props)

    def snapshot(self) -> List[PropertyMap]:
        with self._lock:
            return list(self._items)

    def discard(self) -> int:
        """Drop everything collected so far (failed run); returns how many were dropped."""
        with self._lock:
            n = len(self._items)
            self._items = []
            return n

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
