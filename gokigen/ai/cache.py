"""Bounded cache of successful AI responses."""

from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, TypeVar

V = TypeVar("V")


class ResponseCache(Generic[V]):
    """
    Exact-match response cache with a fixed capacity.

    When full, the entry inserted earliest is evicted. Lookups do not
    refresh an entry's position.
    """

    def __init__(self, capacity: int = 50):
        self.capacity = max(1, capacity)
        self._items: OrderedDict[Hashable, V] = OrderedDict()

    def get(self, key: Hashable) -> V | None:
        return self._items.get(key)

    def put(self, key: Hashable, value: V) -> None:
        if key in self._items:
            del self._items[key]
        self._items[key] = value
        while len(self._items) > self.capacity:
            self._items.popitem(last=False)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
