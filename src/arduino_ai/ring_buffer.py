"""Fixed-capacity ring buffer used for serial telemetry."""

from __future__ import annotations

from typing import Any, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Bounded FIFO buffer with O(1) append and eviction of the oldest item.

    Usage:
        buffer = RingBuffer(capacity=3)
        for line in ("a", "b", "c", "d"):
            buffer.append(line)
        buffer.tail(2)  # ["c", "d"]
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: list[Optional[T]] = [None] * capacity
        self._head = 0  # index of the oldest item
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        """Iterate oldest to newest."""
        for i in range(self._size):
            yield self._items[(self._head + i) % self.capacity]

    def append(self, item: T) -> None:
        if self._size < self.capacity:
            self._items[(self._head + self._size) % self.capacity] = item
            self._size += 1
        else:
            self._items[self._head] = item
            self._head = (self._head + 1) % self.capacity

    def tail(self, n: int) -> list[T]:
        """Return the newest n items, oldest first."""
        n = max(0, min(int(n), self._size))
        start = self._head + self._size - n
        return [self._items[(start + i) % self.capacity] for i in range(n)]

    def clear(self) -> None:
        self._items = [None] * self.capacity
        self._head = 0
        self._size = 0

    def to_list(self) -> list[Any]:
        return list(self)
