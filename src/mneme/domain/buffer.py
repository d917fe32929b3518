"""Fixed-capacity FIFO buffer, independent of any storage backend."""

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """
    Keeps the most recent `capacity` items; appending to a full buffer
    evicts the oldest entry.
    """

    def __init__(self, capacity: int, items: Iterable[T] = ()):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._items: deque[T] = deque(items, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, item: T) -> T | None:
        """Append an item, returning the evicted one if the buffer was full."""
        evicted = None
        if len(self._items) == self.capacity:
            evicted = self._items[0]
        self._items.append(item)
        return evicted

    def tail(self, n: int) -> list[T]:
        if n <= 0:
            return []
        return list(self._items)[-n:]

    def to_list(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)
