"""Fixed-capacity FIFO buffer used for every bounded history in the pipeline."""

from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Fixed-capacity FIFO backed by a preallocated arena.

    Appending to a full buffer overwrites the oldest item in O(1), so bounded
    histories never pay for removal from the front of a list. Iteration yields
    items oldest first.

    Not thread-safe on its own; owners that are shared across threads guard
    their mutating methods with a lock.

    Example:
        ```python
        buf = RingBuffer(capacity=3)
        for x in [1, 2, 3, 4]:
            buf.append(x)
        list(buf)      # [2, 3, 4]
        buf.latest(2)  # [3, 4]
        ```
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")

        self.capacity = capacity
        self._arena: list[T | None] = [None] * capacity
        self._read = 0
        self._write = 0
        self._size = 0

    def append(self, item: T) -> T | None:
        """
        Append an item, evicting the oldest one if the buffer is full.

        Returns:
            The evicted item, or None if nothing was evicted
        """
        evicted = None
        if self._size == self.capacity:
            evicted = self._arena[self._read]
            self._read = (self._read + 1) % self.capacity
        else:
            self._size += 1

        self._arena[self._write] = item
        self._write = (self._write + 1) % self.capacity
        return evicted

    def popleft(self) -> T:
        """Remove and return the oldest item."""
        if self._size == 0:
            raise IndexError("pop from empty RingBuffer")

        item = self._arena[self._read]
        self._arena[self._read] = None
        self._read = (self._read + 1) % self.capacity
        self._size -= 1
        return item

    def clear(self) -> None:
        self._arena = [None] * self.capacity
        self._read = 0
        self._write = 0
        self._size = 0

    def latest(self, n: int) -> list[T]:
        """Return up to the n most recent items, oldest first."""
        if n <= 0:
            return []
        items = self.to_list()
        return items[-n:]

    def oldest(self, n: int) -> list[T]:
        """Return up to the n oldest items, oldest first."""
        if n <= 0:
            return []
        return self.to_list()[:n]

    def to_list(self) -> list[T]:
        return [self._arena[(self._read + i) % self.capacity] for i in range(self._size)]

    @property
    def is_full(self) -> bool:
        return self._size == self.capacity

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_list())

    def __getitem__(self, index: int) -> T:
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("RingBuffer index out of range")
        return self._arena[(self._read + index) % self.capacity]

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, size={self._size})"
