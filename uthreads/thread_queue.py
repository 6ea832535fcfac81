"""Bounded FIFO queue of integers used as the scheduler's ready queue."""

from __future__ import annotations

from collections import deque
from typing import Iterator

DEFAULT_CAPACITY = 128


class QueueFullError(Exception):
    """Raised when enqueueing onto a queue that is at capacity."""


class QueueEmptyError(Exception):
    """Raised when dequeueing or peeking at an empty queue."""


class IntQueue:
    """A first-in, first-out queue of integers with a fixed capacity."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._items: deque[int] = deque()

    @property
    def capacity(self) -> int:
        """The maximum number of items the queue can hold."""
        return self._capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        """Iterate from head to tail without consuming items."""
        return iter(list(self._items))

    def __contains__(self, value: object) -> bool:
        return value in self._items

    def __repr__(self) -> str:
        return f"IntQueue({list(self._items)!r}, capacity={self._capacity})"

    def is_empty(self) -> bool:
        return not self._items

    def is_full(self) -> bool:
        return len(self._items) >= self._capacity

    def enqueue(self, value: int) -> None:
        """Append ``value`` at the tail."""
        if self.is_full():
            raise QueueFullError(f"queue is full (capacity {self._capacity})")
        self._items.append(value)

    def dequeue(self) -> int:
        """Remove and return the item at the head."""
        if not self._items:
            raise QueueEmptyError("dequeue from empty queue")
        return self._items.popleft()

    def peek(self) -> int:
        """Return the item at the head without removing it."""
        if not self._items:
            raise QueueEmptyError("peek at empty queue")
        return self._items[0]

    def delete(self, value: int) -> bool:
        """Remove the first occurrence of ``value``; return whether one was found."""
        try:
            self._items.remove(value)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        """Remove every item."""
        self._items.clear()