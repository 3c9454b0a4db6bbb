"""Bounded FIFO of pending commit log entries."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Generic, TypeVar

from tracewire.diagnostics import get_logger

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_QUEUE_SIZE = 10_000


class CommitQueue(Generic[T]):
    """FIFO queue that drops the oldest entry once ``max_size`` is reached.

    All operations are synchronous, so on a single event loop an enqueue can
    never interleave with :meth:`dequeue_all`.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = max_size
        self._items: deque[T] = deque()
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    @property
    def max_size(self) -> int:
        return self._max_size

    def enqueue(self, item: T) -> None:
        if len(self._items) >= self._max_size:
            self._items.popleft()
            self.dropped += 1
            log.warning("commit_queue_full", max_size=self._max_size, dropped=self.dropped)
        self._items.append(item)

    def enqueue_all(self, items: Iterable[T]) -> None:
        for item in items:
            self.enqueue(item)

    def requeue(self, items: Iterable[T]) -> None:
        """Put ``items`` back at the head of the queue, ahead of newer entries.

        If the result exceeds ``max_size`` the oldest entries are dropped.
        """
        combined: deque[T] = deque(items)
        combined.extend(self._items)
        overflow = len(combined) - self._max_size
        for _ in range(max(0, overflow)):
            combined.popleft()
        if overflow > 0:
            self.dropped += overflow
            log.warning("commit_queue_full", max_size=self._max_size, dropped=self.dropped)
        self._items = combined

    def dequeue_all(self) -> list[T]:
        """Take every queued item, leaving the queue empty."""
        items, self._items = self._items, deque()
        return list(items)

    def peek(self) -> list[T]:
        """Snapshot of queued items without removing them."""
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
