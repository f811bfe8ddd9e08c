"""Fixed-size FIFO ring of object references for one producer and one consumer.

The producer and consumer keep head and tail indexes that run over the whole
32-bit range. They are masked only when a slot is addressed, so the difference
of two indexes is always correct modulo 2**32. One slot always stays empty,
which tells a full ring apart from an empty one. The usable capacity is
therefore ``count - 1``.
"""

from __future__ import annotations

import argparse
from typing import Any, Iterable

CACHE_LINE_SIZE = 64
RING_SIZE_MASK = 0x0FFFFFFF
_U32 = 0xFFFFFFFF
_POINTER_SIZE = 8
# Producer and consumer status each occupy one cache line.
_HEADER_SIZE = 2 * CACHE_LINE_SIZE


class RingFullError(Exception):
    """Not enough room in the ring; nothing was enqueued."""


class RingEmptyError(Exception):
    """Not enough entries in the ring; nothing was dequeued."""


def _is_power_of_two(value: int) -> bool:
    return ((value - 1) & value) == 0


def memsize(count: int) -> int:
    """Return the bytes a ring of count slots occupies, cache-line aligned.

    Raises ValueError if count is not a power of two or exceeds the limit.
    """
    if count < 0 or not _is_power_of_two(count) or count > RING_SIZE_MASK:
        raise ValueError(f"invalid ring size {count}: must be a power of 2")
    size = _HEADER_SIZE + count * _POINTER_SIZE
    return size + (-size & (CACHE_LINE_SIZE - 1))


class RingBuffer:
    """Lockless ring for a single producer and a single consumer."""

    def __init__(self, count: int) -> None:
        memsize(count)
        if count < 1:
            raise ValueError("ring size must be at least 1")
        self.size = count
        self.mask = count - 1
        self.watermark = count
        self._ring: list[Any] = [None] * count
        self._prod_head = 0
        self._prod_tail = 0
        self._cons_head = 0
        self._cons_tail = 0

    def enqueue_many(self, items: Iterable[Any]) -> bool:
        """Enqueue all items or none.

        Returns True when the high watermark is exceeded after enqueueing.
        Raises RingFullError if there is not room for every item.
        """
        batch = list(items)
        n = len(batch)
        prod_head = self._prod_head
        free_entries = (self.mask + self._cons_tail - prod_head) & _U32
        if n > free_entries:
            raise RingFullError(f"no room for {n} item(s), {free_entries} free")

        prod_next = (prod_head + n) & _U32
        self._prod_head = prod_next
        for offset, item in enumerate(batch):
            self._ring[(prod_head + offset) & self.mask] = item
        self._prod_tail = prod_next

        return (self.mask + 1) - free_entries + n > self.watermark

    def dequeue_many(self, n: int) -> list[Any]:
        """Remove and return the n oldest items, or none.

        Raises RingEmptyError if fewer than n items are present.
        """
        if n < 0:
            raise ValueError("n must not be negative")
        cons_head = self._cons_head
        entries = (self._prod_tail - cons_head) & _U32
        if n > entries:
            raise RingEmptyError(f"requested {n} item(s), {entries} present")

        cons_next = (cons_head + n) & _U32
        self._cons_head = cons_next
        items = [self._ring[(cons_head + offset) & self.mask] for offset in range(n)]
        self._cons_tail = cons_next
        return items

    def enqueue(self, item: Any) -> bool:
        """Enqueue one item; see enqueue_many."""
        return self.enqueue_many((item,))

    def dequeue(self) -> Any:
        """Remove and return the oldest item; see dequeue_many."""
        return self.dequeue_many(1)[0]

    def is_full(self) -> bool:
        """Return True if no further item fits."""
        return ((self._cons_tail - self._prod_tail - 1) & self.mask) == 0

    def is_empty(self) -> bool:
        """Return True if the ring holds no item."""
        return self._cons_tail == self._prod_tail

    def __len__(self) -> int:
        return (self._prod_tail - self._cons_tail) & _U32


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ring buffer self-check")
    parser.add_argument("--count", type=int, default=1 << 6)
    args = parser.parse_args(argv)

    try:
        ring = RingBuffer(args.count)
    except ValueError:
        print("Fail to create ring buffer.")
        return -1

    i = 0
    while not ring.is_full():
        ring.enqueue(i)
        i += 1

    expected = 0
    while not ring.is_empty():
        if ring.dequeue() != expected:
            return 1
        expected += 1
    return 0