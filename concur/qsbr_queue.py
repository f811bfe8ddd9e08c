"""Epoch-based reclamation of nodes released by a concurrent FIFO queue."""

from __future__ import annotations

import argparse
import os
import threading
from dataclasses import dataclass
from typing import Any

LEHMER_MULTIPLIER = 48271
LEHMER_MODULUS = 2147483647


@dataclass
class ReclaimerLocal:
    """Per-thread view of the reclamation epoch."""

    epoch: int = 0


class EpochReclaimer:
    """Defers release of entries until every thread passed a quiescent state.

    Entries handed to ``free`` are returned by ``quiescent`` once it is safe
    to reuse them.
    """

    def __init__(self, n_threads: int) -> None:
        if n_threads < 1:
            raise ValueError("n_threads must be at least 1")
        self.n_threads = n_threads
        self._epoch = 0
        self._n_remaining = 0
        self._to_free1: list[Any] | None = None
        self._to_free2: list[Any] = []
        self._lock = threading.Lock()

    def free(self, local: ReclaimerLocal, entry: Any) -> None:
        """Schedule entry for release."""
        if self.n_threads <= 1:
            raise ValueError("deferred release needs more than one thread")
        with self._lock:
            if self._to_free1 is None:
                self._to_free1 = [entry]
                epoch = self._epoch + 1
                self._n_remaining = self.n_threads - 1
                self._epoch = epoch
                local.epoch = epoch
            else:
                self._to_free2.append(entry)

    def quiescent(self, local: ReclaimerLocal) -> list[Any]:
        """Announce a quiescent state; return the entries now safe to release."""
        epoch = self._epoch
        if epoch == local.epoch:
            return []
        with self._lock:
            epoch = self._epoch
            remaining = self._n_remaining
            if remaining < 1:
                raise RuntimeError("no thread left to pass the epoch")
            self._n_remaining = remaining - 1
            to_free: list[Any] = []
            if remaining == 1:
                if self._to_free1 is None:
                    raise RuntimeError("epoch completed with nothing to release")
                to_free = self._to_free1
                if self._to_free2:
                    # Newest first, as when the pending entries form a stack.
                    self._to_free1 = self._to_free2[::-1]
                    self._to_free2 = []
                    self._n_remaining = self.n_threads - 1
                    epoch += 1
                    self._epoch = epoch
                else:
                    self._to_free1 = None
            local.epoch = epoch
            return to_free

    def finish(self) -> tuple[list[Any], list[Any]]:
        """Return the entries still pending: the current and the next batch."""
        with self._lock:
            return list(self._to_free1 or []), self._to_free2[::-1]


@dataclass(eq=False)
class QueueNode:
    """A link of the queue; the head node is always a placeholder."""

    value: Any = None
    next: QueueNode | None = None


class QsbrQueue:
    """FIFO queue whose pop hands back the node it unlinked."""

    def __init__(self) -> None:
        node = QueueNode()
        self._head = node
        self._tail = node
        self._head_lock = threading.Lock()
        self._tail_lock = threading.Lock()

    def push(self, value: Any) -> QueueNode:
        """Append value and return the node that holds it."""
        node = QueueNode(value)
        with self._tail_lock:
            self._tail.next = node
            self._tail = node
        return node

    def pop(self) -> tuple[Any, QueueNode]:
        """Remove the oldest value; return it with the released node.

        Raises IndexError when the queue is empty.
        """
        with self._head_lock:
            head = self._head
            following = head.next
            if following is None:
                raise IndexError("pop from empty queue")
            self._head = following
        return following.value, head

    def finish(self) -> QueueNode:
        """Return the placeholder node left at the head."""
        return self._head


def lehmer_next(r: int) -> int:
    """Next value of the Lehmer random sequence."""
    return (r * LEHMER_MULTIPLIER) % LEHMER_MODULUS & 0xFFFFFFFF


def _release(node: QueueNode) -> None:
    node.value = None
    node.next = None


def run_workers(n_workers: int, n_tries: int, seed: int) -> tuple[int, int]:
    """Let each worker push and pop n_tries values.

    Returns the sum of all popped values and the sum expected.
    """
    if n_workers < 1:
        raise ValueError("n_workers must be at least 1")
    if n_tries < 0:
        raise ValueError("n_tries must not be negative")
    if seed % LEHMER_MODULUS == 0:
        raise ValueError("seed must not be a multiple of the Lehmer modulus")

    queue = QsbrQueue()
    reclaimer = EpochReclaimer(n_workers)
    barrier = threading.Barrier(n_workers)
    sum_lock = threading.Lock()
    total = 0

    def worker(r: int) -> None:
        nonlocal total
        local = ReclaimerLocal()
        n_enqueue = n_dequeue = 0
        partial = 0
        barrier.wait()
        while n_enqueue < n_tries or n_dequeue < n_tries:
            r = lehmer_next(r)
            for _ in range(r % 1024):
                if n_enqueue >= n_tries:
                    break
                queue.push(n_enqueue + 1)
                n_enqueue += 1

            r = lehmer_next(r)
            for _ in range(r % 1024):
                if n_dequeue >= n_tries:
                    break
                try:
                    value, node = queue.pop()
                except IndexError:
                    continue
                if n_workers == 1:
                    _release(node)
                else:
                    reclaimer.free(local, node)
                partial += value
                n_dequeue += 1

            for node in reclaimer.quiescent(local):
                _release(node)
        with sum_lock:
            total += partial

    seeds = []
    r = seed
    for _ in range(n_workers):
        r = lehmer_next(r)
        seeds.append(r)
    threads = [threading.Thread(target=worker, args=(s,)) for s in seeds]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    _release(queue.finish())
    for batch in reclaimer.finish():
        for node in batch:
            _release(node)

    expected = n_tries * (n_tries + 1) // 2 * n_workers
    return total, expected


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="QSBR queue stress test")
    parser.add_argument("--workers", type=int, default=32)
    parser.add_argument("--tries", type=int, default=500)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args(argv)

    seed = args.seed
    if seed is None:
        seed = (os.getpid() ^ id(main)) & 0xFFFFFFFF
        if seed % LEHMER_MODULUS == 0:
            seed = 1
    total, expected = run_workers(args.workers, args.tries, seed)
    print(f"sum: {total}, expected: {expected}")
    return int(total != expected)