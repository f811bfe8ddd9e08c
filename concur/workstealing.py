"""Work-stealing scheduler over Chase-Lev deques.

Each worker thread owns a deque. It takes work from the bottom of its own
deque and, when that is empty, steals from the top of the others'.
"""

from __future__ import annotations

import argparse
import sys
import threading
import time
from typing import Any, Callable, Iterable, Optional

Task = Callable[["Work"], Optional["Work"]]


class Work:
    """A unit of work: code that returns the next unit to run, or None."""

    def __init__(self, code: Task, join_count: int = 0, args: Iterable[Any] = ()) -> None:
        self.code = code
        self.join_count = join_count
        self.args = list(args)
        self._lock = threading.Lock()


def join_work(work: Work) -> Work | None:
    """Count down work's joins; return work when the last one arrives."""
    with work._lock:
        old = work.join_count
        work.join_count = old - 1
    return work if old == 1 else None


class WorkDeque:
    """Deque with an owner end (push, take) and a thief end (steal)."""

    def __init__(self, size_hint: int = 8) -> None:
        if size_hint < 1:
            raise ValueError("size_hint must be at least 1")
        self._top = 0
        self._bottom = 0
        self._array: list[Work | None] = [None] * size_hint
        self._top_lock = threading.Lock()

    def __len__(self) -> int:
        return max(self._bottom - self._top, 0)

    def _cas_top(self, expected: int) -> bool:
        with self._top_lock:
            if self._top != expected:
                return False
            self._top = expected + 1
            return True

    def _resize(self) -> None:
        old = self._array
        new: list[Work | None] = [None] * (len(old) * 2)
        for i in range(self._top, self._bottom):
            new[i % len(new)] = old[i % len(old)]
        # Thieves still holding the old array read valid entries from it.
        self._array = new

    def push(self, work: Work) -> None:
        """Add work at the owner's end."""
        b = self._bottom
        t = self._top
        if b - t > len(self._array) - 1:
            self._resize()
        array = self._array
        array[b % len(array)] = work
        self._bottom = b + 1

    def take(self) -> Work | None:
        """Remove work from the owner's end; None when empty or lost a race."""
        b = self._bottom - 1
        array = self._array
        self._bottom = b
        t = self._top
        if t > b:
            self._bottom = b + 1
            return None
        work = array[b % len(array)]
        if t == b:
            if not self._cas_top(t):
                work = None
            self._bottom = b + 1
        return work

    def steal(self) -> Work | None:
        """Remove work from the thieves' end; None when empty."""
        while True:
            t = self._top
            b = self._bottom
            if t >= b:
                return None
            array = self._array
            work = array[t % len(array)]
            if self._cas_top(t):
                return work


class Scheduler:
    """A set of worker threads, each owning one WorkDeque in ``queues``.

    Workers stop once the ``done`` event is set and no work is left to find.
    """

    def __init__(self, n_threads: int) -> None:
        if n_threads < 1:
            raise ValueError("n_threads must be at least 1")
        self.n_threads = n_threads
        self.queues = [WorkDeque(8) for _ in range(n_threads)]
        self.done = threading.Event()
        self.trace: Callable[[str], None] | None = None
        self._count_lock = threading.Lock()
        self._executed = 0

    def _log(self, message: str) -> None:
        if self.trace is not None:
            self.trace(message)

    def _do_work(self, ident: int, work: Work | None) -> None:
        while work is not None:
            self._log(f"work item {ident} running item {id(work):#x}")
            with self._count_lock:
                self._executed += 1
            work = work.code(work)

    def _steal_any(self, ident: int) -> Work | None:
        for i, queue in enumerate(self.queues):
            if i == ident:
                continue
            stolen = queue.steal()
            if stolen is not None:
                return stolen
        return None

    def _worker(self, ident: int) -> None:
        own = self.queues[ident]
        while True:
            work = own.take()
            if work is None:
                work = self._steal_any(ident)
            if work is not None:
                self._do_work(ident, work)
                continue
            # New work may still appear until someone marks the run done.
            if self.done.is_set():
                break
            time.sleep(0)
        self._log(f"work item {ident} finished")

    def run(self) -> int:
        """Run the workers until done; return how many work units ran."""
        errors: list[BaseException] = []

        def guarded(ident: int) -> None:
            try:
                self._worker(ident)
            except BaseException as exc:  # noqa: BLE001 - reported to the caller
                errors.append(exc)
                self.done.set()

        threads = [
            threading.Thread(target=guarded, args=(i,)) for i in range(self.n_threads)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        if errors:
            raise errors[0]
        return self._executed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Work-stealing scheduler demo")
    parser.add_argument("--threads", type=int, default=24)
    parser.add_argument("--prints", type=int, default=10)
    args = parser.parse_args(argv)
    n_threads, nprints = args.threads, args.prints

    output_lock = threading.Lock()

    def emit(line: str) -> None:
        with output_lock:
            sys.stdout.write(line + "\n")

    scheduler = Scheduler(n_threads)
    scheduler.trace = emit

    def done_task(work: Work) -> None:
        scheduler.done.set()
        return None

    def print_task(work: Work) -> Work | None:
        payload, cont = work.args
        emit(f"Did item {id(work):#x} with payload {payload}")
        return join_work(cont)

    done_work = Work(done_task, n_threads * nprints)
    for i, queue in enumerate(scheduler.queues):
        for j in range(nprints):
            queue.push(Work(print_task, 0, (1000 * i + j, done_work)))

    scheduler.run()
    emit(
        f"Expect {2 * n_threads * nprints + n_threads + 2} lines of output "
        "(including this one)"
    )
    return 0