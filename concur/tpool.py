"""Fixed-size thread pool whose tasks hand back futures."""

from __future__ import annotations

import argparse
import enum
import threading
from collections import deque
from concurrent.futures import CancelledError
from dataclasses import dataclass, field
from typing import Any, Callable


class FutureState(enum.Flag):
    """Lifecycle bits of a TaskFuture."""

    NONE = 0
    RUNNING = 0o1
    FINISHED = 0o2
    TIMEOUT = 0o4
    CANCELLED = 0o10
    DESTROYED = 0o20


class TaskFuture:
    """Result of a task scheduled on a ThreadPool."""

    def __init__(self) -> None:
        self._state = FutureState.NONE
        self._result: Any = None
        self._exception: BaseException | None = None
        self._cond = threading.Condition()

    @property
    def state(self) -> FutureState:
        """The current lifecycle bits."""
        with self._cond:
            return self._state

    def get(self, seconds: float = 0) -> Any:
        """Return the task's result, waiting for it to arrive.

        With a non-zero seconds, raise TimeoutError if the result does not
        arrive in time. Each call clears an earlier timeout mark. Raises the
        task's own exception if it failed, CancelledError if the task was
        cancelled, and RuntimeError if the future was destroyed.
        """
        if seconds < 0:
            raise ValueError("seconds must not be negative")
        with self._cond:
            self._state &= ~FutureState.TIMEOUT
            if FutureState.DESTROYED in self._state:
                raise RuntimeError("future has been destroyed")

            def settled() -> bool:
                return bool(self._state & (FutureState.FINISHED | FutureState.CANCELLED))

            if seconds:
                if not self._cond.wait_for(settled, timeout=seconds):
                    self._state |= FutureState.TIMEOUT
                    raise TimeoutError("result did not arrive in time")
            else:
                self._cond.wait_for(settled)

            if FutureState.CANCELLED in self._state:
                raise CancelledError()
            if self._exception is not None:
                raise self._exception
            return self._result

    def destroy(self) -> None:
        """Give up the future; a pending task still runs but its result is dropped."""
        with self._cond:
            self._state |= FutureState.DESTROYED
            self._result = None
            self._exception = None
            self._cond.notify_all()

    def _start(self) -> bool:
        with self._cond:
            if FutureState.CANCELLED in self._state:
                return False
            self._state |= FutureState.RUNNING
            return True

    def _finish(self, result: Any, exception: BaseException | None) -> None:
        with self._cond:
            if FutureState.DESTROYED in self._state:
                return
            self._result = result
            self._exception = exception
            self._state |= FutureState.FINISHED
            self._cond.notify_all()

    def _cancel(self) -> None:
        with self._cond:
            self._state |= FutureState.CANCELLED
            self._cond.notify_all()


@dataclass
class _Task:
    func: Callable[[Any], Any] | None
    arg: Any
    future: TaskFuture = field(default_factory=TaskFuture)


class ThreadPool:
    """A fixed number of worker threads fed from one FIFO job queue."""

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError("count must not be negative")
        self.count = count
        self._jobs: deque[_Task] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._workers = [
            threading.Thread(target=self._fetch, daemon=True) for _ in range(count)
        ]
        for worker in self._workers:
            worker.start()

    def _fetch(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: bool(self._jobs))
                task = self._jobs.popleft()
            if task.func is None:
                break
            if not task.future._start():
                continue
            try:
                result = task.func(task.arg)
            except Exception as exc:  # noqa: BLE001 - handed to the future
                task.future._finish(None, exc)
            else:
                task.future._finish(result, None)

    def _enqueue(self, task: _Task) -> None:
        with self._cond:
            self._jobs.append(task)
            self._cond.notify_all()

    def apply(self, func: Callable[[Any], Any], arg: Any = None) -> TaskFuture:
        """Schedule func(arg) and return the future of its result."""
        if func is None:
            raise TypeError("func must be callable")
        if self._closed:
            raise RuntimeError("thread pool has been joined")
        task = _Task(func, arg)
        self._enqueue(task)
        return task.future

    def join(self) -> None:
        """Let every pending task finish, then stop the workers."""
        if self._closed:
            return
        self._closed = True
        for _ in range(self.count):
            self._enqueue(_Task(None, None))
        for worker in self._workers:
            worker.join()
        with self._cond:
            leftovers = list(self._jobs)
            self._jobs.clear()
        for task in leftovers:
            if task.func is not None:
                task.future._cancel()

    def __enter__(self) -> ThreadPool:
        return self

    def __exit__(self, *args: object) -> None:
        self.join()


def bbp(k: int) -> float:
    """Term k of the Bailey-Borwein-Plouffe series for pi."""
    total = (
        4.0 / (8 * k + 1)
        - 2.0 / (8 * k + 4)
        - 1.0 / (8 * k + 5)
        - 1.0 / (8 * k + 6)
    )
    return 1 / 16**k * total


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Thread pool demo computing pi")
    parser.add_argument("--threads", type=int, default=4)
    parser.add_argument("--precision", type=int, default=100)
    args = parser.parse_args(argv)

    with ThreadPool(args.threads) as pool:
        futures = [pool.apply(bbp, k) for k in range(args.precision + 1)]
        total = 0.0
        for future in futures:
            total += future.get(0)
            future.destroy()
    print(f"PI calculated with {args.precision + 1} terms: {total:.15f}")
    return 0