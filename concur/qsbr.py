"""Quiescent-state based reclamation (QSBR).

Every registered thread periodically announces a quiescent state, a point at
which it holds no references to shared objects that may be reclaimed.  A
writer that has made an object unreachable calls ``barrier`` to obtain a
target epoch and may reclaim the object once ``sync`` returns True for it.
"""

from __future__ import annotations

import argparse
import os
import threading
import time
from dataclasses import dataclass

MAGIC = 0xDEADBEEF
N_DATA = 4
SPINLOCK_BACKOFF_MIN = 4
SPINLOCK_BACKOFF_MAX = 128


class _ThreadRecord:
    """Epoch last observed by one registered thread."""

    __slots__ = ("local_epoch",)

    def __init__(self) -> None:
        self.local_epoch = 0


class QSBR:
    """Global epoch plus the set of registered threads."""

    def __init__(self) -> None:
        self._global_epoch = 1
        self._lock = threading.Lock()
        self._records: list[_ThreadRecord] = []
        self._local = threading.local()

    def register(self) -> None:
        """Register the calling thread."""
        record = getattr(self._local, "record", None)
        with self._lock:
            if record is None:
                record = _ThreadRecord()
                self._local.record = record
            record.local_epoch = 0
            if all(existing is not record for existing in self._records):
                self._records.insert(0, record)

    def unregister(self) -> None:
        """Unregister the calling thread; a no-op if it is not registered."""
        record = getattr(self._local, "record", None)
        if record is None:
            return
        self._local.record = None
        with self._lock:
            self._records = [r for r in self._records if r is not record]

    def checkpoint(self) -> None:
        """Announce a quiescent state of the calling thread."""
        record = getattr(self._local, "record", None)
        if record is None:
            raise RuntimeError("thread is not registered")
        record.local_epoch = self._global_epoch

    def barrier(self) -> int:
        """Advance the global epoch and return the new value."""
        with self._lock:
            self._global_epoch += 1
            return self._global_epoch

    def sync(self, target: int) -> bool:
        """Return True once every registered thread has observed target."""
        self.checkpoint()
        with self._lock:
            records = list(self._records)
        return all(record.local_epoch >= target for record in records)


@dataclass
class _Data:
    ptr: int | None = None
    visible: bool = False


def run_stress(seconds: float = 10.0, n_workers: int | None = None) -> int:
    """Run one writer and several readers for the given time.

    Returns the number of objects the writer reclaimed.  Raises
    RuntimeError if a reader ever saw a reclaimed object.
    """
    if n_workers is None:
        n_workers = os.cpu_count() or 1
    if n_workers < 1:
        raise ValueError("n_workers must be at least 1")
    if seconds < 0:
        raise ValueError("seconds must not be negative")

    qsbr = QSBR()
    data = [_Data() for _ in range(N_DATA)]
    barrier = threading.Barrier(n_workers)
    stop = threading.Event()
    errors: list[BaseException] = []
    destructions = 0

    def access(obj: _Data) -> None:
        if obj.visible and obj.ptr != MAGIC:
            raise RuntimeError("reader observed a reclaimed object")

    def writer(target: int) -> None:
        nonlocal destructions
        obj = data[target]
        if obj.visible:
            obj.visible = False
            target_epoch = qsbr.barrier()
            count = SPINLOCK_BACKOFF_MIN
            while not qsbr.sync(target_epoch):
                time.sleep(0)
                if count < SPINLOCK_BACKOFF_MAX:
                    count += count
                # Readers may have exited and will never checkpoint again.
                if stop.is_set():
                    return
            obj.ptr = None
            destructions += 1
        else:
            obj.ptr = MAGIC
            obj.visible = True

    def worker(ident: int) -> None:
        qsbr.register()
        try:
            barrier.wait()
            n = 0
            while not stop.is_set():
                n = (n + 1) & (N_DATA - 1)
                if ident == 0:
                    writer(n)
                    continue
                access(data[n])
                qsbr.checkpoint()
            barrier.wait()
        except threading.BrokenBarrierError:
            pass
        except BaseException as exc:  # noqa: BLE001 - reported to the caller
            errors.append(exc)
            stop.set()
            barrier.abort()
        finally:
            qsbr.unregister()

    timer = threading.Timer(seconds, stop.set)
    timer.start()
    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_workers)]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
    finally:
        timer.cancel()

    if errors:
        raise RuntimeError(str(errors[0])) from errors[0]
    return destructions


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="QSBR stress test")
    parser.add_argument("--seconds", type=float, default=10.0)
    parser.add_argument("--workers", type=int, default=None)
    args = parser.parse_args(argv)

    print("stress test...")
    destructions = run_stress(args.seconds, args.workers)
    print(f"# {destructions}")
    print("OK")
    return 0