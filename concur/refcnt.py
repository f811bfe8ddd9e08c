"""Thread-safe reference-counted byte buffers."""

from __future__ import annotations

import argparse
import sys
import threading

REFCNT_MAGIC = 0xDEADBEEF


class InvalidReferenceError(Exception):
    """Raised when a released or foreign reference is used."""


class RefCounted:
    """A byte buffer that is released when its last reference is dropped."""

    def __init__(self, data: bytes | bytearray = b"") -> None:
        self.data: bytearray | None = bytearray(data)
        self.refcount = 1
        self._magic = REFCNT_MAGIC
        self._lock = threading.Lock()

    def _check(self) -> None:
        if self._magic != REFCNT_MAGIC:
            raise InvalidReferenceError("Invalid refcnt pointer")

    def ref(self) -> RefCounted:
        """Take another reference and return it."""
        with self._lock:
            self._check()
            self.refcount += 1
        return self

    def unref(self) -> None:
        """Drop a reference; the buffer is released with the last one."""
        with self._lock:
            self._check()
            self.refcount -= 1
            if self.refcount == 0:
                self.data = None
                self._magic = 0

    def resize(self, length: int) -> RefCounted:
        """Grow or shrink the buffer, keeping its leading bytes.

        Not safe against concurrent use of the same buffer.
        """
        if length < 0:
            raise ValueError("length must not be negative")
        self._check()
        assert self.data is not None
        if length < len(self.data):
            del self.data[length:]
        else:
            self.data.extend(bytes(length - len(self.data)))
        return self


def allocate(length: int) -> RefCounted:
    """Return a zero-filled buffer of the given length with one reference."""
    if length < 0:
        raise ValueError("length must not be negative")
    return RefCounted(bytes(length))


def strdup(text: str) -> RefCounted:
    """Return a reference-counted copy of text encoded as UTF-8."""
    return RefCounted(text.encode())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reference counting demo")
    parser.add_argument("--threads", type=int, default=64)
    parser.add_argument("--iterations", type=int, default=100)
    args = parser.parse_args(argv)

    def worker(shared: RefCounted) -> None:
        for i in range(args.iterations):
            extra = shared.ref()
            assert extra.data is not None
            print(
                f"Thread {threading.get_ident()}, {i}: {extra.data.decode()}",
                file=sys.stderr,
            )
            extra.unref()
        shared.unref()

    text = strdup("Hello, world!")
    threads = [
        threading.Thread(target=worker, args=(text.ref(),))
        for _ in range(args.threads)
    ]
    for thread in threads:
        thread.start()
    text.unref()
    for thread in threads:
        thread.join()
    return 0