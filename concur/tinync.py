"""Tiny netcat: copies standard input to a TCP peer and the peer to standard output.

The three copy loops are generators that yield whenever they would block,
and a simple scheduler steps them in turn.
"""

from __future__ import annotations

import enum
import os
import re
import select
import socket
import sys
from collections import deque
from typing import Generator, Optional

STDIN_FILENO = 0
STDOUT_FILENO = 1
QUEUE_CAPACITY = 4096

_RETRY = (BlockingIOError, InterruptedError)

Loop = Generator[None, None, int]


class Status(enum.IntEnum):
    """State of a copy loop."""

    BLOCKED = 0
    FINISHED = 1


class ByteQueue:
    """Bounded FIFO of bytes."""

    def __init__(self, capacity: int = QUEUE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: deque[int] = deque()

    @property
    def empty(self) -> bool:
        return not self._items

    @property
    def full(self) -> bool:
        return len(self._items) == self.capacity

    def push(self, byte: int) -> None:
        """Append one byte; raise OverflowError when the queue is full."""
        if not 0 <= byte <= 0xFF:
            raise ValueError("byte must be in range(256)")
        if self.full:
            raise OverflowError("queue is full")
        self._items.append(byte)

    def pop(self) -> int:
        """Remove and return the oldest byte; raise IndexError when empty."""
        if not self._items:
            raise IndexError("pop from empty queue")
        return self._items.popleft()

    def __len__(self) -> int:
        return len(self._items)


def stdin_loop(queue: ByteQueue, source: int = STDIN_FILENO) -> Loop:
    """Copy bytes from the source descriptor into queue.

    Finishes with 1 once the source is exhausted and the queue drained.
    """
    while True:
        try:
            data = os.read(source, 1)
        except _RETRY:
            yield
            continue
        if not data:
            while not queue.empty:
                yield
            return int(Status.FINISHED)
        while queue.full:
            yield
        queue.push(data[0])


def socket_write_loop(queue: ByteQueue, sock: socket.socket) -> Loop:
    """Send every byte that appears in queue to sock; never finishes."""
    while True:
        while queue.empty:
            yield
        byte = bytes((queue.pop(),))
        while True:
            try:
                sock.send(byte)
            except _RETRY:
                yield
                continue
            break


def socket_read_loop(sock: socket.socket, sink: int = STDOUT_FILENO) -> Loop:
    """Copy bytes from sock to the sink descriptor.

    Finishes with 1 once the peer closes the connection.
    """
    while True:
        try:
            data = sock.recv(1)
        except _RETRY:
            yield
            continue
        if not data:
            return int(Status.FINISHED)
        while True:
            try:
                os.write(sink, data)
            except _RETRY:
                yield
                continue
            break


class _Coroutine:
    def __init__(self, gen: Loop) -> None:
        self._gen = gen
        self.status = Status.BLOCKED

    def step(self) -> None:
        if self.status == Status.FINISHED:
            return
        try:
            next(self._gen)
        except StopIteration:
            self.status = Status.FINISHED


def _address(host: str) -> str:
    try:
        socket.inet_aton(host)
    except OSError:
        return "255.255.255.255"
    return host


def run(host: str, port: int) -> int:
    """Connect to host:port and relay until stdin or the peer ends."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    saved = {fd: os.get_blocking(fd) for fd in (STDIN_FILENO, STDOUT_FILENO)}
    try:
        sock.setblocking(False)
        for fd in saved:
            os.set_blocking(fd, False)
        sock.connect_ex((_address(host), port & 0xFFFF))

        queue = ByteQueue()
        reader = _Coroutine(socket_read_loop(sock, STDOUT_FILENO))
        writer = _Coroutine(socket_write_loop(queue, sock))
        stdin = _Coroutine(stdin_loop(queue, STDIN_FILENO))

        while stdin.status == Status.BLOCKED and reader.status == Status.BLOCKED:
            if queue.empty:
                select.select([STDIN_FILENO, sock], [], [])
            reader.step()
            writer.step()
            stdin.step()
    finally:
        sock.close()
        for fd, blocking in saved.items():
            try:
                os.set_blocking(fd, blocking)
            except OSError:
                pass
    return 0


def _atoi(text: str) -> int:
    match = re.match(r"\s*[+-]?\d+", text)
    return int(match.group()) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print("USAGE: tinync <ip> <port>", file=sys.stderr)
        return 1
    host, port = args[0], _atoi(args[1])
    try:
        return run(host, port)
    except OSError as exc:
        print(f"tinync: {exc}", file=sys.stderr)
        return 1