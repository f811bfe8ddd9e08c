# concur

Concurrency building blocks written in plain Python with no third-party
dependencies. Each module is small and self-contained, and each comes with
a command that runs a demonstration or stress test of it.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

| Module                | Provides                                                                                  |
|-----------------------|-------------------------------------------------------------------------------------------|
| `concur.refcnt`       | `RefCounted`, `allocate`, `strdup`, `InvalidReferenceError`: thread-safe reference-counted byte buffers |
| `concur.qsbr`         | `QSBR`, `run_stress`: quiescent-state-based reclamation with a global epoch and per-thread checkpoints |
| `concur.qsbr_queue`   | `QsbrQueue`, `EpochReclaimer`, `ReclaimerLocal`, `lehmer_next`, `run_workers`: a FIFO queue whose released nodes are reclaimed by epoch |
| `concur.ringbuffer`   | `RingBuffer`, `memsize`, `RingFullError`, `RingEmptyError`: a power-of-two ring for one producer and one consumer |
| `concur.tpool`        | `ThreadPool`, `TaskFuture`, `FutureState`, `bbp`: a fixed pool of workers returning futures |
| `concur.workstealing` | `Work`, `WorkDeque`, `Scheduler`, `join_work`: a work-stealing scheduler over Chase-Lev deques |
| `concur.tinync`       | `ByteQueue`, `stdin_loop`, `socket_write_loop`, `socket_read_loop`, `run`: a tiny netcat built from generator coroutines |

## Examples

Reference counting:

```python
from concur.refcnt import strdup

text = strdup("Hello, world!")   # one reference
extra = text.ref()               # two references
extra.unref()
text.unref()                     # last reference: the buffer is released
```

Using a `RefCounted` after its last `unref` raises `InvalidReferenceError`.

Quiescent-state-based reclamation:

```python
from concur.qsbr import QSBR

qsbr = QSBR()
qsbr.register()          # in every thread taking part
# reader: after each unit of work
qsbr.checkpoint()
# writer: after making an object unreachable
target = qsbr.barrier()
if qsbr.sync(target):
    ...                  # every registered thread has passed a checkpoint
qsbr.unregister()
```

A ring buffer:

```python
from concur.ringbuffer import RingBuffer, RingFullError

ring = RingBuffer(64)  # holds up to 63 items
while not ring.is_full():
    ring.enqueue("item")
first = ring.dequeue()
```

`enqueue_many` and `dequeue_many` move all items or none; they raise
`RingFullError` and `RingEmptyError` respectively when that is not possible.
`memsize(count)` raises `ValueError` unless `count` is a power of two.

A thread pool:

```python
from concur.tpool import ThreadPool, bbp

with ThreadPool(4) as pool:
    futures = [pool.apply(bbp, k) for k in range(101)]
    pi = sum(future.get(0) for future in futures)
```

`TaskFuture.get(seconds)` waits without limit when `seconds` is 0 and raises
`TimeoutError` otherwise if the result does not arrive in time. An exception
raised by the task is raised again by `get`.

Work stealing:

```python
from concur.workstealing import Scheduler, Work

scheduler = Scheduler(4)

def finish(work):
    scheduler.done.set()
    return None

scheduler.queues[0].push(Work(finish))
executed = scheduler.run()   # number of work units that ran
```

## Commands

Each command runs a demonstration or stress test:

```
concur-refcnt             # many threads sharing one reference-counted string
concur-qsbr               # QSBR stress test with one writer and many readers
concur-qsbr-queue         # workers pushing and popping; checks the final sum
concur-ringbuffer         # fill and drain a 64-slot ring buffer
concur-tpool              # approximate pi with the Bailey-Borwein-Plouffe formula
concur-workstealing       # work items spread over stealing workers
concur-tinync HOST PORT   # connect standard input and output to a TCP peer
```

Options:

- `concur-refcnt --threads 64 --iterations 100`
- `concur-qsbr --seconds 10 --workers N` (workers default to the CPU count)
- `concur-qsbr-queue --workers 32 --tries 500 --seed N`; exits with 1 if the
  sum of popped values differs from the expected one
- `concur-ringbuffer --count 64`
- `concur-tpool --threads 4 --precision 100`
- `concur-workstealing --threads 24 --prints 10`

`concur-tinync` takes an IPv4 address and a port, copies standard input to
the peer and the peer's data to standard output, and stops when standard
input ends or the peer closes the connection.

## What it does not do

The package offers no read-copy-update primitives, no sequence lock, no
shared-memory transport between processes, no single-producer
multiple-consumer queue and no general event loop with I/O and timer
watchers. `tinync` is a client only; there is no listening server.