import math
import threading
from concurrent.futures import CancelledError

import pytest

from concur.tpool import FutureState, TaskFuture, ThreadPool, bbp, main


def test_bbp_series_approximates_pi():
    assert math.isclose(sum(bbp(k) for k in range(101)), math.pi, rel_tol=1e-14)


def test_bbp_terms_shrink():
    terms = [abs(bbp(k)) for k in range(10)]
    assert all(a > b for a, b in zip(terms, terms[1:]))


def test_apply_returns_results():
    with ThreadPool(4) as pool:
        futures = [pool.apply(lambda x: x * x, i) for i in range(50)]
        results = [f.get() for f in futures]
    assert results == [i * i for i in range(50)]
    assert FutureState.FINISHED in futures[0].state


def test_single_worker_runs_in_submission_order():
    order = []
    with ThreadPool(1) as pool:
        futures = [pool.apply(order.append, i) for i in range(20)]
        for f in futures:
            f.get()
    assert order == list(range(20))


def test_timeout_then_result():
    gate = threading.Event()
    pool = ThreadPool(1)
    future = pool.apply(lambda _: gate.wait() and "done", None)
    with pytest.raises(TimeoutError):
        future.get(0.05)
    assert FutureState.TIMEOUT in future.state
    gate.set()
    assert future.get(5) == "done"
    assert FutureState.TIMEOUT not in future.state
    pool.join()


def test_task_exception_is_raised_by_get():
    def fail(_):
        raise KeyError("boom")

    with ThreadPool(2) as pool:
        future = pool.apply(fail, None)
        with pytest.raises(KeyError):
            future.get()


def test_negative_count_rejected():
    with pytest.raises(ValueError):
        ThreadPool(-1)


def test_negative_seconds_rejected():
    with pytest.raises(ValueError):
        TaskFuture().get(-1)


def test_apply_after_join_rejected():
    pool = ThreadPool(2)
    pool.join()
    with pytest.raises(RuntimeError):
        pool.apply(abs, -1)


def test_pending_tasks_cancelled_without_workers():
    pool = ThreadPool(0)
    future = pool.apply(abs, -3)
    pool.join()
    assert FutureState.CANCELLED in future.state
    with pytest.raises(CancelledError):
        future.get()


def test_destroyed_future_cannot_be_read():
    gate = threading.Event()
    pool = ThreadPool(1)
    blocker = pool.apply(lambda _: gate.wait(), None)
    pending = pool.apply(abs, -7)
    pending.destroy()
    assert FutureState.DESTROYED in pending.state
    with pytest.raises(RuntimeError):
        pending.get()
    gate.set()
    assert blocker.get(5) is True
    pool.join()
    assert FutureState.FINISHED not in pending.state


def test_main_prints_pi(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert out.startswith("PI calculated with 101 terms: 3.14159265358979")