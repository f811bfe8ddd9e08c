import threading

import pytest

from concur.workstealing import Scheduler, Work, WorkDeque, join_work, main


def _noop(work):
    return None


def _items(n):
    return [Work(_noop, 0, (i,)) for i in range(n)]


def test_take_is_lifo():
    deque = WorkDeque(8)
    items = _items(3)
    for item in items:
        deque.push(item)
    assert [deque.take() for _ in range(3)] == items[::-1]
    assert deque.take() is None
    assert len(deque) == 0


def test_steal_is_fifo():
    deque = WorkDeque(8)
    items = _items(3)
    for item in items:
        deque.push(item)
    assert [deque.steal() for _ in range(3)] == items
    assert deque.steal() is None


def test_push_grows_past_size_hint():
    deque = WorkDeque(2)
    items = _items(10)
    for item in items:
        deque.push(item)
    assert len(deque) == 10
    taken = []
    while (work := deque.take()) is not None:
        taken.append(work)
    assert taken == items[::-1]


def test_steal_and_take_share_items_exactly_once():
    deque = WorkDeque(4)
    items = _items(7)
    for item in items:
        deque.push(item)
    seen = [deque.steal(), deque.take(), deque.steal()]
    while (work := deque.take()) is not None:
        seen.append(work)
    assert sorted(id(w) for w in seen) == sorted(id(w) for w in items)


def test_concurrent_thieves_take_each_item_once():
    deque = WorkDeque(8)
    items = _items(500)
    for item in items:
        deque.push(item)
    stolen = []
    lock = threading.Lock()

    def thief():
        while (work := deque.steal()) is not None:
            with lock:
                stolen.append(work)

    threads = [threading.Thread(target=thief) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(stolen) == 500
    assert {id(w) for w in stolen} == {id(w) for w in items}


def test_size_hint_must_be_positive():
    with pytest.raises(ValueError):
        WorkDeque(0)


def test_join_work_returns_work_on_last_join():
    cont = Work(_noop, 3)
    assert join_work(cont) is None
    assert join_work(cont) is None
    assert join_work(cont) is cont
    assert cont.join_count == 0


def test_scheduler_runs_every_item():
    n_threads, nprints = 4, 5
    scheduler = Scheduler(n_threads)
    payloads = []
    lock = threading.Lock()

    def done_task(work):
        scheduler.done.set()
        return None

    def print_task(work):
        payload, cont = work.args
        with lock:
            payloads.append(payload)
        return join_work(cont)

    done_work = Work(done_task, n_threads * nprints)
    expected = []
    for i, queue in enumerate(scheduler.queues):
        for j in range(nprints):
            expected.append(1000 * i + j)
            queue.push(Work(print_task, 0, (1000 * i + j, done_work)))

    executed = scheduler.run()
    assert sorted(payloads) == sorted(expected)
    assert executed == n_threads * nprints + 1
    assert scheduler.done.is_set()


def test_scheduler_reports_task_errors():
    scheduler = Scheduler(2)

    def boom(work):
        raise ZeroDivisionError

    scheduler.queues[0].push(Work(boom))
    with pytest.raises(ZeroDivisionError):
        scheduler.run()


def test_scheduler_needs_a_thread():
    with pytest.raises(ValueError):
        Scheduler(0)


def test_main_prints_announced_number_of_lines(capsys):
    assert main(["--threads", "3", "--prints", "4"]) == 0
    lines = capsys.readouterr().out.splitlines()
    announced = int(lines[-1].split()[1])
    assert lines[-1].endswith("lines of output (including this one)")
    assert len(lines) == announced
    assert sum(line.startswith("Did item") for line in lines) == 12