import threading

import pytest

from concur.qsbr import QSBR, main, run_stress


def test_barrier_advances_from_initial_epoch():
    qs = QSBR()
    assert qs.barrier() == 2
    assert qs.barrier() == 3


def test_checkpoint_requires_registration():
    qs = QSBR()
    with pytest.raises(RuntimeError):
        qs.checkpoint()


def test_sync_single_thread_succeeds():
    qs = QSBR()
    qs.register()
    target = qs.barrier()
    assert qs.sync(target) is True


def test_unregister_removes_thread():
    qs = QSBR()
    qs.register()
    qs.unregister()
    qs.unregister()
    with pytest.raises(RuntimeError):
        qs.sync(qs.barrier())


def test_sync_waits_for_other_thread_checkpoint():
    qs = QSBR()
    qs.register()
    registered = threading.Event()
    go = threading.Event()
    done = threading.Event()

    def other():
        qs.register()
        registered.set()
        go.wait()
        qs.checkpoint()
        done.set()
        go2.wait()
        qs.unregister()

    go2 = threading.Event()
    thread = threading.Thread(target=other)
    thread.start()
    registered.wait()
    target = qs.barrier()
    assert qs.sync(target) is False
    go.set()
    done.wait()
    assert qs.sync(target) is True
    go2.set()
    thread.join()


def test_unregistered_thread_does_not_block_sync():
    qs = QSBR()
    qs.register()

    def other():
        qs.register()
        qs.unregister()

    thread = threading.Thread(target=other)
    thread.start()
    thread.join()
    assert qs.sync(qs.barrier()) is True


def test_run_stress_writer_alone_reclaims():
    assert run_stress(0.2, 1) > 0


def test_run_stress_with_readers_reclaims():
    assert run_stress(0.5, 3) > 0


def test_run_stress_rejects_no_workers():
    with pytest.raises(ValueError):
        run_stress(0.1, 0)


def test_main_prints_ok(capsys):
    assert main(["--seconds", "0.1", "--workers", "2"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("stress test...\n# ")
    assert out.endswith("OK\n")