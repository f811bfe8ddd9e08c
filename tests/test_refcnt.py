import threading

import pytest

from concur.refcnt import InvalidReferenceError, RefCounted, allocate, main, strdup


def test_strdup_copies_text_with_single_reference():
    ref = strdup("Hello, world!")
    assert bytes(ref.data) == b"Hello, world!"
    assert ref.refcount == 1


def test_ref_and_unref_release_on_last():
    ref = strdup("abc")
    same = ref.ref()
    assert same is ref
    assert ref.refcount == 2
    ref.unref()
    assert bytes(ref.data) == b"abc"
    ref.unref()
    assert ref.data is None


def test_use_after_release_raises():
    ref = allocate(4)
    ref.unref()
    with pytest.raises(InvalidReferenceError):
        ref.ref()
    with pytest.raises(InvalidReferenceError):
        ref.unref()
    with pytest.raises(InvalidReferenceError):
        ref.resize(8)


def test_allocate_is_zero_filled():
    ref = allocate(16)
    assert bytes(ref.data) == bytes(16)


def test_allocate_negative_length_raises():
    with pytest.raises(ValueError):
        allocate(-1)


def test_resize_keeps_prefix():
    ref = RefCounted(b"abcdef")
    ref.resize(10)
    assert len(ref.data) == 10
    assert bytes(ref.data[:6]) == b"abcdef"
    ref.resize(3)
    assert bytes(ref.data) == b"abc"
    assert ref.refcount == 1


def test_concurrent_references_balance():
    ref = strdup("shared")

    def worker():
        for _ in range(200):
            ref.ref()
            ref.unref()

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert ref.refcount == 1
    assert bytes(ref.data) == b"shared"


def test_main_prints_each_iteration(capsys):
    assert main(["--threads", "4", "--iterations", "3"]) == 0
    lines = capsys.readouterr().err.splitlines()
    assert len(lines) == 4 * 3
    assert all(line.endswith("Hello, world!") for line in lines)