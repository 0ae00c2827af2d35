"""Tests for the readers-writer lock."""

import threading
import time

import pytest

from trading_memory.utils.rwlock import ReadWriteLock

TIMEOUT = 5.0


def _wait_until(predicate, timeout: float = TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _start(target) -> threading.Thread:
    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread


class TestReadWriteLock:
    """Test shared reads and exclusive, writer-preferring writes."""

    def test_readers_share_the_lock(self):
        """Test a second reader gets in while the first still holds the lock."""
        lock = ReadWriteLock()
        first_in = threading.Event()
        second_in = threading.Event()
        release = threading.Event()

        def reader(entered):
            with lock.read_locked():
                entered.set()
                release.wait(TIMEOUT)

        threads = [_start(lambda: reader(first_in))]
        assert first_in.wait(TIMEOUT)

        threads.append(_start(lambda: reader(second_in)))
        assert second_in.wait(TIMEOUT)

        release.set()
        for t in threads:
            t.join(TIMEOUT)

    def test_writer_waits_for_readers_and_blocks_new_ones(self):
        """Test a pending writer runs after current readers and before later ones."""
        lock = ReadWriteLock()
        order = []
        readers_in = threading.Barrier(3)
        release_readers = threading.Event()
        writer_in = threading.Event()
        release_writer = threading.Event()
        late_reader_in = threading.Event()

        def early_reader():
            with lock.read_locked():
                readers_in.wait(TIMEOUT)
                release_readers.wait(TIMEOUT)

        def writer():
            with lock.write_locked():
                order.append("writer")
                writer_in.set()
                release_writer.wait(TIMEOUT)

        def late_reader():
            with lock.read_locked():
                order.append("late_reader")
                late_reader_in.set()

        threads = [_start(early_reader), _start(early_reader)]
        readers_in.wait(TIMEOUT)

        threads.append(_start(writer))
        assert _wait_until(lambda: lock._waiting_writers == 1)
        assert not writer_in.wait(0.2)

        threads.append(_start(late_reader))
        assert not late_reader_in.wait(0.2)

        release_readers.set()
        assert writer_in.wait(TIMEOUT)
        assert not late_reader_in.wait(0.2)

        release_writer.set()
        assert late_reader_in.wait(TIMEOUT)
        assert order == ["writer", "late_reader"]

        for t in threads:
            t.join(TIMEOUT)

    def test_writers_are_exclusive(self):
        """Test a second writer waits for the first to release."""
        lock = ReadWriteLock()
        first_in = threading.Event()
        second_in = threading.Event()
        release = threading.Event()

        def first_writer():
            with lock.write_locked():
                first_in.set()
                release.wait(TIMEOUT)

        def second_writer():
            with lock.write_locked():
                second_in.set()

        threads = [_start(first_writer)]
        assert first_in.wait(TIMEOUT)

        threads.append(_start(second_writer))
        assert not second_in.wait(0.2)

        release.set()
        assert second_in.wait(TIMEOUT)

        for t in threads:
            t.join(TIMEOUT)

    def test_lock_released_when_block_raises(self):
        """Test an exception inside a locked block still releases the lock."""
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            with lock.write_locked():
                raise RuntimeError("boom")

        acquired = threading.Event()

        def reader():
            with lock.read_locked():
                acquired.set()

        _start(reader).join(TIMEOUT)
        assert acquired.is_set()
