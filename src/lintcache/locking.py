# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Reader/writer lock guarding the shared cache store.

Worker threads validating documents only read the store, so reads proceed
concurrently. Writes (set, delete, invalidation, clear, load, save snapshot)
are exclusive. Waiting writers block new readers so a steady stream of
validity checks cannot starve a writer.

Thread Safety:
- Single Condition protects: _readers, _writer_active, _writers_waiting
- Not reentrant: a thread holding the write lock must not acquire it again
  or acquire the read lock
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """Multiple-reader, single-writer lock with writer preference.

    Usage:
        lock = ReadWriteLock()
        with lock.read():
            ...  # shared access
        with lock.write():
            ...  # exclusive access
    """

    def __init__(self) -> None:
        """Initialize an unlocked lock."""
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        """Block until no writer holds or awaits the lock, then enter."""
        with self._condition:
            while self._writer_active or self._writers_waiting > 0:
                self._condition.wait()
            self._readers += 1

    def release_read(self) -> None:
        """Leave shared access, waking writers when the last reader exits."""
        with self._condition:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self) -> None:
        """Block until there are no readers and no active writer, then enter."""
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers > 0:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True

    def release_write(self) -> None:
        """Leave exclusive access and wake all waiters."""
        with self._condition:
            if not self._writer_active:
                raise RuntimeError("release_write() called without a matching acquire_write()")
            self._writer_active = False
            self._condition.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Context manager for shared access."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Context manager for exclusive access."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
