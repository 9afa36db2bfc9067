"""
Блокировка чтения/записи.
"""

import threading
from contextlib import contextmanager


class RWLock:
    """
    Блокировка с множеством читателей и одним писателем.

    Ожидающий писатель блокирует новых читателей, поэтому поток записей
    не голодает при постоянном чтении. Блокировка не реентерабельна.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_lock(self):
        """Контекст блокировки на чтение."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_lock(self):
        """Контекст блокировки на запись."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
