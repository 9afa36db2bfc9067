"""
Общие фикстуры тестов ядра анализатора.
"""

import time
import threading
import pytest

from analyzer_core.core.worker_pool import WorkerPool
from analyzer_core.core.cache_manager import CacheManager
from analyzer_core.utils.config import WorkerPoolConfig, CacheConfig


def _wait_for(condition, timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


@pytest.fixture
def wait_for():
    """Ожидание выполнения условия с таймаутом."""
    return _wait_for


@pytest.fixture
def make_pool():
    """Фабрика пулов, останавливаемых после теста."""
    pools = []

    def factory(min_workers: int = 2, max_workers: int = 4, **kwargs) -> WorkerPool:
        pool = WorkerPool(WorkerPoolConfig(min_workers=min_workers, max_workers=max_workers, **kwargs))
        pools.append(pool)
        return pool

    yield factory

    for pool in pools:
        pool.shutdown()


@pytest.fixture
def pool(make_pool):
    return make_pool(2, 4)


@pytest.fixture
def make_cache():
    """Фабрика кэшей, закрываемых после теста."""
    caches = []

    def factory(max_size: int = 1024 * 1024, cleanup_interval: float = 60.0, **kwargs) -> CacheManager:
        cache = CacheManager(CacheConfig(max_size=max_size, cleanup_interval=cleanup_interval, **kwargs))
        caches.append(cache)
        return cache

    yield factory

    for cache in caches:
        cache.close()


@pytest.fixture
def cache(make_cache):
    return make_cache()


class Blocker:
    """Задача, которая ждёт release() и отмечает свой запуск."""

    def __init__(self):
        self.started = threading.Event()
        self.release_event = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, ctx):
        with self._lock:
            self.calls += 1
        self.started.set()
        self.release_event.wait(5.0)
        return "released"

    def release(self):
        self.release_event.set()


@pytest.fixture
def blocker():
    b = Blocker()
    yield b
    b.release()


@pytest.fixture
def background_submit():
    """Отправка задачи в отдельном потоке с сохранением результата или ошибки."""
    threads = []

    def submit(pool, ctx, task):
        outcome = {}

        def run():
            try:
                outcome['value'] = pool.submit(ctx, task)
            except BaseException as e:
                outcome['error'] = e

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        threads.append(thread)
        outcome['thread'] = thread
        return outcome

    yield submit

    for thread in threads:
        thread.join(timeout=5.0)
