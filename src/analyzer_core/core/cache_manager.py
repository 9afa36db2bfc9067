"""
TTL-кэш с ограничением по суммарному размеру.

Значения хранятся вместе с моментом истечения и оценкой размера.
При нехватке места вытесняются записи с самым ранним истечением (не LRU).
Фоновый поток периодически удаляет истёкшие записи.
"""

import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

from .context import Context, background, wait_until
from .size_estimator import estimate_size
from ..models.cache_item import CacheItem, CacheStats
from ..utils.config import CacheConfig
from ..utils.logger import get_logger
from ..utils.rwlock import RWLock
from ..exceptions import CacheFullError, KeyNotFoundError, SizeExceededError


logger = get_logger(__name__)


class CacheManager:
    """Потокобезопасный TTL-кэш с бюджетом в байтах."""

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or CacheConfig()
        if self.config.max_size <= 0:
            raise ValueError("max_size must be > 0")
        if self.config.cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be > 0")

        self._estimate = self.config.size_estimator or estimate_size
        self._rwlock = RWLock()
        self._items: Dict[str, CacheItem] = {}
        self._current_size = 0

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

        self._inflight_lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

        self._closed = threading.Event()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop,
            name="cache-cleanup-thread",
            daemon=True
        )
        self._cleanup_thread.start()

        logger.info(
            f"CacheManager started: max_size={self.config.max_size}, "
            f"cleanup_interval={self.config.cleanup_interval}s"
        )

    @property
    def max_size(self) -> int:
        return self.config.max_size

    def set(self, key: str, value: Any, ttl: Optional[float] = None, ctx: Optional[Context] = None):
        """
        Сохранение значения.

        Args:
            key: Ключ
            value: Значение
            ttl: Время жизни в секундах (по умолчанию config.default_ttl)
            ctx: Контекст вызывающей стороны

        Raises:
            SizeExceededError: значение больше максимального размера кэша
            CacheFullError: места не хватает даже после вытеснения
        """
        if ttl is None:
            ttl = self.config.default_ttl

        size = self._estimate(value)
        if size > self.config.max_size:
            raise SizeExceededError("value size exceeds cache max size")

        with self._rwlock.write_lock():
            previous = self._items.get(key)
            previous_size = previous.size if previous is not None else 0

            if self._current_size - previous_size + size > self.config.max_size:
                self._evict(size - previous_size, keep=key)
                if self._current_size - previous_size + size > self.config.max_size:
                    raise CacheFullError("cache is full")

            self._items[key] = CacheItem(value=value, expiration=time.monotonic() + ttl, size=size)
            self._current_size += size - previous_size

    def _evict(self, required_size: int, keep: str):
        """Вытеснение записей с самым ранним истечением. Вызывается под блокировкой записи."""
        candidates = sorted(
            ((k, item.expiration) for k, item in self._items.items() if k != keep),
            key=lambda entry: entry[1]
        )

        evicted = 0
        for key, _expiration in candidates:
            if self._current_size + required_size <= self.config.max_size:
                break
            item = self._items.pop(key, None)
            if item is not None:
                self._current_size -= item.size
                evicted += 1

        if evicted:
            with self._stats_lock:
                self._evictions += evicted
            logger.debug(f"Evicted {evicted} cache items, current size: {self._current_size}")

    def _lookup(self, key: str) -> Optional[CacheItem]:
        """Живая запись по ключу без учёта в статистике."""
        with self._rwlock.read_lock():
            item = self._items.get(key)
        if item is None or item.is_expired():
            return None
        return item

    def get(self, key: str, ctx: Optional[Context] = None) -> Any:
        """
        Получение значения.

        Истёкшая, но ещё не удалённая запись считается отсутствующей.

        Raises:
            KeyNotFoundError: ключ отсутствует или истёк
        """
        item = self._lookup(key)
        if item is None:
            with self._stats_lock:
                self._misses += 1
            raise KeyNotFoundError("key not found")

        with self._stats_lock:
            self._hits += 1
        return item.value

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Any],
        ttl: Optional[float] = None,
        ctx: Optional[Context] = None
    ) -> Any:
        """
        Значение из кэша или результат compute(), сохранённый с ttl.

        compute выполняется вне блокировок кэша. Ошибка compute
        пробрасывается без изменений, в кэш ничего не записывается.
        При single_flight одновременные промахи по одному ключу ждут
        одного вычисления, иначе каждый вызов может вычислить значение сам.

        Raises:
            ContextCancelledError, DeadlineExceededError: ctx завершился во время ожидания чужого вычисления
        """
        if ctx is None:
            ctx = background()

        try:
            return self.get(key, ctx)
        except KeyNotFoundError:
            pass

        if not self.config.single_flight:
            value = compute()
            self.set(key, value, ttl, ctx)
            return value

        with self._inflight_lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            return self._wait_for(future, ctx)

        try:
            # Значение могло появиться, пока ключ не был занят; промах уже учтён
            item = self._lookup(key)
            if item is not None:
                value = item.value
            else:
                value = compute()
                self.set(key, value, ttl, ctx)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(value)
            return value
        finally:
            with self._inflight_lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]

    @staticmethod
    def _wait_for(future: Future, ctx: Context) -> Any:
        wake = threading.Event()
        future.add_done_callback(lambda _f: wake.set())
        wait_until(wake, ctx)

        if not future.done():
            ctx.raise_if_done()
        return future.result()

    def delete(self, key: str) -> bool:
        """Удаление ключа. Возвращает True, если ключ был в кэше."""
        with self._rwlock.write_lock():
            item = self._items.pop(key, None)
            if item is None:
                return False
            self._current_size -= item.size
            return True

    def clear(self):
        """Удаление всех записей."""
        with self._rwlock.write_lock():
            self._items = {}
            self._current_size = 0

        logger.debug("Cache cleared")

    def cleanup(self) -> int:
        """
        Удаление истёкших записей.

        Returns:
            Число удалённых записей
        """
        now = time.monotonic()
        removed = 0

        with self._rwlock.write_lock():
            for key in [k for k, item in self._items.items() if item.is_expired(now)]:
                item = self._items.pop(key)
                self._current_size -= item.size
                removed += 1

        if removed:
            with self._stats_lock:
                self._expirations += removed
            logger.debug(f"Removed {removed} expired cache items")
        return removed

    def _cleanup_loop(self):
        """Цикл фоновой очистки."""
        while not self._closed.wait(self.config.cleanup_interval):
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"Error in cache cleanup: {e}")

    def get_stats(self) -> CacheStats:
        """Снимок статистики кэша."""
        with self._rwlock.read_lock():
            item_count = len(self._items)
            current_size = self._current_size

        with self._stats_lock:
            return CacheStats(
                item_count=item_count,
                current_size=current_size,
                max_size=self.config.max_size,
                usage_percent=current_size / self.config.max_size * 100,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations
            )

    def close(self):
        """
        Остановка фоновой очистки. Повторный вызов ничего не делает.

        После закрытия кэш продолжает работать, истечение проверяется
        только при чтении.
        """
        if self._closed.is_set():
            return
        self._closed.set()
        logger.info("CacheManager closed")

    def is_closed(self) -> bool:
        return self._closed.is_set()

    def __len__(self) -> int:
        return len(self._items)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"CacheManager(items={len(self)}, size={self._current_size}/{self.config.max_size})"


def new_manager(max_size: int, cleanup_interval: float) -> CacheManager:
    """Создание кэша с заданным бюджетом и интервалом очистки."""
    return CacheManager(CacheConfig(max_size=max_size, cleanup_interval=cleanup_interval))
