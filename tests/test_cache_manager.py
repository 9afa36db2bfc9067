"""
Тесты для TTL-кэша.
"""

import time
import threading
import pytest
from concurrent.futures import ThreadPoolExecutor

from analyzer_core import (
    new_manager,
    with_timeout,
    DeadlineExceededError,
    KeyNotFoundError,
    SizeExceededError,
    CapacityError
)
from analyzer_core.core.size_estimator import estimate_size, fixed_size


class TestCacheManager:
    """Тесты для основного класса CacheManager."""

    def test_set_and_get(self, cache):
        """Тест сохранения и чтения значения."""
        cache.set("face:1", {"emotion": "happy", "score": 0.93})

        assert cache.get("face:1") == {"emotion": "happy", "score": 0.93}
        assert len(cache) == 1

    def test_missing_key(self, cache):
        """Тест чтения отсутствующего ключа."""
        with pytest.raises(KeyNotFoundError) as exc_info:
            cache.get("missing")

        assert str(exc_info.value) == "key not found"
        assert cache.get_stats().misses == 1

    def test_expired_item_is_a_miss(self, cache):
        """Тест: истёкшая запись не возвращается до очистки."""
        cache.set("face:1", "sad", ttl=0.01)
        time.sleep(0.03)

        with pytest.raises(KeyNotFoundError):
            cache.get("face:1")

        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.hits == 0
        # Запись остаётся до очистки
        assert stats.item_count == 1

    def test_cleanup_removes_expired(self, cache):
        """Тест ручной очистки."""
        cache.set("old", "a", ttl=0.01)
        cache.set("fresh", "b", ttl=60)
        time.sleep(0.03)

        assert cache.cleanup() == 1
        assert cache.get("fresh") == "b"

        stats = cache.get_stats()
        assert stats.item_count == 1
        assert stats.current_size == 1
        assert stats.expirations == 1

    def test_background_sweep(self, make_cache, wait_for):
        """Тест фоновой очистки."""
        cache = make_cache(cleanup_interval=0.05)
        cache.set("face:1", "neutral", ttl=0.01)

        assert wait_for(lambda: len(cache) == 0)
        assert cache.get_stats().current_size == 0
        assert cache.get_stats().expirations == 1

    def test_default_ttl(self, make_cache):
        """Тест времени жизни по умолчанию."""
        cache = make_cache(default_ttl=0.01)
        cache.set("face:1", "angry")
        time.sleep(0.03)

        with pytest.raises(KeyNotFoundError):
            cache.get("face:1")

    def test_value_larger_than_cache(self, make_cache):
        """Тест значения больше всего кэша."""
        cache = make_cache(max_size=10)

        with pytest.raises(SizeExceededError) as exc_info:
            cache.set("big", "x" * 11)

        assert isinstance(exc_info.value, CapacityError)
        assert str(exc_info.value) == "value size exceeds cache max size"
        assert len(cache) == 0

    def test_value_of_exact_max_size(self, make_cache):
        """Тест значения размером ровно с кэш."""
        cache = make_cache(max_size=10)
        cache.set("exact", "x" * 10)

        assert cache.get_stats().usage_percent == 100.0

    def test_eviction_by_earliest_expiration(self, make_cache):
        """Тест вытеснения записей с самым ранним истечением."""
        cache = make_cache(max_size=100, size_estimator=fixed_size(40))
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=5)
        cache.get("b")

        cache.set("c", 3, ttl=20)

        # Недавнее чтение не спасает запись: порядок по истечению, не LRU
        with pytest.raises(KeyNotFoundError):
            cache.get("b")
        assert cache.get("a") == 1
        assert cache.get("c") == 3

        stats = cache.get_stats()
        assert stats.evictions == 1
        assert stats.current_size == 80

    def test_eviction_frees_enough_space(self, make_cache):
        """Тест вытеснения нескольких записей."""
        cache = make_cache(max_size=100)
        for i in range(5):
            cache.set(f"k{i}", "x" * 20, ttl=10 + i)

        cache.set("big", "y" * 50, ttl=60)

        assert cache.get_stats().evictions == 3
        assert cache.get_stats().current_size == 90
        assert cache.get("k3") == "x" * 20
        assert cache.get("k4") == "x" * 20

    def test_overwrite_replaces_size(self, make_cache):
        """Тест перезаписи ключа без вытеснения."""
        cache = make_cache(max_size=100, size_estimator=fixed_size(60))
        cache.set("a", "first")
        cache.set("a", "second")

        assert cache.get("a") == "second"
        stats = cache.get_stats()
        assert stats.item_count == 1
        assert stats.current_size == 60
        assert stats.evictions == 0

    def test_overwrite_with_larger_value(self, make_cache):
        """Тест перезаписи ключа большим значением."""
        cache = make_cache(max_size=100)
        cache.set("a", "x" * 30, ttl=5)
        cache.set("b", "x" * 50, ttl=60)

        cache.set("b", "y" * 80, ttl=60)

        with pytest.raises(KeyNotFoundError):
            cache.get("a")
        assert cache.get("b") == "y" * 80
        assert cache.get_stats().current_size == 80

    def test_get_or_compute(self, cache):
        """Тест вычисления только при промахе."""
        calls = []

        def compute():
            calls.append(1)
            return "happy"

        assert cache.get_or_compute("face:1", compute, ttl=0.05) == "happy"
        assert cache.get_or_compute("face:1", compute, ttl=0.05) == "happy"
        assert len(calls) == 1

        time.sleep(0.1)
        assert cache.get_or_compute("face:1", compute, ttl=0.05) == "happy"
        assert len(calls) == 2

    @pytest.mark.parametrize("single_flight", [True, False])
    def test_get_or_compute_counts_one_miss(self, make_cache, single_flight):
        """Тест: промах get_or_compute учитывается в статистике один раз."""
        cache = make_cache(single_flight=single_flight)

        cache.get_or_compute("face:1", lambda: "happy")
        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.hits == 0

        cache.get_or_compute("face:1", lambda: "sad")
        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.hits == 1

    def test_get_or_compute_error_is_not_cached(self, cache):
        """Тест: ошибка вычисления пробрасывается и не кэшируется."""
        error = ValueError("no face detected")

        def failing():
            raise error

        with pytest.raises(ValueError) as exc_info:
            cache.get_or_compute("face:1", failing)

        assert exc_info.value is error
        assert len(cache) == 0
        assert cache.get_or_compute("face:1", lambda: "surprised") == "surprised"

    def test_get_or_compute_propagates_set_error(self, make_cache):
        """Тест: ошибка сохранения вычисленного значения пробрасывается."""
        cache = make_cache(max_size=4)

        with pytest.raises(SizeExceededError):
            cache.get_or_compute("face:1", lambda: "too large")

        assert len(cache) == 0

    def test_single_flight(self, cache):
        """Тест: одновременные промахи ждут одного вычисления."""
        calls = []
        lock = threading.Lock()
        release = threading.Event()

        def compute():
            with lock:
                calls.append(1)
            release.wait(2.0)
            return "fear"

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(cache.get_or_compute, "face:1", compute) for _ in range(8)]
            time.sleep(0.1)
            release.set()
            results = [f.result(timeout=5.0) for f in futures]

        assert results == ["fear"] * 8
        assert len(calls) == 1

    def test_single_flight_shares_error(self, cache):
        """Тест: ожидающие получают ошибку общего вычисления."""
        started = threading.Event()
        release = threading.Event()

        def failing():
            started.set()
            release.wait(2.0)
            raise RuntimeError("model unavailable")

        with ThreadPoolExecutor(max_workers=2) as executor:
            leader = executor.submit(cache.get_or_compute, "face:1", failing)
            assert started.wait(2.0)
            follower = executor.submit(cache.get_or_compute, "face:1", lambda: "unused")
            time.sleep(0.05)
            release.set()

            with pytest.raises(RuntimeError):
                leader.result(timeout=5.0)
            with pytest.raises(RuntimeError):
                follower.result(timeout=5.0)

    def test_without_single_flight(self, make_cache):
        """Тест: без single_flight каждый промах вычисляет значение сам."""
        cache = make_cache(single_flight=False)
        barrier = threading.Barrier(4, timeout=2.0)
        calls = []
        lock = threading.Lock()

        def compute():
            with lock:
                calls.append(1)
            barrier.wait()
            return "disgust"

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda _: cache.get_or_compute("face:1", compute), range(4)))

        assert results == ["disgust"] * 4
        assert len(calls) == 4

    def test_follower_context_deadline(self, cache):
        """Тест: дедлайн прерывает ожидание чужого вычисления."""
        started = threading.Event()
        release = threading.Event()

        def slow():
            started.set()
            release.wait(2.0)
            return "contempt"

        with ThreadPoolExecutor(max_workers=1) as executor:
            leader = executor.submit(cache.get_or_compute, "face:1", slow)
            assert started.wait(2.0)

            with pytest.raises(DeadlineExceededError):
                cache.get_or_compute("face:1", lambda: "unused", ctx=with_timeout(0.05))

            release.set()
            assert leader.result(timeout=5.0) == "contempt"

        assert cache.get("face:1") == "contempt"

    def test_delete(self, cache):
        """Тест удаления ключа."""
        cache.set("face:1", "happy")

        assert cache.delete("face:1") is True
        assert cache.delete("face:1") is False
        assert cache.get_stats().current_size == 0

    def test_clear(self, cache):
        """Тест очистки кэша."""
        for i in range(3):
            cache.set(f"face:{i}", "happy")

        cache.clear()

        assert len(cache) == 0
        assert cache.get_stats().current_size == 0

    def test_close_keeps_cache_usable(self, cache):
        """Тест: после закрытия кэш продолжает работать."""
        cache.close()
        cache.close()

        assert cache.is_closed()
        cache.set("face:1", "calm")
        assert cache.get("face:1") == "calm"

    def test_context_manager(self):
        """Тест контекстного менеджера."""
        with new_manager(1024, 60.0) as cache:
            cache.set("face:1", "happy")

        assert cache.is_closed()

    def test_invalid_configuration(self):
        """Тест недопустимых параметров."""
        with pytest.raises(ValueError):
            new_manager(0, 60.0)

        with pytest.raises(ValueError):
            new_manager(1024, 0)

    def test_get_stats(self, make_cache):
        """Тест статистики кэша."""
        cache = make_cache(max_size=200)
        cache.set("a", "x" * 50)
        cache.get("a")
        with pytest.raises(KeyNotFoundError):
            cache.get("b")

        stats = cache.get_stats()
        assert stats.item_count == 1
        assert stats.current_size == 50
        assert stats.max_size == 200
        assert stats.usage_percent == 25.0
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.to_dict()['hit_rate'] == 0.5

    def test_concurrent_access(self, cache):
        """Тест параллельного чтения и записи."""
        def worker(i):
            key = f"face:{i % 10}"
            cache.set(key, i)
            try:
                cache.get(key)
            except KeyNotFoundError:
                pass

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(worker, range(200)))

        stats = cache.get_stats()
        assert stats.item_count == 10
        assert stats.current_size == 80


class TestSizeEstimator:
    """Тесты для оценки размера значений."""

    def test_strings_and_bytes(self):
        """Тест строк и байтов."""
        assert estimate_size("abc") == 3
        assert estimate_size("ёж") == 4
        assert estimate_size(b"\x00" * 16) == 16
        assert estimate_size(bytearray(5)) == 5

    def test_scalars(self):
        """Тест чисел и None."""
        assert estimate_size(None) == 0
        assert estimate_size(1) == 8
        assert estimate_size(0.5) == 8
        assert estimate_size(True) == 8

    def test_containers(self):
        """Тест контейнеров."""
        assert estimate_size({"ab": 1}) == 10
        assert estimate_size([1, 2, "xyz"]) == 19
        assert estimate_size(()) == 0

    def test_other_objects(self):
        """Тест прочих объектов."""
        assert estimate_size(object()) == 32

    def test_fixed_size(self):
        """Тест фиксированного оценщика."""
        estimator = fixed_size(7)
        assert estimator("anything") == 7

        with pytest.raises(ValueError):
            fixed_size(-1)
