"""
Тесты для сборки ядра из конфигурации.
"""

import pytest
from unittest.mock import Mock

from analyzer_core import (
    Runtime,
    Config,
    WorkerPool,
    CacheManager,
    WorkerPoolConfig,
    CacheConfig,
    ConfigurationError,
    PoolShutdownError
)
from analyzer_core.core.graceful_shutdown import ShutdownPhase
from analyzer_core.utils.config import MonitoringConfig, ShutdownConfig, load_environment_config, default_config_dir


def make_config(metrics_enabled: bool = True) -> Config:
    return Config(
        environment="test",
        pool=WorkerPoolConfig(min_workers=1, max_workers=2),
        cache=CacheConfig(max_size=1024, cleanup_interval=60.0),
        monitoring=MonitoringConfig(metrics_enabled=metrics_enabled, collection_interval=0.05),
        shutdown=ShutdownConfig(timeout=5.0)
    )


class TestRuntime:
    """Тесты для Runtime."""

    def test_from_config(self):
        """Тест создания компонентов."""
        runtime = Runtime.from_config(make_config())
        try:
            assert runtime.pool.get_stats().max_workers == 2
            assert runtime.cache.max_size == 1024
            assert runtime.collector.is_running()
        finally:
            runtime.close()

    def test_metrics_disabled(self):
        """Тест без сборщика метрик."""
        with Runtime.from_config(make_config(metrics_enabled=False)) as runtime:
            assert runtime.collector is None

        assert runtime.close().completed_steps == ["pool", "cache"]

    def test_invalid_config(self):
        """Тест невалидной конфигурации."""
        config = make_config()
        config.pool.max_workers = 0

        with pytest.raises(ConfigurationError):
            Runtime.from_config(config)

    def test_pool_and_cache_work_together(self):
        """Тест вычисления в пуле с кэшированием результата."""
        with Runtime.from_config(make_config(metrics_enabled=False)) as runtime:
            calls = []

            def analyze(ctx):
                return runtime.cache.get_or_compute(
                    "face:1",
                    lambda: calls.append(1) or "happy",
                    ctx=ctx
                )

            assert runtime.pool.submit(None, analyze) == "happy"
            assert runtime.pool.submit(None, analyze) == "happy"
            assert len(calls) == 1

    def test_close_order(self):
        """Тест порядка освобождения компонентов."""
        runtime = Runtime.from_config(make_config())

        status = runtime.close()

        assert status.phase == ShutdownPhase.COMPLETED
        assert status.completed
        assert status.completed_steps == ["metrics", "pool", "cache"]
        assert not runtime.collector.is_running()
        assert runtime.pool.is_shutdown()
        assert runtime.cache.is_closed()

        with pytest.raises(PoolShutdownError):
            runtime.pool.submit(None, lambda ctx: 1)

    def test_close_is_idempotent(self):
        """Тест повторного закрытия."""
        runtime = Runtime.from_config(make_config())

        first = runtime.close()
        assert runtime.close() is first

    def test_close_continues_after_error(self):
        """Тест: ошибка одного компонента не мешает остальным."""
        pool = Mock()
        pool.shutdown.side_effect = RuntimeError("stuck worker")
        cache = Mock()

        status = Runtime(make_config(), pool, cache).close()

        cache.close.assert_called_once()
        assert status.error_count == 1
        assert status.errors[0][0] == "pool"
        assert status.completed_steps == ["cache"]

    def test_collector_failure_releases_pool_and_cache(self, mocker):
        """Тест: ошибка запуска сборщика метрик освобождает пул и кэш."""
        created = {}
        pool_class = mocker.patch("analyzer_core.runtime.WorkerPool")
        cache_class = mocker.patch("analyzer_core.runtime.CacheManager")
        pool_class.side_effect = lambda config: created.setdefault('pool', Mock())
        cache_class.side_effect = lambda config: created.setdefault('cache', Mock())
        collector_class = mocker.patch("analyzer_core.runtime.MetricsCollector")
        collector_class.return_value.start.side_effect = RuntimeError("registry conflict")

        with pytest.raises(RuntimeError, match="registry conflict"):
            Runtime.from_config(make_config())

        created['pool'].shutdown.assert_called_once()
        created['cache'].close.assert_called_once()

    def test_collector_construction_failure_releases_pool_and_cache(self, mocker):
        """Тест: ошибка создания сборщика метрик освобождает пул и кэш."""
        mocker.patch("analyzer_core.runtime.MetricsCollector", side_effect=ValueError("bad interval"))
        shutdown = mocker.spy(WorkerPool, "shutdown")
        close = mocker.spy(CacheManager, "close")

        with pytest.raises(ValueError, match="bad interval"):
            Runtime.from_config(make_config())

        assert shutdown.call_count == 1
        assert close.call_count == 1

    def test_check_health(self):
        """Тест проверки здоровья."""
        runtime = Runtime.from_config(make_config(metrics_enabled=False))
        try:
            assert runtime.check_health().is_healthy
        finally:
            runtime.close()

        assert not runtime.check_health().is_healthy

    def test_shutdown_request(self):
        """Тест ожидания запроса остановки."""
        runtime = Runtime.from_config(make_config(metrics_enabled=False))
        try:
            assert not runtime.wait_for_shutdown_request(0.01)
        finally:
            runtime.close()

        assert runtime.wait_for_shutdown_request(0.01)

    def test_bundled_test_environment(self):
        """Тест сборки из поставляемой конфигурации тестов."""
        config = load_environment_config(default_config_dir(), environ={'ANALYZER_ENV': 'test'})

        with Runtime.from_config(config) as runtime:
            assert runtime.collector is None
            assert runtime.pool.submit(None, lambda ctx: "ok") == "ok"
