"""
Сборка ядра анализатора из одной конфигурации.
"""

from typing import Optional

from .core.cache_manager import CacheManager
from .core.graceful_shutdown import GracefulShutdown, ShutdownStatus
from .core.worker_pool import WorkerPool
from .utils.config import Config
from .utils.logger import get_logger, setup_logging
from .utils.monitoring import HealthChecker, HealthStatus, MetricsCollector


logger = get_logger(__name__)


class Runtime:
    """
    Пул воркеров, кэш и мониторинг, созданные один раз.

    close() освобождает компоненты в порядке: сборщик метрик, пул, кэш.
    """

    def __init__(
        self,
        config: Config,
        pool: WorkerPool,
        cache: CacheManager,
        collector: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.pool = pool
        self.cache = cache
        self.collector = collector
        self.health = HealthChecker(
            pool=pool,
            cache=cache,
            metrics_collector=collector,
            config=config.monitoring
        )

        self._shutdown = GracefulShutdown(config.shutdown)
        if collector is not None:
            self._shutdown.add_step("metrics", lambda ctx: collector.stop(timeout=ctx.remaining()))
        self._shutdown.add_step("pool", pool.shutdown)
        self._shutdown.add_step("cache", lambda ctx: cache.close())

    @classmethod
    def from_config(cls, config: Config, configure_logging: bool = False) -> 'Runtime':
        """
        Создание компонентов по конфигурации.

        Args:
            config: Проверенная конфигурация
            configure_logging: Настроить корневой логгер по config.logging
        """
        config.validate()

        if configure_logging:
            fields = {
                'service': config.app_name,
                'version': config.version,
                'environment': config.environment
            }
            fields.update(config.logging.fields)
            setup_logging(
                level=config.logging.level,
                log_file=config.logging.log_file,
                enable_console=config.logging.enable_console,
                enable_metrics=config.logging.enable_metrics,
                log_format=config.logging.format,
                fields=fields
            )

        pool = WorkerPool(config.pool)
        try:
            cache = CacheManager(config.cache)
        except Exception:
            pool.shutdown()
            raise

        collector = None
        if config.monitoring.metrics_enabled:
            try:
                collector = MetricsCollector(pool=pool, cache=cache, config=config.monitoring)
                collector.start()
            except Exception:
                pool.shutdown()
                cache.close()
                raise

        logger.info(f"Runtime for {config.app_name} started in {config.environment} environment")
        return cls(config, pool, cache, collector)

    def check_health(self) -> HealthStatus:
        return self.health.check_health()

    def wait_for_shutdown_request(self, timeout: Optional[float] = None) -> bool:
        """Ожидание сигнала остановки (SIGTERM/SIGINT при signal_handling)."""
        return self._shutdown.wait_for_request(timeout)

    def close(self) -> ShutdownStatus:
        """Освобождение всех компонентов. Повторный вызов ничего не делает."""
        return self._shutdown.execute()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"Runtime(pool={self.pool!r}, cache={self.cache!r})"
