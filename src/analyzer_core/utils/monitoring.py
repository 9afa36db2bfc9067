"""
Система мониторинга для пула воркеров и кэша.
"""

import threading
import psutil
from typing import Dict, Any, List, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from .config import MonitoringConfig
from .logger import get_logger


logger = get_logger(__name__)


@dataclass
class SystemMetrics:
    """Метрики процесса и системы."""
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    process_memory_bytes: int = 0
    process_threads: int = 0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class HealthStatus:
    """Статус здоровья системы."""
    is_healthy: bool = True
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)


_POOL_GAUGES = {
    'current_workers': ('pool_workers', 'Текущее число активных воркеров'),
    'min_workers': ('pool_min_workers', 'Минимальное число воркеров'),
    'max_workers': ('pool_max_workers', 'Максимальное число воркеров'),
    'tasks_processed': ('pool_tasks_processed', 'Число выполненных задач'),
    'tasks_queued': ('pool_tasks_queued', 'Число задач, поставленных в очередь'),
    'tasks_dropped': ('pool_tasks_dropped', 'Число задач, пропущенных из-за ушедшего отправителя'),
    'average_latency': ('pool_average_latency_seconds', 'Среднее время выполнения задачи'),
    'error_rate': ('pool_error_rate', 'Доля ошибок среди выполненных задач'),
    'queue_utilization': ('pool_queue_utilization', 'Заполненность очереди задач')
}

_CACHE_GAUGES = {
    'item_count': ('cache_items', 'Число записей в кэше'),
    'current_size': ('cache_size_bytes', 'Текущий размер кэша'),
    'max_size': ('cache_max_size_bytes', 'Максимальный размер кэша'),
    'usage_percent': ('cache_usage_percent', 'Заполненность кэша в процентах'),
    'hits': ('cache_hits', 'Число попаданий в кэш'),
    'misses': ('cache_misses', 'Число промахов кэша'),
    'evictions': ('cache_evictions', 'Число вытесненных записей'),
    'expirations': ('cache_expirations', 'Число записей, удалённых по истечению')
}

_SYSTEM_GAUGES = {
    'cpu_percent': ('process_cpu_percent', 'Загрузка CPU процессом'),
    'memory_percent': ('system_memory_percent', 'Занятая память системы в процентах'),
    'process_memory_bytes': ('process_memory_bytes', 'Резидентная память процесса'),
    'process_threads': ('process_threads', 'Число потоков процесса')
}


class MetricsCollector:
    """
    Сборщик метрик пула, кэша и процесса.

    Каждый проход читает get_stats() пула и кэша и метрики процесса,
    обновляет Prometheus gauges в собственном реестре и сохраняет
    снимок в историю.
    """

    def __init__(
        self,
        pool=None,
        cache=None,
        config: Optional[MonitoringConfig] = None,
        history_size: int = 100
    ):
        self.pool = pool
        self.cache = cache
        self.config = config or MonitoringConfig()

        self.registry = CollectorRegistry()
        self._gauges: Dict[str, Gauge] = {}
        for group in (_POOL_GAUGES, _CACHE_GAUGES, _SYSTEM_GAUGES):
            for name, help_text in group.values():
                self._gauges[name] = Gauge(
                    f"{self.config.namespace}_{name}",
                    help_text,
                    registry=self.registry
                )

        self._process = psutil.Process()
        self._metrics_history: deque = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self._collection_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        # Callback'и для пользовательских метрик
        self._custom_collectors: List[Callable[[], Dict[str, Any]]] = []

        logger.debug(f"MetricsCollector initialized with interval {self.config.collection_interval}s")

    def start(self):
        """Запуск сбора метрик."""
        if self._collection_thread and self._collection_thread.is_alive():
            logger.warning("Metrics collection already running")
            return

        self._stop_event.clear()
        self._collection_thread = threading.Thread(
            target=self._collection_loop,
            name="metrics-collector",
            daemon=True
        )
        self._collection_thread.start()
        logger.info("Metrics collection started")

    def stop(self, timeout: float = 5.0):
        """Остановка сбора метрик."""
        if self._collection_thread and self._collection_thread.is_alive():
            self._stop_event.set()
            self._collection_thread.join(timeout=timeout)
            logger.info("Metrics collection stopped")

    def is_running(self) -> bool:
        return bool(self._collection_thread and self._collection_thread.is_alive())

    def _collection_loop(self):
        """Основной цикл сбора метрик."""
        while True:
            try:
                self.collect()
            except Exception as e:
                logger.error(f"Error collecting metrics: {e}")

            if self._stop_event.wait(self.config.collection_interval):
                return

    def collect(self) -> Dict[str, Any]:
        """
        Один проход сбора метрик.

        Returns:
            Снимок метрик: pool, cache, system, custom
        """
        snapshot: Dict[str, Any] = {'timestamp': datetime.now()}

        if self.pool is not None:
            pool_stats = self.pool.get_stats().to_dict()
            self._set_gauges(_POOL_GAUGES, pool_stats)
            snapshot['pool'] = pool_stats

        if self.cache is not None:
            cache_stats = self.cache.get_stats().to_dict()
            self._set_gauges(_CACHE_GAUGES, cache_stats)
            snapshot['cache'] = cache_stats

        system_metrics = self._collect_system_metrics()
        self._set_gauges(_SYSTEM_GAUGES, system_metrics.__dict__)
        snapshot['system'] = system_metrics

        snapshot['custom'] = self._collect_custom_metrics()

        with self._lock:
            self._metrics_history.append(snapshot)

        return snapshot

    def _set_gauges(self, group: Dict[str, tuple], values: Dict[str, Any]):
        for key, (name, _help) in group.items():
            if key in values:
                self._gauges[name].set(values[key])

    def _collect_system_metrics(self) -> SystemMetrics:
        """Сбор метрик процесса."""
        try:
            with self._process.oneshot():
                cpu_percent = self._process.cpu_percent(interval=None)
                process_memory_bytes = self._process.memory_info().rss
                process_threads = self._process.num_threads()

            return SystemMetrics(
                cpu_percent=cpu_percent,
                memory_percent=psutil.virtual_memory().percent,
                process_memory_bytes=process_memory_bytes,
                process_threads=process_threads
            )

        except psutil.Error as e:
            logger.error(f"Error collecting system metrics: {e}")
            return SystemMetrics()

    def _collect_custom_metrics(self) -> Dict[str, Any]:
        """Сбор пользовательских метрик."""
        custom_metrics = {}

        for collector in self._custom_collectors:
            try:
                custom_metrics.update(collector())
            except Exception as e:
                logger.error(f"Error in custom metric collector {collector}: {e}")

        return custom_metrics

    def add_custom_collector(self, collector: Callable[[], Dict[str, Any]]):
        """Добавление пользовательского сборщика метрик."""
        self._custom_collectors.append(collector)

    def get_current_metrics(self) -> Optional[Dict[str, Any]]:
        """Получение текущих метрик."""
        with self._lock:
            if self._metrics_history:
                return self._metrics_history[-1]
            return None

    def get_metrics_history(self) -> List[Dict[str, Any]]:
        """Получение истории метрик."""
        with self._lock:
            return list(self._metrics_history)

    def export(self) -> str:
        """Метрики в текстовом формате Prometheus."""
        return generate_latest(self.registry).decode('utf-8')


class HealthChecker:
    """Проверка здоровья пула, кэша и процесса."""

    def __init__(
        self,
        pool=None,
        cache=None,
        metrics_collector: Optional[MetricsCollector] = None,
        config: Optional[MonitoringConfig] = None
    ):
        self.pool = pool
        self.cache = cache
        self.metrics_collector = metrics_collector
        self.config = config or MonitoringConfig()
        self._health_checks: List[Callable[[], HealthStatus]] = []

    def add_health_check(self, check_func: Callable[[], HealthStatus]):
        """Добавление проверки здоровья."""
        self._health_checks.append(check_func)

    def check_health(self) -> HealthStatus:
        """Выполнение всех проверок здоровья."""
        issues = []
        warnings = []

        if self.pool is not None:
            if self.pool.is_shutdown():
                issues.append("Worker pool is shut down")

            stats = self.pool.get_stats()
            if stats.queue_utilization >= self.config.max_queue_utilization:
                issues.append(f"Task queue is nearly full: {stats.queue_utilization:.0%}")
            elif stats.queue_utilization >= self.config.max_queue_utilization * 0.8:
                warnings.append(f"Task queue is filling up: {stats.queue_utilization:.0%}")

            if stats.error_rate > self.config.max_error_rate:
                issues.append(f"High task error rate: {stats.error_rate:.1%}")

        if self.cache is not None:
            cache_stats = self.cache.get_stats()
            if cache_stats.usage_percent > self.config.max_cache_usage:
                warnings.append(f"Cache usage is high: {cache_stats.usage_percent:.1f}%")

        if self.metrics_collector is not None:
            current_metrics = self.metrics_collector.get_current_metrics()
            system_metrics = current_metrics.get('system') if current_metrics else None
            if system_metrics:
                if system_metrics.cpu_percent > self.config.max_cpu_percent:
                    issues.append(f"High CPU usage: {system_metrics.cpu_percent:.1f}%")
                elif system_metrics.cpu_percent > self.config.max_cpu_percent * 0.8:
                    warnings.append(f"Elevated CPU usage: {system_metrics.cpu_percent:.1f}%")

                if system_metrics.memory_percent > self.config.max_memory_percent:
                    issues.append(f"High memory usage: {system_metrics.memory_percent:.1f}%")
                elif system_metrics.memory_percent > self.config.max_memory_percent * 0.8:
                    warnings.append(f"Elevated memory usage: {system_metrics.memory_percent:.1f}%")

        # Пользовательские проверки
        for check_func in self._health_checks:
            try:
                health_status = check_func()
                issues.extend(health_status.issues)
                warnings.extend(health_status.warnings)
            except Exception as e:
                logger.error(f"Error in health check {check_func}: {e}")
                issues.append(f"Health check error: {e}")

        return HealthStatus(
            is_healthy=len(issues) == 0,
            issues=issues,
            warnings=warnings
        )

    def is_system_healthy(self) -> bool:
        """Быстрая проверка здоровья системы."""
        return self.check_health().is_healthy
