"""
Ядро анализатора эмоций по лицу: ограниченный адаптивный пул воркеров и TTL-кэш.

Основные компоненты:
- WorkerPool: пул воркеров с ограниченной очередью и динамическим масштабированием
- CacheManager: кэш с временем жизни записей и бюджетом по размеру
- Context: сигнал отмены и дедлайн для ожиданий
- Runtime: сборка пула, кэша и мониторинга из одной конфигурации
"""

from .core.context import Context, background, with_cancel, with_timeout
from .core.worker_pool import WorkerPool, new_pool
from .core.cache_manager import CacheManager, new_manager
from .models.task import Task, TaskResult, TaskStatus
from .models.pool_stats import PoolStats
from .models.cache_item import CacheItem, CacheStats
from .utils.config import (
    Config,
    WorkerPoolConfig,
    CacheConfig,
    load_config,
    load_environment_config
)
from .utils.logger import get_logger, setup_logging
from .runtime import Runtime
from .exceptions import (
    AnalyzerCoreError,
    CapacityError,
    QueueFullError,
    SizeExceededError,
    CacheFullError,
    KeyNotFoundError,
    LifecycleError,
    PoolShutdownError,
    InvalidTaskError,
    CancellationError,
    ContextCancelledError,
    DeadlineExceededError,
    TaskExecutionError,
    ConfigurationError
)

__version__ = "1.0.0"
__author__ = "Face Analyzer Team"

__all__ = [
    "Context",
    "background",
    "with_cancel",
    "with_timeout",
    "WorkerPool",
    "new_pool",
    "CacheManager",
    "new_manager",
    "Task",
    "TaskResult",
    "TaskStatus",
    "PoolStats",
    "CacheItem",
    "CacheStats",
    "Config",
    "WorkerPoolConfig",
    "CacheConfig",
    "load_config",
    "load_environment_config",
    "get_logger",
    "setup_logging",
    "Runtime",
    "AnalyzerCoreError",
    "CapacityError",
    "QueueFullError",
    "SizeExceededError",
    "CacheFullError",
    "KeyNotFoundError",
    "LifecycleError",
    "PoolShutdownError",
    "InvalidTaskError",
    "CancellationError",
    "ContextCancelledError",
    "DeadlineExceededError",
    "TaskExecutionError",
    "ConfigurationError"
]
