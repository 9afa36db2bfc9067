"""
Утилиты ядра анализатора.
"""

from .config import (
    Config,
    WorkerPoolConfig,
    CacheConfig,
    LoggingConfig,
    MonitoringConfig,
    ShutdownConfig,
    load_config,
    save_config,
    load_environment_config,
    apply_env_overrides
)
from .logger import get_logger, setup_logging
from .monitoring import MetricsCollector, HealthChecker
from .rwlock import RWLock

__all__ = [
    "Config",
    "WorkerPoolConfig",
    "CacheConfig",
    "LoggingConfig",
    "MonitoringConfig",
    "ShutdownConfig",
    "load_config",
    "save_config",
    "load_environment_config",
    "apply_env_overrides",
    "get_logger",
    "setup_logging",
    "MetricsCollector",
    "HealthChecker",
    "RWLock"
]
