"""
Основные компоненты ядра анализатора.
"""

from .context import Context, background, with_cancel, with_timeout
from .worker_pool import WorkerPool, new_pool
from .task_channel import TaskChannel
from .task_executor import TaskExecutor
from .worker_manager import WorkerManager
from .cache_manager import CacheManager, new_manager
from .size_estimator import estimate_size, fixed_size
from .graceful_shutdown import GracefulShutdown, ShutdownStatus

__all__ = [
    "Context",
    "background",
    "with_cancel",
    "with_timeout",
    "WorkerPool",
    "new_pool",
    "TaskChannel",
    "TaskExecutor",
    "WorkerManager",
    "CacheManager",
    "new_manager",
    "estimate_size",
    "fixed_size",
    "GracefulShutdown",
    "ShutdownStatus"
]
