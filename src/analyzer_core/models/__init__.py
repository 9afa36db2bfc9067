"""
Модели данных ядра анализатора.
"""

from .task import Task, TaskResult, TaskStatus, TaskSubmission, SubmissionState
from .worker import Worker, WorkerStatus, WorkerMetrics
from .pool_stats import PoolCounters, PoolStats
from .cache_item import CacheItem, CacheStats

__all__ = [
    "Task",
    "TaskResult",
    "TaskStatus",
    "TaskSubmission",
    "SubmissionState",
    "Worker",
    "WorkerStatus",
    "WorkerMetrics",
    "PoolCounters",
    "PoolStats",
    "CacheItem",
    "CacheStats"
]
