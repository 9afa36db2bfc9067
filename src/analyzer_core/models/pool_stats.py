"""
Счётчики и статистика пула воркеров.
"""

import threading
from typing import Dict, Any
from dataclasses import dataclass, asdict


class PoolCounters:
    """
    Накопительные счётчики пула.

    Каждое поле меняется под собственной короткой блокировкой, согласованный
    снимок нескольких полей не гарантируется.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.tasks_processed = 0
        self.tasks_queued = 0
        self.tasks_dropped = 0
        self.errors = 0
        self.processing_time = 0.0

    def record_queued(self):
        with self._lock:
            self.tasks_queued += 1

    def record_processed(self, execution_time: float, failed: bool):
        with self._lock:
            self.tasks_processed += 1
            self.processing_time += execution_time
            if failed:
                self.errors += 1

    def record_error(self):
        with self._lock:
            self.errors += 1

    def record_dropped(self):
        with self._lock:
            self.tasks_dropped += 1


@dataclass(frozen=True)
class PoolStats:
    """Снимок статистики пула."""

    current_workers: int
    max_workers: int
    min_workers: int
    tasks_processed: int
    tasks_queued: int
    tasks_dropped: int
    average_latency: float
    error_rate: float
    queue_utilization: float

    @classmethod
    def from_counters(
        cls,
        counters: PoolCounters,
        current_workers: int,
        min_workers: int,
        max_workers: int,
        queue_length: int,
        queue_capacity: int
    ) -> 'PoolStats':
        """Построение снимка из счётчиков."""
        processed = counters.tasks_processed
        processing_time = counters.processing_time
        errors = counters.errors

        average_latency = 0.0
        error_rate = 0.0
        if processed > 0:
            average_latency = processing_time / processed
            error_rate = errors / processed

        queue_utilization = 0.0
        if queue_capacity > 0:
            queue_utilization = queue_length / queue_capacity

        return cls(
            current_workers=current_workers,
            max_workers=max_workers,
            min_workers=min_workers,
            tasks_processed=processed,
            tasks_queued=counters.tasks_queued,
            tasks_dropped=counters.tasks_dropped,
            average_latency=average_latency,
            error_rate=error_rate,
            queue_utilization=queue_utilization
        )

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return asdict(self)
