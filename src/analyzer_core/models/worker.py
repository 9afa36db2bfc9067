"""
Модели воркеров для пула.
"""

import uuid
from enum import Enum
from typing import Optional
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock


class WorkerStatus(Enum):
    """Статусы воркеров."""
    IDLE = "idle"
    BUSY = "busy"
    RETIRED = "retired"
    STOPPED = "stopped"


@dataclass
class WorkerMetrics:
    """Метрики воркера."""

    tasks_completed: int = 0
    tasks_failed: int = 0
    total_execution_time: float = 0.0
    last_task_at: Optional[datetime] = None

    @property
    def average_execution_time(self) -> float:
        total = self.tasks_completed + self.tasks_failed
        if total == 0:
            return 0.0
        return self.total_execution_time / total


@dataclass
class Worker:
    """Представление воркера."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: WorkerStatus = WorkerStatus.IDLE
    started_at: datetime = field(default_factory=datetime.now)
    stopped_at: Optional[datetime] = None
    metrics: WorkerMetrics = field(default_factory=WorkerMetrics)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def set_busy(self):
        """Установка статуса занят."""
        with self._lock:
            if self.status == WorkerStatus.IDLE:
                self.status = WorkerStatus.BUSY

    def set_idle(self):
        """Установка статуса свободен."""
        with self._lock:
            if self.status == WorkerStatus.BUSY:
                self.status = WorkerStatus.IDLE

    def stop(self, retired: bool = False):
        """Остановка воркера."""
        with self._lock:
            self.status = WorkerStatus.RETIRED if retired else WorkerStatus.STOPPED
            self.stopped_at = datetime.now()

    def update_metrics(self, execution_time: float, success: bool = True):
        """Обновление метрик."""
        with self._lock:
            if success:
                self.metrics.tasks_completed += 1
            else:
                self.metrics.tasks_failed += 1
            self.metrics.total_execution_time += execution_time
            self.metrics.last_task_at = datetime.now()

    def is_available(self) -> bool:
        """Проверка доступности воркера."""
        return self.status == WorkerStatus.IDLE

    def get_uptime(self) -> float:
        """Получение времени работы."""
        end = self.stopped_at or datetime.now()
        return (end - self.started_at).total_seconds()
