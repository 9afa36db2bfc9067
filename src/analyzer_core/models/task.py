"""
Модели задач для пула воркеров.
"""

import uuid
import threading
from enum import Enum
from typing import Any, Callable, Optional, Dict, TYPE_CHECKING
from dataclasses import dataclass, field
from datetime import datetime

if TYPE_CHECKING:
    from ..core.context import Context


class TaskStatus(Enum):
    """Статусы задач."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Task:
    """
    Единица работы для пула.

    func получает контекст отправителя и возвращает значение
    либо выбрасывает исключение.
    """

    func: Optional[Callable[['Context'], Any]] = None
    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_executable(self) -> bool:
        """Проверка наличия исполняемого тела."""
        return callable(self.func)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return getattr(self.func, "__name__", self.id)


@dataclass
class TaskResult:
    """Результат выполнения задачи: значение либо ошибка."""

    task_id: str
    status: TaskStatus
    value: Optional[Any] = None
    error: Optional[BaseException] = None
    execution_time: float = 0.0
    completed_at: datetime = field(default_factory=datetime.now)

    def is_success(self) -> bool:
        """Проверка успешности выполнения."""
        return self.status == TaskStatus.COMPLETED

    def is_failure(self) -> bool:
        """Проверка неудачного выполнения."""
        return self.status in [TaskStatus.FAILED, TaskStatus.CANCELLED]


class SubmissionState(Enum):
    """Состояния отправленной задачи."""
    QUEUED = "queued"
    RUNNING = "running"
    DELIVERED = "delivered"
    ABANDONED = "abandoned"


class TaskSubmission:
    """
    Задача в очереди вместе с одноразовым слотом результата.

    Воркер публикует результат ровно в слот той отправки, которая поставила
    задачу в очередь. Передача результата и отказ отправителя от ожидания
    взаимоисключающие: побеждает тот, кто первым захватил блокировку.
    """

    def __init__(self, task: Task, ctx: 'Context'):
        self.task = task
        self.ctx = ctx
        self.wake = threading.Event()
        self._lock = threading.Lock()
        self._state = SubmissionState.QUEUED
        self._result: Optional[TaskResult] = None

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def result(self) -> Optional[TaskResult]:
        return self._result

    def begin(self) -> bool:
        """Перевод в RUNNING. False если отправитель уже ушёл."""
        with self._lock:
            if self._state != SubmissionState.QUEUED:
                return False
            self._state = SubmissionState.RUNNING
            return True

    def deliver(self, result: TaskResult) -> bool:
        """Публикация результата. False если отправитель уже ушёл."""
        with self._lock:
            if self._state == SubmissionState.ABANDONED:
                return False
            self._result = result
            self._state = SubmissionState.DELIVERED
        self.wake.set()
        return True

    def abandon(self) -> bool:
        """Отказ от ожидания. False если результат уже доставлен."""
        with self._lock:
            if self._state == SubmissionState.DELIVERED:
                return False
            self._state = SubmissionState.ABANDONED
            return True

    def __repr__(self) -> str:
        return f"TaskSubmission(task={self.task.display_name}, state={self._state.value})"
