"""
Исполнитель задач для пула воркеров.
"""

import time
import threading
from typing import Any, Dict

from ..models.task import TaskResult, TaskStatus, TaskSubmission
from ..models.worker import Worker
from ..utils.logger import get_logger
from ..exceptions import TaskExecutionError


logger = get_logger(__name__)


class TaskExecutor:
    """Исполнитель задач с учётом времени выполнения."""

    def __init__(self):
        self._execution_lock = threading.Lock()
        self._metrics = self._empty_metrics()

    @staticmethod
    def _empty_metrics() -> Dict[str, Any]:
        return {
            'total_executions': 0,
            'successful_executions': 0,
            'failed_executions': 0,
            'total_execution_time': 0.0,
            'max_execution_time': 0.0
        }

    def execute(self, submission: TaskSubmission, worker: Worker) -> TaskResult:
        """
        Выполнение задачи.

        Исключение задачи не выходит за пределы исполнителя: оно попадает
        в TaskResult.error без изменений.

        Args:
            submission: Отправленная задача
            worker: Воркер, выполняющий задачу

        Returns:
            Результат выполнения задачи
        """
        task = submission.task
        worker.set_busy()
        start_time = time.monotonic()

        try:
            value = task.func(submission.ctx)
        except Exception as e:
            error = e
        except BaseException as e:
            # SystemExit и подобные не должны останавливать поток воркера
            error = TaskExecutionError(f"Task {task.display_name} raised {type(e).__name__}: {e}")
            error.__cause__ = e
        else:
            error = None

        execution_time = time.monotonic() - start_time
        success = error is None

        worker.set_idle()
        worker.update_metrics(execution_time, success)
        self._update_metrics(execution_time, success)

        if success:
            logger.debug(f"Task {task.id} completed on {worker.name} in {execution_time:.3f}s")
            return TaskResult(
                task_id=task.id,
                status=TaskStatus.COMPLETED,
                value=value,
                execution_time=execution_time
            )

        logger.debug(f"Task {task.id} failed on {worker.name} after {execution_time:.3f}s: {error!r}")
        return TaskResult(
            task_id=task.id,
            status=TaskStatus.FAILED,
            error=error,
            execution_time=execution_time
        )

    def _update_metrics(self, execution_time: float, success: bool):
        """Обновление метрик выполнения."""
        with self._execution_lock:
            self._metrics['total_executions'] += 1
            self._metrics['total_execution_time'] += execution_time
            self._metrics['max_execution_time'] = max(
                self._metrics['max_execution_time'],
                execution_time
            )

            if success:
                self._metrics['successful_executions'] += 1
            else:
                self._metrics['failed_executions'] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик выполнения."""
        with self._execution_lock:
            metrics = self._metrics.copy()

        total = metrics['total_executions']
        if total > 0:
            metrics['average_execution_time'] = metrics['total_execution_time'] / total
            metrics['success_rate'] = (metrics['successful_executions'] / total) * 100
        else:
            metrics['average_execution_time'] = 0.0
            metrics['success_rate'] = 0.0

        return metrics

    def reset_metrics(self):
        """Сброс метрик."""
        with self._execution_lock:
            self._metrics = self._empty_metrics()

    def __repr__(self) -> str:
        metrics = self.get_metrics()
        return f"TaskExecutor(executions={metrics['total_executions']}, success_rate={metrics['success_rate']:.1f}%)"
