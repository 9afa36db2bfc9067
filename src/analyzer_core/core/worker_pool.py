"""
Ограниченный адаптивный пул воркеров.
"""

import threading
from typing import Any, Callable, Optional, Union

from .context import Context, background, wait_until
from .task_channel import TaskChannel
from .task_executor import TaskExecutor
from .worker_manager import WorkerManager

from ..models.task import Task, TaskSubmission
from ..models.worker import Worker
from ..models.pool_stats import PoolCounters, PoolStats

from ..utils.config import WorkerPoolConfig
from ..utils.logger import get_logger
from ..exceptions import (
    DeadlineExceededError,
    InvalidTaskError,
    PoolShutdownError,
    QueueFullError,
    TaskChannelError
)


logger = get_logger(__name__)

TaskLike = Union[Task, Callable[[Context], Any]]


class WorkerPool:
    """
    Пул воркеров с ограниченной очередью и синхронной выдачей результата.

    Пул готов к работе сразу после создания: запускаются min_workers
    воркеров и цикл масштабирования. Число воркеров меняется в пределах
    [min_workers, max_workers] в зависимости от длины очереди.
    """

    def __init__(self, config: Optional[WorkerPoolConfig] = None):
        self.config = (config or WorkerPoolConfig()).normalized()
        self._lock = threading.Lock()
        self._shutdown_started = False

        # Отменяется один раз при shutdown и будит всех ожидающих
        self._shutdown_ctx = Context()

        self._channel = TaskChannel(self.config.queue_capacity)
        self._executor = TaskExecutor()
        self._counters = PoolCounters()
        self._manager = WorkerManager(
            self.config,
            self._channel,
            self._handle_submission,
            self._shutdown_ctx
        )
        self._manager.start()

        logger.info(
            f"WorkerPool started: min_workers={self.config.min_workers}, "
            f"max_workers={self.config.max_workers}, queue_capacity={self._channel.capacity}"
        )

    @staticmethod
    def _as_task(task: TaskLike) -> Task:
        if isinstance(task, Task):
            if not task.is_executable():
                raise InvalidTaskError("task execute function is nil")
            return task
        if callable(task):
            return Task(func=task)
        raise InvalidTaskError("task execute function is nil")

    def submit(self, ctx: Optional[Context], task: TaskLike) -> Any:
        """
        Отправка задачи и ожидание её результата.

        Args:
            ctx: Контекст отправителя (None равносилен background())
            task: Task или вызываемый объект func(ctx)

        Returns:
            Значение, возвращённое задачей

        Raises:
            InvalidTaskError: у задачи нет исполняемого тела
            PoolShutdownError: пул остановлен или останавливается
            QueueFullError: дедлайн истёк, пока очередь была полной
            ContextCancelledError, DeadlineExceededError: контекст завершён
            Exception: исключение самой задачи без изменений
        """
        task = self._as_task(task)
        if ctx is None:
            ctx = background()

        if self._shutdown_ctx.done():
            raise PoolShutdownError("worker pool is shutdown")

        # Завершённый контекст: задача не должна выполниться
        ctx.raise_if_done()

        submission = TaskSubmission(task, ctx)
        try:
            queued = self._channel.put(submission, ctx, self._shutdown_ctx)
        except TaskChannelError:
            raise PoolShutdownError("worker pool is shutdown") from None

        if not queued:
            if self._shutdown_ctx.done():
                raise PoolShutdownError("worker pool is shutting down")
            if isinstance(ctx.err(), DeadlineExceededError):
                raise QueueFullError("task queue is full")
            ctx.raise_if_done()

        self._counters.record_queued()

        wait_until(submission.wake, ctx, self._shutdown_ctx)

        if submission.abandon():
            logger.debug(f"Submitter gave up on task {task.id}")
            ctx.raise_if_done()
            raise PoolShutdownError("worker pool is shutting down")

        result = submission.result
        if result.error is not None:
            raise result.error
        return result.value

    def _handle_submission(self, submission: TaskSubmission, worker: Worker):
        """Выполнение задачи воркером и передача результата отправителю."""
        if not submission.begin():
            self._counters.record_dropped()
            logger.debug(f"Skipping task {submission.task.id}: submitter is gone")
            return

        result = self._executor.execute(submission, worker)
        self._counters.record_processed(result.execution_time, result.is_failure())

        if not submission.deliver(result):
            self._counters.record_error()
            logger.warning(f"Dropping result of task {submission.task.id}: submitter is gone")

    def shutdown(self, ctx: Optional[Context] = None):
        """
        Остановка пула.

        Первый вызов подаёт сигнал остановки и ждёт выхода всех воркеров
        (текущие задачи дорабатывают). Канал закрывается, только если
        воркеры вышли до завершения ctx. Повторные вызовы ничего не делают.

        Raises:
            ContextCancelledError, DeadlineExceededError: ctx завершился раньше воркеров
        """
        with self._lock:
            if self._shutdown_started:
                return None
            self._shutdown_started = True

        logger.info("Shutting down WorkerPool...")
        self._shutdown_ctx.cancel()

        if ctx is None:
            ctx = background()

        if not self._manager.wait_stopped(ctx):
            logger.warning("WorkerPool shutdown interrupted before all workers exited")
            ctx.raise_if_done()

        with self._lock:
            self._channel.close()

        logger.info("WorkerPool stopped")
        return None

    def get_stats(self) -> PoolStats:
        """Снимок статистики пула."""
        return PoolStats.from_counters(
            self._counters,
            current_workers=self._manager.active_workers,
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_length=len(self._channel),
            queue_capacity=self._channel.capacity
        )

    def get_worker_stats(self):
        """Статистика воркеров и исполнителя."""
        stats = self._manager.get_worker_stats()
        stats['execution'] = self._executor.get_metrics()
        stats['channel'] = self._channel.get_metrics()
        return stats

    def get_queue_size(self) -> int:
        """Получение размера очереди задач."""
        return len(self._channel)

    def is_shutdown(self) -> bool:
        return self._shutdown_ctx.done()

    def __enter__(self):
        """Контекстный менеджер - вход."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Контекстный менеджер - выход."""
        self.shutdown()

    def __repr__(self) -> str:
        return (f"WorkerPool(workers={self._manager.active_workers}, "
                f"queue_size={self.get_queue_size()}, shutdown={self.is_shutdown()})")


def new_pool(min_workers: int, max_workers: int) -> WorkerPool:
    """Создание пула с параметрами по умолчанию и заданными границами."""
    return WorkerPool(WorkerPoolConfig(min_workers=min_workers, max_workers=max_workers))
