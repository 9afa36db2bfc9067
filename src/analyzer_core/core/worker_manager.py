"""
Менеджер воркеров для пула.

Ведёт логическое число активных воркеров, запускает потоки воркеров
и цикл масштабирования. Сокращение пула выполняется токенами вывода:
цикл масштабирования уменьшает счётчик и выпускает токен, ровно один
воркер забирает токен и завершается.
"""

import itertools
import threading
from typing import Callable, Dict, List, Optional

from .context import Context, wait_until
from .task_channel import TaskChannel
from ..models.task import TaskSubmission
from ..models.worker import Worker, WorkerStatus
from ..utils.config import WorkerPoolConfig
from ..utils.logger import get_logger


logger = get_logger(__name__)

TaskHandler = Callable[[TaskSubmission, Worker], None]


class WorkerManager:
    """Менеджер воркеров с автоматическим масштабированием."""

    def __init__(
        self,
        config: WorkerPoolConfig,
        channel: TaskChannel,
        handler: TaskHandler,
        stop: Context
    ):
        self.config = config
        self._channel = channel
        self._handler = handler
        self._stop = stop

        self._lock = threading.Lock()
        self._active = 0
        self._retire_tokens = 0
        self._running = 0  # Живые потоки, включая цикл масштабирования
        self._exit_waiters: List[threading.Event] = []
        self._workers: Dict[str, Worker] = {}
        self._worker_threads: Dict[str, threading.Thread] = {}
        self._scaling_thread: Optional[threading.Thread] = None
        self._names = itertools.count(1)

    def start(self):
        """Запуск минимального числа воркеров и цикла масштабирования."""
        self.spawn(self.config.min_workers)

        with self._lock:
            self._running += 1
        self._scaling_thread = threading.Thread(
            target=self._scaling_loop,
            name="worker-scaling-thread",
            daemon=True
        )
        self._scaling_thread.start()

        logger.info(f"WorkerManager started with {self.active_workers} workers")

    @property
    def active_workers(self) -> int:
        """Логическое число активных воркеров."""
        return self._active

    @property
    def pending_retirements(self) -> int:
        return self._retire_tokens

    def spawn(self, count: int) -> int:
        """
        Запуск новых воркеров в пределах max_workers.

        Returns:
            Число запущенных воркеров
        """
        started = []
        with self._lock:
            if self._stop.done():
                return 0
            count = max(0, min(count, self.config.max_workers - self._active))
            for _ in range(count):
                worker = Worker(name=f"worker-{next(self._names)}")
                thread = threading.Thread(
                    target=self._worker_loop,
                    args=(worker,),
                    name=worker.name,
                    daemon=True
                )
                self._workers[worker.id] = worker
                self._worker_threads[worker.id] = thread
                started.append(thread)
            self._active += count
            self._running += count

        for thread in started:
            thread.start()

        if started:
            logger.debug(f"Spawned {len(started)} workers, active: {self._active}")
        return len(started)

    def retire(self, count: int) -> int:
        """
        Вывод воркеров из пула, не ниже min_workers.

        Returns:
            Число выпущенных токенов вывода
        """
        with self._lock:
            count = max(0, min(count, self._active - self.config.min_workers))
            self._active -= count
            self._retire_tokens += count

        if count:
            # Простаивающие воркеры ждут в канале, будим их для проверки токена
            self._channel.notify_all()
            logger.debug(f"Retiring {count} workers, active: {self._active}")
        return count

    def _has_retire_token(self) -> bool:
        return self._retire_tokens > 0

    def _take_retire_token(self) -> bool:
        with self._lock:
            if self._retire_tokens > 0:
                self._retire_tokens -= 1
                return True
            return False

    def _worker_loop(self, worker: Worker):
        """Основной цикл воркера."""
        logger.debug(f"Worker {worker.name} started")
        retired = False

        try:
            while True:
                submission = self._channel.get(self._stop, wake_if=self._has_retire_token)

                if submission is None:
                    if self._stop.done() or self._channel.is_closed():
                        break
                    if self._take_retire_token():
                        retired = True
                        break
                    continue

                try:
                    self._handler(submission, worker)
                except Exception as e:
                    logger.error(f"Error handling task on {worker.name}: {e}")

                if self._take_retire_token():
                    retired = True
                    break
        finally:
            self._on_worker_exit(worker, retired)

    def _on_worker_exit(self, worker: Worker, retired: bool):
        with self._lock:
            if not retired:
                # Токен, выпущенный до остановки, уже уменьшил счётчик
                if self._retire_tokens > 0:
                    self._retire_tokens -= 1
                else:
                    self._active -= 1
            self._workers.pop(worker.id, None)
            self._worker_threads.pop(worker.id, None)

        worker.stop(retired=retired)
        logger.debug(f"Worker {worker.name} {'retired' if retired else 'stopped'}")
        self._thread_exited()

    def _thread_exited(self):
        with self._lock:
            self._running -= 1
            if self._running > 0:
                return
            waiters, self._exit_waiters = self._exit_waiters, []

        for waiter in waiters:
            waiter.set()

    def _scaling_loop(self):
        """Цикл автоматического масштабирования."""
        try:
            while not self._stop.wait(self.config.scaling_check_interval):
                try:
                    self.rebalance()
                except Exception as e:
                    logger.error(f"Error in scaling loop: {e}")
        finally:
            self._thread_exited()

    def rebalance(self):
        """Один шаг масштабирования по давлению очереди."""
        queue_size = len(self._channel)
        current_workers = self._active

        if (queue_size > current_workers * self.config.scale_up_threshold and
                current_workers < self.config.max_workers):
            needed = min(self.config.max_workers - current_workers, self.config.scale_up_step)
            started = self.spawn(needed)
            if started:
                logger.info(f"Scaling up: +{started} workers (queue: {queue_size}, workers: {current_workers})")

        elif (queue_size < current_workers * self.config.scale_down_threshold and
              current_workers > self.config.min_workers):
            to_remove = min(current_workers - self.config.min_workers, self.config.scale_down_step)
            retired = self.retire(to_remove)
            if retired:
                logger.info(f"Scaling down: -{retired} workers (queue: {queue_size}, workers: {current_workers})")

    def wait_stopped(self, ctx: Context) -> bool:
        """
        Ожидание выхода всех потоков после сигнала остановки.

        Returns:
            True если все потоки завершились, False если ctx завершился раньше
        """
        wake = threading.Event()
        with self._lock:
            if self._running == 0:
                return True
            self._exit_waiters.append(wake)

        wait_until(wake, ctx)

        with self._lock:
            if wake in self._exit_waiters:
                self._exit_waiters.remove(wake)
            return self._running == 0

    def get_workers(self) -> List[Worker]:
        """Получение списка воркеров."""
        with self._lock:
            return list(self._workers.values())

    def get_worker_stats(self) -> Dict[str, int]:
        """Получение статистики воркеров."""
        workers = self.get_workers()
        busy_workers = sum(1 for w in workers if w.status == WorkerStatus.BUSY)

        return {
            'active_workers': self._active,
            'live_threads': len(workers),
            'busy_workers': busy_workers,
            'idle_workers': len(workers) - busy_workers,
            'pending_retirements': self._retire_tokens,
            'total_tasks_completed': sum(w.metrics.tasks_completed for w in workers),
            'total_tasks_failed': sum(w.metrics.tasks_failed for w in workers)
        }

    def __repr__(self) -> str:
        return f"WorkerManager(active={self._active}, retiring={self._retire_tokens})"
