"""
Механизм graceful shutdown для компонентов ядра.

Компоненты освобождаются в порядке регистрации, общий дедлайн задаётся
ShutdownConfig.timeout. Ошибка одного компонента не мешает освобождению
остальных.
"""

import signal
import threading
from typing import Callable, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .context import Context, with_timeout
from ..utils.config import ShutdownConfig
from ..utils.logger import get_logger


logger = get_logger(__name__)

CleanupCallback = Callable[[Context], None]


class ShutdownPhase(Enum):
    """Фазы завершения работы."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class ShutdownStatus:
    """Статус завершения работы."""
    phase: ShutdownPhase
    start_time: datetime = field(default_factory=datetime.now)
    completed_steps: List[str] = field(default_factory=list)
    errors: List[Tuple[str, BaseException]] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.phase == ShutdownPhase.COMPLETED and not self.errors

    @property
    def error_count(self) -> int:
        return len(self.errors)


class GracefulShutdown:
    """Упорядоченное освобождение компонентов с общим дедлайном."""

    def __init__(self, config: Optional[ShutdownConfig] = None):
        self.config = config or ShutdownConfig()
        self._lock = threading.Lock()
        self._steps: List[Tuple[str, CleanupCallback]] = []
        self._status = ShutdownStatus(phase=ShutdownPhase.NOT_STARTED)
        self._shutdown_event = threading.Event()
        self._previous_handlers = {}

        if self.config.signal_handling:
            self._register_signal_handlers()

    def _register_signal_handlers(self):
        """Регистрация обработчиков системных сигналов."""
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self._shutdown_event.set()

        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                self._previous_handlers[signum] = signal.signal(signum, signal_handler)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not register signal handler for {signum}: {e}")

    def restore_signal_handlers(self):
        """Восстановление прежних обработчиков сигналов."""
        for signum, handler in self._previous_handlers.items():
            try:
                signal.signal(signum, handler)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not restore signal handler for {signum}: {e}")
        self._previous_handlers.clear()

    def add_step(self, name: str, callback: CleanupCallback):
        """
        Регистрация шага освобождения.

        Args:
            name: Имя шага для логов
            callback: Функция callback(ctx), ctx несёт общий дедлайн
        """
        with self._lock:
            self._steps.append((name, callback))

    def request_shutdown(self):
        """Запрос остановки, например из обработчика сигнала."""
        self._shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def wait_for_request(self, timeout: Optional[float] = None) -> bool:
        """Ожидание запроса остановки (сигнала или request_shutdown)."""
        return self._shutdown_event.wait(timeout)

    def execute(self) -> ShutdownStatus:
        """
        Выполнение всех шагов освобождения.

        Повторный вызов возвращает статус первого выполнения.

        Returns:
            Финальный статус завершения работы
        """
        with self._lock:
            if self._status.phase != ShutdownPhase.NOT_STARTED:
                return self._status
            self._status = ShutdownStatus(phase=ShutdownPhase.RUNNING)
            steps = list(self._steps)

        self._shutdown_event.set()
        logger.info("Graceful shutdown initiated")

        with with_timeout(self.config.timeout) as ctx:
            for name, callback in steps:
                try:
                    callback(ctx)
                    self._status.completed_steps.append(name)
                    logger.debug(f"Shutdown step '{name}' completed")
                except Exception as e:
                    self._status.errors.append((name, e))
                    logger.error(f"Error in shutdown step '{name}': {e}")

        self._status.phase = ShutdownPhase.COMPLETED
        self.restore_signal_handlers()

        elapsed_time = (datetime.now() - self._status.start_time).total_seconds()
        logger.info(f"Graceful shutdown completed in {elapsed_time:.2f} seconds "
                    f"with {self._status.error_count} errors")
        return self._status

    def get_status(self) -> ShutdownStatus:
        """Получение текущего статуса."""
        return self._status

    def __repr__(self) -> str:
        return f"GracefulShutdown(phase={self._status.phase.value}, steps={len(self._steps)})"
