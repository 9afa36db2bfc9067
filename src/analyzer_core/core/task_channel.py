"""
Канал задач для пула воркеров.

Ограниченная FIFO очередь с закрытием. Ожидания в put и get прерываются
контекстами через add_done_callback, без периодического опроса.
"""

import threading
import time
from collections import deque
from typing import Any, Callable, Dict, Optional

from .context import Context
from ..utils.logger import get_logger
from ..exceptions import TaskChannelError


logger = get_logger(__name__)


def _never() -> bool:
    return False


class TaskChannel:
    """Ограниченный канал для передачи задач от отправителей воркерам."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._items: deque = deque()
        self._cond = threading.Condition(threading.Lock())
        self._closed = False

        self._metrics = {
            'items_put': 0,
            'items_taken': 0,
            'max_size_reached': 0,
            'total_put_wait_time': 0.0
        }

        logger.debug(f"TaskChannel initialized with capacity {capacity}")

    @property
    def capacity(self) -> int:
        return self._capacity

    def put(self, item: Any, *contexts: Context) -> bool:
        """
        Постановка элемента в очередь с ожиданием свободного места.

        Args:
            item: Элемент очереди
            *contexts: Контексты, завершение любого из которых прерывает ожидание

        Returns:
            True если элемент поставлен, False если ожидание прервано контекстом

        Raises:
            TaskChannelError: если канал закрыт
        """
        start_time = time.monotonic()
        removers = [ctx.add_done_callback(self._wake_all) for ctx in contexts]
        try:
            with self._cond:
                while True:
                    if self._closed:
                        raise TaskChannelError("Channel is closed")
                    if any(ctx.done() for ctx in contexts):
                        return False
                    if len(self._items) < self._capacity:
                        break
                    self._cond.wait()

                self._items.append(item)
                self._metrics['items_put'] += 1
                self._metrics['total_put_wait_time'] += time.monotonic() - start_time
                self._metrics['max_size_reached'] = max(
                    self._metrics['max_size_reached'],
                    len(self._items)
                )
                self._cond.notify_all()
                return True
        finally:
            for remove in removers:
                remove()

    def get(self, stop: Optional[Context] = None, wake_if: Callable[[], bool] = _never) -> Optional[Any]:
        """
        Получение элемента из очереди.

        Args:
            stop: Контекст, завершение которого прерывает ожидание
            wake_if: Условие досрочного выхода, проверяется при каждом пробуждении

        Returns:
            Элемент или None, если канал закрыт, stop завершён или wake_if() истинно
        """
        remove = stop.add_done_callback(self._wake_all) if stop is not None else None
        try:
            with self._cond:
                while True:
                    if self._closed:
                        return None
                    if stop is not None and stop.done():
                        return None
                    if wake_if():
                        return None
                    if self._items:
                        break
                    self._cond.wait()

                item = self._items.popleft()
                self._metrics['items_taken'] += 1
                self._cond.notify_all()
                return item
        finally:
            if remove is not None:
                remove()

    def notify_all(self):
        """Пробуждение всех ожидающих для повторной проверки условий."""
        with self._cond:
            self._cond.notify_all()

    def _wake_all(self, _err=None):
        self.notify_all()

    def close(self):
        """Закрытие канала. Повторный вызов ничего не делает."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            remaining = len(self._items)
            self._cond.notify_all()

        logger.debug(f"TaskChannel closed with {remaining} items left")

    def is_closed(self) -> bool:
        """Проверка закрытия канала."""
        return self._closed

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик канала."""
        with self._cond:
            metrics = self._metrics.copy()
            metrics['current_size'] = len(self._items)
            metrics['capacity'] = self._capacity
            return metrics

    def __len__(self) -> int:
        """Размер канала."""
        return len(self._items)

    def __repr__(self) -> str:
        return f"TaskChannel(size={len(self)}, capacity={self._capacity}, closed={self._closed})"
