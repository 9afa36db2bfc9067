"""
Контекст отмены для пула воркеров и кэша.

Контекст несёт сигнал отмены и необязательный дедлайн. Дочерний контекст
завершается вместе с родителем и наследует его дедлайн. Ожидающие стороны
подписываются на завершение через add_done_callback и просыпаются сразу,
без периодического опроса.

Все дедлайны обслуживает один фоновый поток планировщика. Callback'и
завершения по дедлайну вызываются только из него, поэтому err() и done()
можно безопасно вызывать под любыми блокировками.
"""

import heapq
import itertools
import threading
import time
import weakref
from typing import Callable, Dict, List, Optional, Tuple

from ..utils.logger import get_logger
from ..exceptions import CancellationError, ContextCancelledError, DeadlineExceededError


logger = get_logger(__name__)

DoneCallback = Callable[[CancellationError], None]


def _noop():
    pass


class _DeadlineScheduler:
    """
    Один фоновый поток, завершающий контексты по дедлайну.

    Хранит слабые ссылки, поэтому брошенный контекст не удерживается
    до своего дедлайна.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._heap: List[Tuple[float, int, weakref.ref]] = []
        self._sequence = itertools.count()
        self._thread: Optional[threading.Thread] = None

    def schedule(self, ctx: 'Context'):
        with self._cond:
            heapq.heappush(self._heap, (ctx.deadline, next(self._sequence), weakref.ref(ctx)))
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._run,
                    name="context-deadline-scheduler",
                    daemon=True
                )
                self._thread.start()
            self._cond.notify()

    def _run(self):
        while True:
            with self._cond:
                while True:
                    if not self._heap:
                        self._cond.wait()
                        continue
                    delay = self._heap[0][0] - time.monotonic()
                    if delay <= 0:
                        break
                    self._cond.wait(delay)
                _deadline, _seq, ref = heapq.heappop(self._heap)

            ctx = ref()
            if ctx is None:
                continue
            try:
                ctx._expire()
            except Exception as e:
                logger.error(f"Error expiring context {ctx!r}: {e}")


class Context:
    """Сигнал отмены с необязательным дедлайном."""

    def __init__(self, parent: Optional['Context'] = None, timeout: Optional[float] = None):
        self._lock = threading.Lock()
        self._err: Optional[CancellationError] = None
        self._callbacks: Dict[int, DoneCallback] = {}
        self._next_callback_id = 0
        self._done_event = threading.Event()
        self._detach_parent: Callable[[], None] = _noop

        deadline = None
        if timeout is not None:
            deadline = time.monotonic() + max(timeout, 0.0)
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

        if parent is not None:
            self._detach_parent = parent.add_done_callback(self._finish)

        # Планировщик нужен только для собственного дедлайна: дедлайн родителя
        # сработает через его подписку.
        if timeout is not None and self._err is None:
            if self._deadline <= time.monotonic():
                self._expire()
            else:
                _scheduler.schedule(self)

    @property
    def deadline(self) -> Optional[float]:
        """Дедлайн по часам time.monotonic() или None."""
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Оставшееся до дедлайна время в секундах или None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def err(self) -> Optional[CancellationError]:
        """
        Причина завершения контекста или None, если он активен.

        Истёкший дедлайн виден сразу, но callback'и подписчиков вызывает
        только поток планировщика.
        """
        err = self._err
        if err is None and self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceededError("context deadline exceeded")
        return err

    def done(self) -> bool:
        """Проверка завершения контекста."""
        return self.err() is not None

    def raise_if_done(self):
        """Выбрасывает ошибку контекста, если он завершён."""
        err = self.err()
        if err is not None:
            raise type(err)(*err.args)

    def cancel(self):
        """Отмена контекста и всех дочерних контекстов."""
        # Истёкший дедлайн сохраняет свою причину
        err = self.err()
        self._finish(err if err is not None else ContextCancelledError("context canceled"))

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Ожидание завершения контекста.

        Returns:
            True если контекст завершён, False если истёк timeout
        """
        if self.done():
            return True
        return self._done_event.wait(timeout)

    def add_done_callback(self, callback: DoneCallback) -> Callable[[], None]:
        """
        Подписка на завершение контекста.

        Если контекст уже завершён, callback вызывается немедленно.
        Для истёкшего, но ещё не обработанного дедлайна callback вызовет
        поток планировщика.

        Returns:
            Функция отписки
        """
        with self._lock:
            if self._err is None:
                callback_id = self._next_callback_id
                self._next_callback_id += 1
                self._callbacks[callback_id] = callback
                return lambda: self._remove_callback(callback_id)
            err = self._err

        callback(err)
        return _noop

    def _remove_callback(self, callback_id: int):
        with self._lock:
            self._callbacks.pop(callback_id, None)

    def _expire(self):
        self._finish(DeadlineExceededError("context deadline exceeded"))

    def _finish(self, err: CancellationError):
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        self._done_event.set()
        self._detach_parent()

        for callback in callbacks:
            try:
                callback(err)
            except Exception as e:
                logger.error(f"Error in context done callback {callback}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()

    def __repr__(self) -> str:
        state = type(self._err).__name__ if self._err else "active"
        return f"Context(state={state}, remaining={self.remaining()})"


class _BackgroundContext(Context):
    """Корневой контекст, который никогда не завершается."""

    def cancel(self):
        pass

    def add_done_callback(self, callback: DoneCallback) -> Callable[[], None]:
        return _noop


_scheduler = _DeadlineScheduler()
_background = _BackgroundContext()


def background() -> Context:
    """Корневой контекст без отмены и дедлайна."""
    return _background


def with_cancel(parent: Optional[Context] = None) -> Context:
    """Дочерний контекст с ручной отменой."""
    return Context(parent or _background)


def with_timeout(timeout: float, parent: Optional[Context] = None) -> Context:
    """Дочерний контекст, который завершится через timeout секунд."""
    return Context(parent or _background, timeout=timeout)


def wait_until(wake: threading.Event, *contexts: Context):
    """
    Блокирующее ожидание события wake или завершения любого из контекстов.

    Контексты будят ожидающего через тот же wake, поэтому после возврата
    вызывающая сторона сама определяет, что именно произошло.
    """
    removers = [ctx.add_done_callback(lambda _err: wake.set()) for ctx in contexts]
    try:
        wake.wait()
    finally:
        for remove in removers:
            remove()
