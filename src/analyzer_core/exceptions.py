"""
Исключения ядра анализатора: пул воркеров и TTL-кэш.
"""


class AnalyzerCoreError(Exception):
    """Базовое исключение ядра анализатора."""
    pass


class CapacityError(AnalyzerCoreError):
    """Не хватает ёмкости (очередь задач, бюджет кэша)."""
    pass


class SizeExceededError(CapacityError):
    """Размер значения превышает максимальный размер кэша."""
    pass


class CacheFullError(SizeExceededError):
    """Кэш переполнен даже после вытеснения."""
    pass


class KeyNotFoundError(AnalyzerCoreError):
    """Ключ отсутствует в кэше или истёк."""
    pass


class LifecycleError(AnalyzerCoreError):
    """Операция недопустима в текущем состоянии жизненного цикла."""
    pass


class PoolShutdownError(LifecycleError):
    """Пул воркеров завершает работу или уже остановлен."""
    pass


class InvalidTaskError(LifecycleError):
    """У задачи нет исполняемого тела."""
    pass


class CancellationError(AnalyzerCoreError):
    """Контекст отменён или истёк его дедлайн."""
    pass


class ContextCancelledError(CancellationError):
    """Контекст отменён явно."""
    pass


class DeadlineExceededError(CancellationError):
    """Истёк дедлайн контекста."""
    pass


class QueueFullError(CapacityError, DeadlineExceededError):
    """Очередь задач оставалась полной до истечения дедлайна."""
    pass


class TaskExecutionError(AnalyzerCoreError):
    """Задача завершилась исключением, не являющимся Exception."""
    pass


class TaskChannelError(AnalyzerCoreError):
    """Ошибка канала задач."""
    pass


class ConfigurationError(AnalyzerCoreError):
    """Ошибка конфигурации."""
    pass
