"""
Система логирования для ядра анализатора.
"""

import json
import logging
import sys
import threading
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from pathlib import Path


class AnalyzerFormatter(logging.Formatter):
    """Текстовый форматтер для логов ядра анализатора."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-20s | %(threadName)-15s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record):
        if not hasattr(record, 'threadName'):
            record.threadName = threading.current_thread().name

        return super().format(record)


class JsonFormatter(logging.Formatter):
    """
    Форматтер логов в JSON, одна запись на строку.

    Статические поля (service, environment и т.п.) добавляются в каждую запись.
    """

    def __init__(self, fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.fields = dict(fields or {})

    def format(self, record):
        entry = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname.lower(),
            'logger': record.name,
            'thread': record.threadName,
            'msg': record.getMessage()
        }
        entry.update(self.fields)

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class MetricsHandler(logging.Handler):
    """Обработчик логов для сбора метрик."""

    def __init__(self):
        super().__init__()
        self._metrics = self._empty_metrics()
        self._lock = threading.Lock()

    @staticmethod
    def _empty_metrics() -> Dict[str, int]:
        return {
            'total_logs': 0,
            'error_count': 0,
            'warning_count': 0,
            'info_count': 0,
            'debug_count': 0
        }

    def emit(self, record):
        with self._lock:
            self._metrics['total_logs'] += 1

            if record.levelno >= logging.ERROR:
                self._metrics['error_count'] += 1
            elif record.levelno >= logging.WARNING:
                self._metrics['warning_count'] += 1
            elif record.levelno >= logging.INFO:
                self._metrics['info_count'] += 1
            elif record.levelno >= logging.DEBUG:
                self._metrics['debug_count'] += 1

    def get_metrics(self) -> Dict[str, int]:
        """Получение метрик логов."""
        with self._lock:
            return self._metrics.copy()

    def reset_metrics(self):
        """Сброс метрик."""
        with self._lock:
            self._metrics = self._empty_metrics()


# Глобальный обработчик метрик
_metrics_handler = MetricsHandler()


def build_formatter(log_format: Optional[str] = None, fields: Optional[Dict[str, Any]] = None) -> logging.Formatter:
    """
    Создание форматтера по названию формата.

    Args:
        log_format: "text", "json" или произвольная строка формата logging
        fields: Статические поля для JSON формата

    Returns:
        Объект форматтера
    """
    if not log_format or log_format == "text":
        return AnalyzerFormatter()
    if log_format == "json":
        return JsonFormatter(fields)
    return logging.Formatter(log_format)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_metrics: bool = True,
    log_format: Optional[str] = None,
    fields: Optional[Dict[str, Any]] = None
):
    """
    Настройка системы логирования.

    Args:
        level: Уровень логирования
        log_file: Путь к файлу логов
        enable_console: Включить вывод в консоль
        enable_metrics: Включить сбор метрик
        log_format: "text", "json" или кастомный формат логов
        fields: Статические поля, добавляемые в JSON записи
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Очистка существующих обработчиков
    root_logger.handlers.clear()

    formatter = build_formatter(log_format, fields)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if enable_metrics:
        _metrics_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(_metrics_handler)

    # Настройка логгеров для библиотек
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Получение логгера для модуля.

    Args:
        name: Имя модуля

    Returns:
        Объект логгера
    """
    return logging.getLogger(name)


def get_log_metrics() -> Dict[str, int]:
    """Получение метрик логов."""
    return _metrics_handler.get_metrics()


def reset_log_metrics():
    """Сброс метрик логов."""
    _metrics_handler.reset_metrics()
