"""
Система конфигурации для ядра анализатора.

Переменные окружения читает только загрузчик конфигурации. Пул и кэш
получают готовые объекты конфигурации.
"""

import json
import os
import re
import yaml
from typing import Any, Dict, Mapping, Optional, Union
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path

from ..exceptions import ConfigurationError


DEFAULT_ENVIRONMENT = "development"
ENVIRONMENT_VARIABLE = "ANALYZER_ENV"

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0
}
_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)')

_SIZE_UNITS = {
    '': 1,
    'B': 1,
    'KB': 1024,
    'MB': 1024 ** 2,
    'GB': 1024 ** 3
}
_SIZE_PATTERN = re.compile(r'^\s*(\d+)\s*([KMG]?B?)\s*$', re.IGNORECASE)


def parse_duration(value: Union[str, int, float], name: str = "duration") -> float:
    """
    Разбор длительности в секунды.

    Принимает число секунд или строку вида "50ms", "5s", "2m", "1h30m".
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid {name}: {value!r}")

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    return total


def parse_size(value: Union[str, int], name: str = "size") -> int:
    """Разбор размера в байтах: число или строка вида "10MB"."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid {name}: {value!r}")

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ConfigurationError(f"Invalid {name}: {value!r}")

    unit = match.group(2).upper()
    if unit and not unit.endswith('B'):
        unit += 'B'
    return int(match.group(1)) * _SIZE_UNITS[unit]


def parse_bool(value: Union[str, bool], name: str = "flag") -> bool:
    """Разбор булевого значения из строки окружения."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off'):
        return False
    raise ConfigurationError(f"Invalid {name}: {value!r}")


@dataclass
class WorkerPoolConfig:
    """Конфигурация пула воркеров."""
    min_workers: int = 2
    max_workers: int = 10
    queue_size_multiplier: int = 4  # Ёмкость очереди = multiplier * max_workers
    scaling_check_interval: float = 0.05  # Интервал проверки масштабирования
    scale_up_threshold: float = 0.75  # Доля очереди от активных воркеров для роста
    scale_down_threshold: float = 0.25  # Доля очереди от активных воркеров для сокращения
    scale_up_step: int = 2  # Максимум новых воркеров за один тик
    scale_down_step: int = 1  # Максимум выводимых воркеров за один тик

    @property
    def queue_capacity(self) -> int:
        return self.queue_size_multiplier * self.max_workers

    def normalized(self) -> 'WorkerPoolConfig':
        """Копия с приведёнными границами: min >= 1, max >= min."""
        min_workers = max(1, self.min_workers)
        max_workers = max(min_workers, self.max_workers)
        data = asdict(self)
        data.update(min_workers=min_workers, max_workers=max_workers)
        return WorkerPoolConfig(**data)


@dataclass
class CacheConfig:
    """Конфигурация кэша."""
    max_size: int = 10 * 1024 * 1024  # Байты
    cleanup_interval: float = 60.0
    default_ttl: float = 300.0
    single_flight: bool = True  # Одно вычисление на ключ в get_or_compute
    size_estimator: Optional[Any] = field(default=None, repr=False)  # callable(value) -> int


@dataclass
class LoggingConfig:
    """Конфигурация логирования."""
    level: str = "INFO"
    format: str = "text"  # text | json
    log_file: Optional[str] = None
    enable_console: bool = True
    enable_metrics: bool = True
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class MonitoringConfig:
    """Конфигурация мониторинга."""
    metrics_enabled: bool = True
    collection_interval: float = 5.0
    namespace: str = "face_analyzer"
    max_queue_utilization: float = 0.9
    max_error_rate: float = 0.1
    max_cache_usage: float = 95.0
    max_cpu_percent: float = 90.0
    max_memory_percent: float = 90.0


@dataclass
class ShutdownConfig:
    """Конфигурация graceful shutdown."""
    timeout: float = 30.0  # Общий таймаут в секундах
    signal_handling: bool = False  # Обработка SIGTERM/SIGINT


_SECTIONS = {
    'pool': WorkerPoolConfig,
    'cache': CacheConfig,
    'logging': LoggingConfig,
    'monitoring': MonitoringConfig,
    'shutdown': ShutdownConfig
}

_DURATION_FIELDS = {
    'pool': ('scaling_check_interval',),
    'cache': ('cleanup_interval', 'default_ttl'),
    'monitoring': ('collection_interval',),
    'shutdown': ('timeout',)
}

_SIZE_FIELDS = {
    'cache': ('max_size',)
}


def _build_section(section: str, data: Optional[Mapping[str, Any]]):
    config_cls = _SECTIONS[section]
    data = dict(data or {})

    known = {f.name for f in fields(config_cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {section} settings: {', '.join(unknown)}")

    for name in _DURATION_FIELDS.get(section, ()):
        if name in data:
            data[name] = parse_duration(data[name], f"{section}.{name}")
    for name in _SIZE_FIELDS.get(section, ()):
        if name in data:
            data[name] = parse_size(data[name], f"{section}.{name}")

    return config_cls(**data)


@dataclass
class Config:
    """Основная конфигурация ядра анализатора."""

    app_name: str = "face-emotion-analyzer"
    version: str = "1.0.0"
    environment: str = DEFAULT_ENVIRONMENT
    debug: bool = False

    # Конфигурации компонентов
    pool: WorkerPoolConfig = None
    cache: CacheConfig = None
    logging: LoggingConfig = None
    monitoring: MonitoringConfig = None
    shutdown: ShutdownConfig = None

    def __post_init__(self):
        """Инициализация конфигураций по умолчанию."""
        if self.pool is None:
            self.pool = WorkerPoolConfig()
        if self.cache is None:
            self.cache = CacheConfig()
        if self.logging is None:
            self.logging = LoggingConfig()
        if self.monitoring is None:
            self.monitoring = MonitoringConfig()
        if self.shutdown is None:
            self.shutdown = ShutdownConfig()

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        config_dict = asdict(self)
        # Функция оценки размера не сериализуется
        config_dict['cache'].pop('size_estimator', None)
        return config_dict

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'Config':
        """Создание из словаря."""
        data = dict(data or {})

        sections = {}
        for section in _SECTIONS:
            value = data.pop(section, None)
            if value is not None and not isinstance(value, Mapping):
                raise ConfigurationError(f"Section '{section}' must be a mapping")
            sections[section] = _build_section(section, value)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")

        return cls(**data, **sections)

    def validate(self) -> bool:
        """Валидация конфигурации."""
        errors = []

        if not self.app_name:
            errors.append("app_name must not be empty")

        if self.pool.min_workers < 1:
            errors.append("pool.min_workers must be >= 1")

        if self.pool.max_workers < self.pool.min_workers:
            errors.append("pool.max_workers must be >= pool.min_workers")

        if self.pool.queue_size_multiplier < 1:
            errors.append("pool.queue_size_multiplier must be >= 1")

        if self.pool.scaling_check_interval <= 0:
            errors.append("pool.scaling_check_interval must be > 0")

        if self.cache.max_size <= 0:
            errors.append("cache.max_size must be > 0")

        if self.cache.cleanup_interval <= 0:
            errors.append("cache.cleanup_interval must be > 0")

        if self.cache.default_ttl < 0:
            errors.append("cache.default_ttl must be >= 0")

        if self.logging.format not in ('text', 'json'):
            errors.append("logging.format must be 'text' or 'json'")

        if self.monitoring.collection_interval <= 0:
            errors.append("monitoring.collection_interval must be > 0")

        if self.shutdown.timeout < 0:
            errors.append("shutdown.timeout must be >= 0")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def update(self, **kwargs) -> 'Config':
        """Обновление конфигурации с новыми значениями."""
        new_config = merge_dicts(self.to_dict(), kwargs)
        config = Config.from_dict(new_config)
        config.cache.size_estimator = self.cache.size_estimator
        return config

    def is_development(self) -> bool:
        return self.environment == "development"

    def is_production(self) -> bool:
        return self.environment == "production"


def merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Рекурсивное объединение словарей, значения override имеют приоритет."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def _read_file(file_path: Path) -> Dict[str, Any]:
    with open(file_path, 'r', encoding='utf-8') as f:
        try:
            if file_path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            elif file_path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {file_path}")
    return data


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации (YAML или JSON)

    Returns:
        Объект конфигурации
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    config = Config.from_dict(_read_file(file_path))
    config.validate()

    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """
    Сохранение конфигурации в файл.

    Args:
        config: Объект конфигурации
        file_path: Путь к файлу
        format: Формат файла ('yaml' или 'json')
    """
    file_path = Path(file_path)
    data = config.to_dict()

    if format.lower() not in ('yaml', 'json'):
        raise ConfigurationError(f"Unsupported format: {format}")

    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        if format.lower() == 'yaml':
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, allow_unicode=True)
        else:
            json.dump(data, f, indent=2, ensure_ascii=False)


def _env_int(environ: Mapping[str, str], name: str) -> int:
    try:
        return int(environ[name])
    except ValueError as e:
        raise ConfigurationError(f"Invalid {name}: {environ[name]!r}") from e


def apply_env_overrides(config: Config, environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Переопределение параметров из переменных окружения.

    Args:
        config: Исходная конфигурация
        environ: Переменные окружения (по умолчанию os.environ)

    Returns:
        Новая конфигурация с применёнными переопределениями
    """
    if environ is None:
        environ = os.environ

    overrides: Dict[str, Any] = {}
    pool: Dict[str, Any] = {}
    cache: Dict[str, Any] = {}
    logging_data: Dict[str, Any] = {}

    if environ.get(ENVIRONMENT_VARIABLE):
        overrides['environment'] = environ[ENVIRONMENT_VARIABLE]

    if environ.get('DEBUG'):
        overrides['debug'] = parse_bool(environ['DEBUG'], 'DEBUG')

    if environ.get('WORKER_POOL_MIN_WORKERS'):
        pool['min_workers'] = _env_int(environ, 'WORKER_POOL_MIN_WORKERS')

    if environ.get('WORKER_POOL_MAX_WORKERS'):
        pool['max_workers'] = _env_int(environ, 'WORKER_POOL_MAX_WORKERS')

    if environ.get('CACHE_MAX_SIZE'):
        cache['max_size'] = parse_size(environ['CACHE_MAX_SIZE'], 'CACHE_MAX_SIZE')

    if environ.get('CACHE_CLEANUP_INTERVAL'):
        cache['cleanup_interval'] = parse_duration(environ['CACHE_CLEANUP_INTERVAL'], 'CACHE_CLEANUP_INTERVAL')

    if environ.get('CACHE_DEFAULT_TTL'):
        cache['default_ttl'] = parse_duration(environ['CACHE_DEFAULT_TTL'], 'CACHE_DEFAULT_TTL')

    if environ.get('LOG_LEVEL'):
        logging_data['level'] = environ['LOG_LEVEL'].upper()

    if environ.get('LOG_FORMAT'):
        logging_data['format'] = environ['LOG_FORMAT'].lower()

    if pool:
        overrides['pool'] = pool
    if cache:
        overrides['cache'] = cache
    if logging_data:
        overrides['logging'] = logging_data

    if environ.get('METRICS_ENABLED'):
        overrides['monitoring'] = {
            'metrics_enabled': parse_bool(environ['METRICS_ENABLED'], 'METRICS_ENABLED')
        }

    if not overrides:
        return config
    return config.update(**overrides)


def load_environment_config(
    config_dir: Union[str, Path],
    environ: Optional[Mapping[str, str]] = None
) -> Config:
    """
    Загрузка конфигурации окружения.

    Читает config.yaml, накладывает config.{env}.yaml (если есть),
    применяет переменные окружения и валидирует результат.

    Args:
        config_dir: Директория с файлами конфигурации
        environ: Переменные окружения (по умолчанию os.environ)

    Returns:
        Объект конфигурации
    """
    if environ is None:
        environ = os.environ

    config_dir = Path(config_dir)
    env = environ.get(ENVIRONMENT_VARIABLE) or DEFAULT_ENVIRONMENT

    base_path = config_dir / "config.yaml"
    if not base_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {base_path}")
    data = _read_file(base_path)

    env_path = config_dir / f"config.{env}.yaml"
    if env_path.exists():
        data = merge_dicts(data, _read_file(env_path))

    data.setdefault('environment', env)

    config = apply_env_overrides(Config.from_dict(data), environ)
    config.validate()

    return config


def create_default_config() -> Config:
    """Создание конфигурации по умолчанию."""
    return Config()


def default_config_dir() -> Path:
    """Директория с конфигурациями, поставляемыми с пакетом."""
    return Path(__file__).resolve().parent.parent / "config"
