"""
Модели записей и статистики кэша.
"""

import time
from typing import Any, Dict
from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class CacheItem:
    """Запись кэша: значение, момент истечения (time.monotonic) и размер."""

    value: Any
    expiration: float
    size: int

    def is_expired(self, now: float = None) -> bool:
        if now is None:
            now = time.monotonic()
        return now > self.expiration


@dataclass(frozen=True)
class CacheStats:
    """Снимок статистики кэша."""

    item_count: int
    current_size: int
    max_size: int
    usage_percent: float
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        data = asdict(self)
        data['hit_rate'] = self.hit_rate
        return data
