"""
Оценка размера значений для бюджета кэша.
"""

from collections.abc import Mapping
from typing import Any, Callable


SizeEstimator = Callable[[Any], int]

SCALAR_SIZE = 8
DEFAULT_SIZE = 32


def estimate_size(value: Any) -> int:
    """
    Приблизительный размер значения в байтах.

    Строки считаются по длине в UTF-8, байтовые объекты по длине,
    числа и bool по 8 байт. Для словарей суммируются размеры ключей
    и значений, для списков, кортежей и множеств размеры элементов.
    Прочие объекты оцениваются в 32 байта.
    """
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode('utf-8'))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, memoryview):
        return value.nbytes
    if isinstance(value, (bool, int, float, complex)):
        return SCALAR_SIZE
    if isinstance(value, Mapping):
        return sum(estimate_size(k) + estimate_size(v) for k, v in value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return sum(estimate_size(item) for item in value)
    return DEFAULT_SIZE


def fixed_size(size: int) -> SizeEstimator:
    """Оценщик, возвращающий один и тот же размер для любого значения."""
    if size < 0:
        raise ValueError("size must be >= 0")
    return lambda _value: size
