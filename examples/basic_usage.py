"""
Базовый пример использования пула воркеров и кэша анализатора.
"""

import time
import random
import hashlib
from concurrent.futures import ThreadPoolExecutor

from analyzer_core import (
    Task,
    new_pool,
    new_manager,
    with_timeout,
    DeadlineExceededError,
    QueueFullError
)

EMOTIONS = ["happy", "sad", "angry", "surprised", "neutral", "fear", "disgust"]


def fake_image(seed: int) -> bytes:
    """Синтетическое изображение для демонстрации."""
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(2048))


def detect_emotion(image: bytes) -> dict:
    """Имитация работы модели распознавания эмоций."""
    time.sleep(random.uniform(0.05, 0.2))
    digest = hashlib.sha256(image).digest()
    return {
        'emotion': EMOTIONS[digest[0] % len(EMOTIONS)],
        'confidence': round(0.5 + digest[1] / 510, 3)
    }


def main():
    """Основная функция с примерами использования."""
    print("=== Базовый пример анализатора эмоций ===\n")

    with new_pool(2, 6) as pool, new_manager(1024 * 1024, 60.0) as cache:
        stats = pool.get_stats()
        print(f"Пул запущен: {stats.current_workers} воркеров (максимум {stats.max_workers})")

        # Пример 1: синхронная отправка задачи
        print("\n1. Анализ одного изображения:")
        image = fake_image(1)
        result = pool.submit(None, Task(func=lambda ctx: detect_emotion(image), name="single_image"))
        print(f"   Результат: {result}")

        # Пример 2: кэширование результатов по хэшу изображения
        print("\n2. Анализ с кэшированием:")

        def analyze(ctx, seed):
            image = fake_image(seed)
            key = hashlib.sha256(image).hexdigest()
            return cache.get_or_compute(key, lambda: detect_emotion(image), ttl=30.0, ctx=ctx)

        seeds = [1, 2, 3, 1, 2, 3, 1]
        with ThreadPoolExecutor(max_workers=len(seeds)) as executor:
            results = list(executor.map(lambda s: pool.submit(None, lambda ctx: analyze(ctx, s)), seeds))

        for seed, result in zip(seeds, results):
            print(f"   Изображение {seed}: {result['emotion']} ({result['confidence']})")

        cache_stats = cache.get_stats()
        print(f"   Попаданий в кэш: {cache_stats.hits}, промахов: {cache_stats.misses}")

        # Пример 3: дедлайн отправителя
        print("\n3. Задача с дедлайном:")
        try:
            pool.submit(with_timeout(0.05), lambda ctx: time.sleep(0.5))
        except QueueFullError:
            print("   Очередь переполнена")
        except DeadlineExceededError:
            print("   Дедлайн истёк до получения результата")

        # Пример 4: ошибка задачи возвращается отправителю
        print("\n4. Ошибка в задаче:")

        def broken_image(ctx):
            raise ValueError("no face detected")

        try:
            pool.submit(None, broken_image)
        except ValueError as e:
            print(f"   Получена ошибка: {e}")

        # Статистика пула
        print("\n=== Статистика пула ===")
        stats = pool.get_stats()
        print(f"Воркеров: {stats.current_workers}")
        print(f"Задач поставлено в очередь: {stats.tasks_queued}")
        print(f"Задач выполнено: {stats.tasks_processed}")
        print(f"Доля ошибок: {stats.error_rate:.1%}")
        print(f"Средняя задержка: {stats.average_latency:.3f}s")

    print("\nПул воркеров остановлен")


if __name__ == "__main__":
    main()
