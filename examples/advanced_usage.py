"""
Продвинутые примеры использования ядра анализатора.
"""

import time
import hashlib
import requests
from typing import Dict, Any, List

from analyzer_core import (
    Runtime,
    Task,
    with_timeout,
    load_environment_config,
    DeadlineExceededError
)
from analyzer_core.utils.config import default_config_dir


IMAGE_URLS = [
    "https://httpbin.org/image/jpeg",
    "https://httpbin.org/image/png",
    "https://httpbin.org/image/webp",
    "https://httpbin.org/image/jpeg"
]


def download_image(url: str, timeout: float) -> bytes:
    """Загрузка изображения по HTTP."""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def analyze_image(image: bytes) -> Dict[str, Any]:
    """Имитация анализа: размер и отпечаток изображения."""
    time.sleep(0.1)
    return {
        'bytes': len(image),
        'fingerprint': hashlib.sha256(image).hexdigest()[:16]
    }


def example_cached_downloads(runtime: Runtime):
    """Пример загрузки изображений с кэшированием."""
    print("=== Загрузка изображений с кэшированием ===\n")

    def task_for(url: str) -> Task:
        def run(ctx):
            timeout = ctx.remaining() or 10.0
            image = runtime.cache.get_or_compute(
                f"image:{url}",
                lambda: download_image(url, timeout),
                ttl=60.0,
                ctx=ctx
            )
            return analyze_image(image)

        return Task(func=run, name=f"analyze {url}")

    results: List[Dict[str, Any]] = []
    for url in IMAGE_URLS:
        try:
            results.append(runtime.pool.submit(with_timeout(15.0), task_for(url)))
        except requests.RequestException as e:
            print(f"   {url}: ошибка загрузки {e}")
        except DeadlineExceededError:
            print(f"   {url}: дедлайн истёк")

    for result in results:
        print(f"   {result['fingerprint']}: {result['bytes']} байт")

    stats = runtime.cache.get_stats()
    print(f"\nКэш: {stats.item_count} записей, {stats.usage_percent:.2f}% заполнен, "
          f"hit rate {stats.hit_rate:.0%}")


def example_load_burst(runtime: Runtime):
    """Пример масштабирования под нагрузкой."""
    print("\n=== Масштабирование под нагрузкой ===\n")

    from concurrent.futures import ThreadPoolExecutor

    def slow_task(ctx):
        time.sleep(0.2)
        return "done"

    max_workers = runtime.config.pool.max_workers
    with ThreadPoolExecutor(max_workers=max_workers * 3) as executor:
        futures = [executor.submit(runtime.pool.submit, None, slow_task) for _ in range(max_workers * 3)]
        time.sleep(0.3)
        print(f"   Воркеров под нагрузкой: {runtime.pool.get_stats().current_workers}")
        for future in futures:
            future.result()

    time.sleep(1.0)
    print(f"   Воркеров после нагрузки: {runtime.pool.get_stats().current_workers}")


def example_monitoring(runtime: Runtime):
    """Пример мониторинга."""
    print("\n=== Мониторинг ===\n")

    health = runtime.check_health()
    print(f"   Система здорова: {health.is_healthy}")
    for warning in health.warnings:
        print(f"   Предупреждение: {warning}")

    if runtime.collector is not None:
        runtime.collector.collect()
        print("\n   Метрики Prometheus:")
        for line in runtime.collector.export().splitlines():
            if not line.startswith('#'):
                print(f"   {line}")


def main():
    """Основная функция с продвинутыми примерами."""
    print("=== Продвинутые примеры ядра анализатора ===\n")

    config = load_environment_config(default_config_dir())
    runtime = Runtime.from_config(config, configure_logging=True)

    try:
        example_cached_downloads(runtime)
        example_load_burst(runtime)
        example_monitoring(runtime)

    except KeyboardInterrupt:
        print("\nПрервано пользователем")
    finally:
        status = runtime.close()
        print(f"\nОстановка завершена: шаги {status.completed_steps}, ошибок {status.error_count}")


if __name__ == "__main__":
    main()
