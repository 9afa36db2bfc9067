#!/usr/bin/env python3
"""
Скрипт для запуска примеров использования ядра анализатора.
"""

import os
import sys
import argparse
from pathlib import Path


def main():
    """Основная функция скрипта."""
    parser = argparse.ArgumentParser(description="Запуск примеров ядра анализатора")
    parser.add_argument(
        "example",
        choices=["basic", "advanced"],
        help="Тип примера для запуска"
    )
    parser.add_argument(
        "--env",
        choices=["development", "test", "production"],
        help="Окружение конфигурации (ANALYZER_ENV)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Уровень логирования (LOG_LEVEL)"
    )

    args = parser.parse_args()

    # Продвинутый пример читает конфигурацию из окружения
    if args.env:
        os.environ["ANALYZER_ENV"] = args.env
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level

    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

    try:
        if args.example == "basic":
            print("Запуск базового примера...")
            import examples.basic_usage
            examples.basic_usage.main()
        elif args.example == "advanced":
            print("Запуск продвинутого примера...")
            import examples.advanced_usage
            examples.advanced_usage.main()

        print("Пример завершен успешно!")

    except KeyboardInterrupt:
        print("\nПрервано пользователем")
        sys.exit(1)
    except Exception as e:
        print(f"Ошибка при выполнении примера: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
