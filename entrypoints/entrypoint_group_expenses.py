#!/usr/bin/env python3
"""
Entrypoint для API групповых расходов.

Запуск:
    python entrypoints/entrypoint_group_expenses.py

Порт по умолчанию: 8092
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    """Запустить API групповых расходов."""
    uvicorn.run(
        "src.services.group_expenses.app:app",
        host=settings.deployment.GROUP_EXPENSES_HOST,
        port=settings.deployment.GROUP_EXPENSES_PORT,
        reload=settings.system.DEBUG,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
