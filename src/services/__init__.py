"""
Сервисы приложения.

- FastAPI-приложение без состояния между запросами
- Redis как единственное общее хранилище

Сервисы:
- group_expenses: группы, инвайты и общие расходы для Telegram Mini App
"""

__all__: list[str] = []
