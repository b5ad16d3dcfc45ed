"""
Общий код API групповых расходов.

Модули:
- models: DTO групп, расходов и ответов API
"""

__all__: list[str] = []
