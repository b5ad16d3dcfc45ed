"""
Модуль конфигурации.
Экспортирует настройки API групповых расходов.
"""

from src.config.loader import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
