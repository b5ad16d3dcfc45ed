"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _env_bool(name: str, default: bool) -> bool:
    """Читает булево значение из переменной окружения."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "group_expenses"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Настройки развертывания API."""
    GROUP_EXPENSES_HOST: str = "0.0.0.0"
    GROUP_EXPENSES_PORT: int = 8092
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/group_expenses.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class TelegramSettings(BaseModel):
    """Настройки Telegram Mini App."""
    BOT_TOKEN: str = ""
    INIT_DATA_MAX_AGE: int = 86400

    @field_validator("BOT_TOKEN", mode="before")
    @classmethod
    def get_from_env(cls, v: str | None) -> str:
        """Получает токен из переменных окружения, если не задан."""
        if not v:
            return os.getenv("BOT_TOKEN", "")
        return v


class RedisSettings(BaseModel):
    """Настройки Redis (key-value хранилище групп)."""
    REDIS_URL: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_SSL: bool = False
    REDIS_NAMESPACE: str = ""
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_TRANSACTIONAL_PIPELINES: bool = False

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str | None) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        if self.REDIS_URL:
            return self.REDIS_URL
        scheme = "rediss" if self.REDIS_SSL else "redis"
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class GroupSettings(BaseModel):
    """Ограничения групп и расходов."""
    GROUP_NAME_MAX_LENGTH: int = 50
    EXPENSE_NOTE_MAX_LENGTH: int = 100
    DEFAULT_CATEGORY: str = "other"


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    groups: GroupSettings = Field(default_factory=GroupSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        # Маппинг полей в секции
        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "group_expenses"),
                VERSION=filtered_data.get("VERSION", "1.0.0"),
                DEBUG=filtered_data.get("DEBUG", False),
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", filtered_data.get("ENVIRONMENT", "development")),
            ),
            deployment=DeploymentSettings(
                GROUP_EXPENSES_HOST=os.getenv("GROUP_EXPENSES_HOST", filtered_data.get("GROUP_EXPENSES_HOST", "0.0.0.0")),
                GROUP_EXPENSES_PORT=int(os.getenv("GROUP_EXPENSES_PORT", filtered_data.get("GROUP_EXPENSES_PORT", 8092))),
                API_PREFIX=filtered_data.get("API_PREFIX", "/api"),
                CORS_ORIGINS=filtered_data.get("CORS_ORIGINS", ["*"]),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                LOG_TO_FILE=filtered_data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/group_expenses.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=filtered_data.get("LOG_BACKUP_COUNT", 5),
            ),
            telegram=TelegramSettings(
                BOT_TOKEN=os.getenv("BOT_TOKEN", filtered_data.get("BOT_TOKEN", "")),
                INIT_DATA_MAX_AGE=filtered_data.get("INIT_DATA_MAX_AGE", 86400),
            ),
            redis=RedisSettings(
                REDIS_URL=os.getenv("REDIS_URL", filtered_data.get("REDIS_URL", "")),
                REDIS_HOST=os.getenv("REDIS_HOST", filtered_data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", filtered_data.get("REDIS_PORT", 6379))),
                REDIS_DB=filtered_data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", filtered_data.get("REDIS_PASSWORD", "")),
                REDIS_SSL=_env_bool("REDIS_SSL", filtered_data.get("REDIS_SSL", False)),
                REDIS_NAMESPACE=filtered_data.get("REDIS_NAMESPACE", ""),
                REDIS_MAX_CONNECTIONS=filtered_data.get("REDIS_MAX_CONNECTIONS", 20),
                REDIS_TRANSACTIONAL_PIPELINES=_env_bool(
                    "REDIS_TRANSACTIONAL_PIPELINES",
                    filtered_data.get("REDIS_TRANSACTIONAL_PIPELINES", False),
                ),
            ),
            groups=GroupSettings(
                GROUP_NAME_MAX_LENGTH=filtered_data.get("GROUP_NAME_MAX_LENGTH", 50),
                EXPENSE_NOTE_MAX_LENGTH=filtered_data.get("EXPENSE_NOTE_MAX_LENGTH", 100),
                DEFAULT_CATEGORY=filtered_data.get("DEFAULT_CATEGORY", "other"),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
