"""
Dependency Injection для API групповых расходов.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Header

from src.common.logger import log_warning
from src.services.group_expenses.telegram_auth import (
    DEFAULT_MAX_AGE_SECONDS,
    TelegramAuthError,
    extract_user_id,
    verify_init_data,
)
from src.shared.models.group_dto import Identity

if TYPE_CHECKING:
    from src.infra.redis_client import RedisClient
    from src.services.group_expenses.service import GroupExpenseService, GroupService


# Синглтоны
_redis: "RedisClient | None" = None
_group_service: "GroupService | None" = None
_expense_service: "GroupExpenseService | None" = None
_bot_token: str = ""
_max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS


def init_dependencies(
    redis: "RedisClient",
    bot_token: str,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    name_max_length: int | None = None,
    note_max_length: int | None = None,
    default_category: str | None = None,
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _redis, _bot_token, _max_age_seconds, _group_service, _expense_service
    _redis = redis
    _bot_token = bot_token
    _max_age_seconds = max_age_seconds

    from src.services.group_expenses.repository import GroupRepository
    from src.services.group_expenses.service import (
        DEFAULT_CATEGORY,
        EXPENSE_NOTE_MAX_LENGTH,
        GROUP_NAME_MAX_LENGTH,
        GroupExpenseService,
        GroupService,
    )

    repository = GroupRepository(redis)
    _group_service = GroupService(
        repository,
        name_max_length=name_max_length or GROUP_NAME_MAX_LENGTH,
    )
    _expense_service = GroupExpenseService(
        repository,
        note_max_length=note_max_length or EXPENSE_NOTE_MAX_LENGTH,
        default_category=default_category or DEFAULT_CATEGORY,
    )


def get_redis() -> "RedisClient":
    """Получить клиент Redis."""
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_bot_token() -> str:
    """
    Токен бота для проверки initData.
    Пустой токен не ошибка старта: каждый запрос получит 401 "Server misconfigured".
    """
    return _bot_token


def get_group_service() -> "GroupService":
    """Получить сервис групп."""
    if _group_service is None:
        raise RuntimeError("GroupService не инициализирован. Вызовите init_dependencies()")
    return _group_service


def get_expense_service() -> "GroupExpenseService":
    """Получить сервис групповых расходов."""
    if _expense_service is None:
        raise RuntimeError("GroupExpenseService не инициализирован. Вызовите init_dependencies()")
    return _expense_service


async def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """
    Проверить initData из заголовка Authorization.

    Все endpoints групп требуют этот заголовок.
    """
    try:
        return verify_init_data(authorization, get_bot_token(), max_age_seconds=_max_age_seconds)
    except TelegramAuthError as e:
        await log_warning(
            f"Отказ в аутентификации: {e.message}",
            extra={"reason": e.reason.value, "user_id": extract_user_id(authorization)},
        )
        raise


def cleanup_dependencies() -> None:
    """Сбросить синглтоны при остановке приложения."""
    global _redis, _group_service, _expense_service
    _redis = None
    _group_service = None
    _expense_service = None
