"""
Общие модели ответов API.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой: {"error": "..."}."""

    error: str


class OkResponse(BaseModel):
    """Подтверждение операции без тела."""

    ok: bool = True


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"redis": "healthy"}
