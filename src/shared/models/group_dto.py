"""
DTO групп и групповых расходов.

Поля хранятся и отдаются клиенту в camelCase (createdBy, addedByName, ...),
в Python-коде используются snake_case имена.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Текущий момент в ISO-8601 UTC с миллисекундами и суффиксом Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Парсит ISO-8601 метку времени; невалидные значения считаются самыми старыми."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CamelModel(BaseModel):
    """Базовая модель с camelCase алиасами."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class Identity(CamelModel):
    """Проверенный пользователь запроса (из подписанного initData)."""
    user_id: str
    user_name: str = "Unknown"


class GroupDTO(CamelModel):
    """Группа. Неизменяема после создания, кроме удаления."""
    id: str
    name: str
    created_by: str
    created_by_name: str = "Unknown"
    created_at: str = Field(default_factory=utc_timestamp)
    invite_code: str


class MemberDTO(CamelModel):
    """Участник группы с отображаемым именем."""
    id: str
    name: str


class GroupExpenseDTO(CamelModel):
    """Расход внутри группы."""
    id: str
    amount: float
    category: str = "other"
    note: str = ""
    timestamp: str = Field(default_factory=utc_timestamp)
    added_by: str
    added_by_name: str = "Unknown"


class GroupDetailDTO(CamelModel):
    """Группа вместе с участниками и расходами (новые — первыми)."""
    group: GroupDTO
    members: list[MemberDTO] = Field(default_factory=list)
    expenses: list[GroupExpenseDTO] = Field(default_factory=list)


class JoinResultDTO(CamelModel):
    """Результат вступления в группу."""
    group: GroupDTO
    already_member: bool


class MemberTotalDTO(CamelModel):
    """Сумма расходов одного участника."""
    name: str
    total: float = 0.0
    count: int = 0


class ExpenseSummaryDTO(CamelModel):
    """Сводка расходов группы по категориям и участникам."""
    total: float = 0.0
    count: int = 0
    by_category: dict[str, float] = Field(default_factory=dict)
    by_member: dict[str, MemberTotalDTO] = Field(default_factory=dict)
    top_category: str | None = None
