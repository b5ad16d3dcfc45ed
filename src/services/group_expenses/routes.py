"""
HTTP маршруты групп и групповых расходов.

Тела запросов читаются как произвольный JSON-объект: правила типов
(сумма — число, имя — строка) проверяет сервис, а не pydantic.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, status

from src.services.group_expenses.dependencies import (
    get_current_identity,
    get_expense_service,
    get_group_service,
)
from src.services.group_expenses.errors import ValidationError
from src.services.group_expenses.service import GroupExpenseService, GroupService
from src.shared.models.common import ErrorResponse, OkResponse
from src.shared.models.group_dto import Identity

router = APIRouter(
    prefix="/groups",
    tags=["Groups"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)

CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
Groups = Annotated[GroupService, Depends(get_group_service)]
Expenses = Annotated[GroupExpenseService, Depends(get_expense_service)]
JsonBody = Annotated[dict[str, Any] | None, Body()]


# === ГРУППЫ ===

@router.get("")
async def list_groups(identity: CurrentIdentity, service: Groups) -> dict[str, Any]:
    """Группы текущего пользователя."""
    groups = await service.list_groups(identity)
    return {"groups": [group.to_dict() for group in groups]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_group(identity: CurrentIdentity, service: Groups, body: JsonBody = None) -> dict[str, Any]:
    """Создать группу, тело {name}."""
    group = await service.create_group(identity, (body or {}).get("name"))
    return {"group": group.to_dict()}


@router.get("/{group_id}")
async def get_group(group_id: str, identity: CurrentIdentity, service: Groups) -> dict[str, Any]:
    """Группа, участники и расходы (новые первыми). Только для участников."""
    detail = await service.get_group(identity, group_id)
    return detail.to_dict()


@router.delete("/{group_id}")
async def delete_group(group_id: str, identity: CurrentIdentity, service: Groups) -> dict[str, Any]:
    """Удалить группу. Только создатель."""
    await service.delete_group(identity, group_id)
    return OkResponse().model_dump()


@router.post("/{group_id}/join")
async def join_group(
    group_id: str,
    identity: CurrentIdentity,
    service: Groups,
    invite: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Вступить в группу по инвайт-коду (?invite=...)."""
    if not invite:
        raise ValidationError("Missing group ID or invite code")
    result = await service.join_group(identity, group_id, invite)
    return result.to_dict()


# === РАСХОДЫ ===

@router.get("/{group_id}/expenses")
async def list_expenses(group_id: str, identity: CurrentIdentity, service: Expenses) -> dict[str, Any]:
    expenses = await service.list_expenses(identity, group_id)
    return {"expenses": [expense.to_dict() for expense in expenses]}


@router.post("/{group_id}/expenses", status_code=status.HTTP_201_CREATED)
async def add_expense(
    group_id: str,
    identity: CurrentIdentity,
    service: Expenses,
    body: JsonBody = None,
) -> dict[str, Any]:
    """Добавить расход, тело {amount, category, note}."""
    body = body or {}
    expense = await service.add_expense(
        identity,
        group_id,
        amount=body.get("amount"),
        category=body.get("category"),
        note=body.get("note"),
    )
    return {"expense": expense.to_dict()}


@router.put("/{group_id}/expenses/{expense_id}")
async def update_expense(
    group_id: str,
    expense_id: str,
    identity: CurrentIdentity,
    service: Expenses,
    body: JsonBody = None,
) -> dict[str, Any]:
    """Изменить расход. Только автор."""
    expense = await service.update_expense(identity, group_id, expense_id, body or {})
    return {"expense": expense.to_dict()}


@router.delete("/{group_id}/expenses/{expense_id}")
async def delete_expense(
    group_id: str,
    expense_id: str,
    identity: CurrentIdentity,
    service: Expenses,
) -> dict[str, Any]:
    """Удалить расход. Только автор."""
    await service.delete_expense(identity, group_id, expense_id)
    return OkResponse().model_dump()


@router.get("/{group_id}/summary")
async def get_summary(group_id: str, identity: CurrentIdentity, service: Expenses) -> dict[str, Any]:
    """Сводка расходов группы по категориям и участникам."""
    summary = await service.summarize_expenses(identity, group_id)
    return {"summary": summary.to_dict()}
