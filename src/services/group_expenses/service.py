"""
Бизнес-логика групп и групповых расходов.

Сервисы не хранят состояния между запросами: единственный общий ресурс —
Redis. Блокировок и повторов нет, ошибки хранилища пробрасываются наверх.
"""

from __future__ import annotations

import asyncio
import math
import secrets
from typing import Any

from src.common.constants import ExpenseCategory
from src.common.logger import log_info
from src.services.group_expenses.errors import (
    ForbiddenError,
    InvalidInviteError,
    NotFoundError,
    ValidationError,
)
from src.services.group_expenses.repository import GroupRepository
from src.shared.models.group_dto import (
    ExpenseSummaryDTO,
    GroupDetailDTO,
    GroupDTO,
    GroupExpenseDTO,
    Identity,
    JoinResultDTO,
    MemberDTO,
    MemberTotalDTO,
    parse_timestamp,
    utc_timestamp,
)


GROUP_NAME_MAX_LENGTH = 50
EXPENSE_NOTE_MAX_LENGTH = 100
DEFAULT_CATEGORY = ExpenseCategory.OTHER.value


def new_group_id() -> str:
    """16 hex-символов из 8 случайных байт."""
    return secrets.token_hex(8)


def new_invite_code() -> str:
    """URL-safe base64 от 6 случайных байт (8 символов, без паддинга)."""
    return secrets.token_urlsafe(6)


def new_expense_id() -> str:
    return secrets.token_hex(8)


def is_positive_amount(value: Any) -> bool:
    """Сумма должна быть конечным положительным числом (bool не считается числом)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value) and value > 0
    except OverflowError:
        # int за пределами диапазона float
        return False


def sort_newest_first(expenses: list[GroupExpenseDTO]) -> list[GroupExpenseDTO]:
    # sorted стабилен и с reverse=True: при равных метках порядок хеша сохраняется
    return sorted(expenses, key=lambda e: parse_timestamp(e.timestamp), reverse=True)


def build_summary(expenses: list[GroupExpenseDTO]) -> ExpenseSummaryDTO:
    """Итоги по категориям и участникам."""
    by_category: dict[str, float] = {}
    by_member: dict[str, MemberTotalDTO] = {}
    total = 0.0

    for expense in expenses:
        total += expense.amount
        by_category[expense.category] = by_category.get(expense.category, 0.0) + expense.amount

        member = by_member.setdefault(expense.added_by, MemberTotalDTO(name=expense.added_by_name))
        member.total += expense.amount
        member.count += 1

    for member in by_member.values():
        member.total = round(member.total, 2)

    rounded_categories = {category: round(amount, 2) for category, amount in by_category.items()}
    top_category = max(rounded_categories, key=rounded_categories.get) if rounded_categories else None

    return ExpenseSummaryDTO(
        total=round(total, 2),
        count=len(expenses),
        by_category=rounded_categories,
        by_member=by_member,
        top_category=top_category,
    )


class MembershipGate:
    """Общая проверка членства для сервисов групп."""

    def __init__(self, repository: GroupRepository):
        self.repository = repository

    async def ensure_member(self, identity: Identity, group_id: str) -> None:
        if not await self.repository.is_member(group_id, identity.user_id):
            raise ForbiddenError("Not a member of this group")


class GroupService(MembershipGate):
    """Жизненный цикл групп и вступление по инвайту."""

    def __init__(self, repository: GroupRepository, name_max_length: int = GROUP_NAME_MAX_LENGTH):
        super().__init__(repository)
        self.name_max_length = name_max_length

    async def list_groups(self, identity: Identity) -> list[GroupDTO]:
        """Группы пользователя; порядок не гарантирован (порядок множества)."""
        group_ids = await self.repository.get_user_group_ids(identity.user_id)
        if not group_ids:
            return []
        return await self.repository.get_groups(group_ids)

    async def create_group(self, identity: Identity, name: Any) -> GroupDTO:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Group name is required")

        group = GroupDTO(
            id=new_group_id(),
            name=name.strip()[:self.name_max_length],
            created_by=identity.user_id,
            created_by_name=identity.user_name,
            created_at=utc_timestamp(),
            invite_code=new_invite_code(),
        )
        await self.repository.create_group(group, identity)

        await log_info(
            f"Группа создана: {group.name}",
            extra={"group_id": group.id, "user_id": identity.user_id},
        )
        return group

    async def get_group(self, identity: Identity, group_id: str) -> GroupDetailDTO:
        await self.ensure_member(identity, group_id)

        group, member_names, expenses = await asyncio.gather(
            self.repository.get_group(group_id),
            self.repository.get_member_names(group_id),
            self.repository.get_expenses(group_id),
        )
        if group is None:
            raise NotFoundError("Group not found")

        return GroupDetailDTO(
            group=group,
            members=[MemberDTO(id=member_id, name=name) for member_id, name in member_names.items()],
            expenses=sort_newest_first(expenses),
        )

    async def delete_group(self, identity: Identity, group_id: str) -> None:
        """
        Удаляет группу (только создатель).

        Каскад: запись группы, участники, имена, расходы, инвайт
        и group_id из индекса каждого участника. Частичный сбой не сообщается.
        """
        group = await self.repository.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if group.created_by != identity.user_id:
            raise ForbiddenError("Only the group creator can delete it")

        member_ids = await self.repository.get_member_ids(group_id)
        await self.repository.delete_group(group, member_ids)

        await log_info(
            f"Группа удалена: {group.name}",
            extra={"group_id": group_id, "user_id": identity.user_id, "members": len(member_ids)},
        )

    async def join_group(self, identity: Identity, group_id: str, invite_code: str) -> JoinResultDTO:
        """
        Вступление по инвайт-коду. Код должен вести именно в эту группу.
        Повторный вызов ничего не пишет и возвращает already_member=True.
        """
        mapped_group_id = await self.repository.resolve_invite(invite_code)
        if mapped_group_id != group_id:
            raise InvalidInviteError()

        group = await self.repository.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")

        if await self.repository.is_member(group_id, identity.user_id):
            return JoinResultDTO(group=group, already_member=True)

        await self.repository.add_member(group_id, identity)

        await log_info(
            f"Пользователь вступил в группу {group.name}",
            extra={"group_id": group_id, "user_id": identity.user_id},
        )
        return JoinResultDTO(group=group, already_member=False)


class GroupExpenseService(MembershipGate):
    """CRUD расходов группы. Все операции доступны только участникам."""

    def __init__(
        self,
        repository: GroupRepository,
        note_max_length: int = EXPENSE_NOTE_MAX_LENGTH,
        default_category: str = DEFAULT_CATEGORY,
    ):
        super().__init__(repository)
        self.note_max_length = note_max_length
        self.default_category = default_category

    def _clean_note(self, note: Any) -> str:
        return str(note or "")[:self.note_max_length]

    async def _get_own_expense(self, identity: Identity, group_id: str, expense_id: str, action: str) -> GroupExpenseDTO:
        expense = await self.repository.get_expense(group_id, expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")
        if expense.added_by != identity.user_id:
            raise ForbiddenError(f"Only the expense creator can {action} it")
        return expense

    async def list_expenses(self, identity: Identity, group_id: str) -> list[GroupExpenseDTO]:
        await self.ensure_member(identity, group_id)
        return sort_newest_first(await self.repository.get_expenses(group_id))

    async def add_expense(
        self,
        identity: Identity,
        group_id: str,
        amount: Any,
        category: Any = None,
        note: Any = None,
    ) -> GroupExpenseDTO:
        await self.ensure_member(identity, group_id)

        if not is_positive_amount(amount):
            raise ValidationError("Valid amount is required")

        expense = GroupExpenseDTO(
            id=new_expense_id(),
            amount=round(amount, 2),
            category=str(category) if category else self.default_category,
            note=self._clean_note(note),
            timestamp=utc_timestamp(),
            added_by=identity.user_id,
            added_by_name=identity.user_name,
        )
        await self.repository.save_expense(group_id, expense)

        await log_info(
            f"Расход добавлен: {expense.amount} ({expense.category})",
            extra={"group_id": group_id, "expense_id": expense.id, "user_id": identity.user_id},
        )
        return expense

    async def update_expense(
        self,
        identity: Identity,
        group_id: str,
        expense_id: str,
        patch: dict[str, Any],
    ) -> GroupExpenseDTO:
        """
        Частичное обновление (только автор расхода).

        amount меняется только на положительное число, category — на непустое
        значение; note меняется всегда, когда ключ присутствует (в т.ч. "").
        """
        await self.ensure_member(identity, group_id)
        existing = await self._get_own_expense(identity, group_id, expense_id, "edit")

        changes: dict[str, Any] = {}
        amount = patch.get("amount")
        if is_positive_amount(amount):
            changes["amount"] = round(amount, 2)
        if patch.get("category"):
            changes["category"] = str(patch["category"])
        if "note" in patch:
            changes["note"] = self._clean_note(patch["note"])

        updated = existing.model_copy(update=changes)
        await self.repository.save_expense(group_id, updated)

        await log_info(
            "Расход обновлён",
            extra={"group_id": group_id, "expense_id": expense_id, "fields": sorted(changes)},
        )
        return updated

    async def delete_expense(self, identity: Identity, group_id: str, expense_id: str) -> None:
        await self.ensure_member(identity, group_id)
        await self._get_own_expense(identity, group_id, expense_id, "delete")
        await self.repository.delete_expense(group_id, expense_id)

        await log_info(
            "Расход удалён",
            extra={"group_id": group_id, "expense_id": expense_id, "user_id": identity.user_id},
        )

    async def summarize_expenses(self, identity: Identity, group_id: str) -> ExpenseSummaryDTO:
        await self.ensure_member(identity, group_id)
        return build_summary(await self.repository.get_expenses(group_id))
