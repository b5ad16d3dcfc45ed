"""
Репозиторий групп поверх Redis.

Раскладка ключей:
    group:{id}                  строка, JSON группы
    group:{id}:members          множество user_id
    group:{id}:member_names     хеш user_id -> отображаемое имя
    group:{id}:expenses         хеш expense_id -> JSON расхода
    user:{id}:groups            множество group_id
    invite:{code}               строка, group_id

Многоключевые изменения идут одним пайплайном. Атомарности нет
(если не включены транзакционные пайплайны): при сбое части команд
остальные применяются, сбой только логируется.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.common.logger import log_error, log_warning
from src.infra.redis_client import RedisClient, RedisPipeline
from src.shared.models.group_dto import GroupDTO, GroupExpenseDTO, Identity


def group_key(group_id: str) -> str:
    return f"group:{group_id}"


def members_key(group_id: str) -> str:
    return f"group:{group_id}:members"


def member_names_key(group_id: str) -> str:
    return f"group:{group_id}:member_names"


def expenses_key(group_id: str) -> str:
    return f"group:{group_id}:expenses"


def user_groups_key(user_id: str) -> str:
    return f"user:{user_id}:groups"


def invite_key(code: str) -> str:
    return f"invite:{code}"


class GroupRepository:
    def __init__(self, redis: RedisClient):
        self.redis = redis

    # =========================================================================
    # ДЕСЕРИАЛИЗАЦИЯ
    # =========================================================================

    async def _decode_group(self, raw: str | None) -> GroupDTO | None:
        if not raw:
            return None
        try:
            return GroupDTO.model_validate_json(raw)
        except PydanticValidationError as e:
            await log_error(f"Ошибка десериализации группы: {e}")
            return None

    async def _decode_expense(self, raw: str | None) -> GroupExpenseDTO | None:
        if not raw:
            return None
        try:
            return GroupExpenseDTO.model_validate_json(raw)
        except PydanticValidationError as e:
            await log_error(f"Ошибка десериализации расхода: {e}")
            return None

    async def _execute(self, pipeline: RedisPipeline, operation: str, extra: dict[str, Any]) -> list[Any]:
        """Выполняет пайплайн; упавшие команды логируются и не прерывают операцию."""
        commands = pipeline.commands
        results = await pipeline.execute()
        for index, error in RedisPipeline.failures(results):
            command, args = commands[index]
            await log_warning(
                f"Команда пайплайна {operation} не применена: {command} {args[0]}: {error}",
                extra=extra,
            )
        return results

    # =========================================================================
    # ГРУППЫ
    # =========================================================================

    async def get_group(self, group_id: str) -> GroupDTO | None:
        return await self._decode_group(await self.redis.get(group_key(group_id)))

    async def get_user_group_ids(self, user_id: str) -> set[str]:
        return await self.redis.smembers(user_groups_key(user_id)) or set()

    async def get_groups(self, group_ids: set[str] | list[str]) -> list[GroupDTO]:
        """Загружает группы одним пайплайном, отсутствующие пропускаются."""
        if not group_ids:
            return []

        pipeline = self.redis.pipeline(transaction=False)
        for gid in group_ids:
            pipeline.get(group_key(gid))
        results = await self._execute(pipeline, "get_groups", {"count": len(group_ids)})

        groups = []
        for raw in results:
            if isinstance(raw, Exception):
                continue
            group = await self._decode_group(raw)
            if group is not None:
                groups.append(group)
        return groups

    async def create_group(self, group: GroupDTO, creator: Identity) -> None:
        """Запись группы, членство создателя (в обе стороны), его имя и инвайт."""
        pipeline = self.redis.pipeline()
        pipeline.set(group_key(group.id), group.to_json())
        pipeline.sadd(members_key(group.id), creator.user_id)
        pipeline.hset(member_names_key(group.id), creator.user_id, creator.user_name)
        pipeline.sadd(user_groups_key(creator.user_id), group.id)
        pipeline.set(invite_key(group.invite_code), group.id)
        await self._execute(pipeline, "create_group", {"group_id": group.id})

    async def delete_group(self, group: GroupDTO, member_ids: set[str]) -> None:
        """Каскадное удаление группы и её id из индексов всех участников."""
        pipeline = self.redis.pipeline()
        pipeline.delete(group_key(group.id))
        pipeline.delete(members_key(group.id))
        pipeline.delete(member_names_key(group.id))
        pipeline.delete(expenses_key(group.id))
        pipeline.delete(invite_key(group.invite_code))
        for member_id in member_ids:
            pipeline.srem(user_groups_key(member_id), group.id)
        await self._execute(pipeline, "delete_group", {"group_id": group.id})

    async def resolve_invite(self, code: str) -> str | None:
        return await self.redis.get(invite_key(code))

    # =========================================================================
    # УЧАСТНИКИ
    # =========================================================================

    async def is_member(self, group_id: str, user_id: str) -> bool:
        return await self.redis.sismember(members_key(group_id), user_id)

    async def get_member_ids(self, group_id: str) -> set[str]:
        return await self.redis.smembers(members_key(group_id)) or set()

    async def get_member_names(self, group_id: str) -> dict[str, str]:
        return await self.redis.hgetall(member_names_key(group_id)) or {}

    async def add_member(self, group_id: str, member: Identity) -> None:
        pipeline = self.redis.pipeline()
        pipeline.sadd(members_key(group_id), member.user_id)
        pipeline.hset(member_names_key(group_id), member.user_id, member.user_name)
        pipeline.sadd(user_groups_key(member.user_id), group_id)
        await self._execute(pipeline, "add_member", {"group_id": group_id, "user_id": member.user_id})

    # =========================================================================
    # РАСХОДЫ
    # =========================================================================

    async def get_expenses(self, group_id: str) -> list[GroupExpenseDTO]:
        raw_expenses = await self.redis.hgetall(expenses_key(group_id)) or {}
        expenses = []
        for raw in raw_expenses.values():
            expense = await self._decode_expense(raw)
            if expense is not None:
                expenses.append(expense)
        return expenses

    async def get_expense(self, group_id: str, expense_id: str) -> GroupExpenseDTO | None:
        return await self._decode_expense(await self.redis.hget(expenses_key(group_id), expense_id))

    async def save_expense(self, group_id: str, expense: GroupExpenseDTO) -> None:
        """Создаёт или перезаписывает поле расхода в хеше группы."""
        await self.redis.hset(expenses_key(group_id), expense.id, expense.to_json())

    async def delete_expense(self, group_id: str, expense_id: str) -> None:
        await self.redis.hdel(expenses_key(group_id), expense_id)
