"""
Тесты сервиса групп на in-memory хранилище.
"""

from __future__ import annotations

import json
import re

import pytest

from src.services.group_expenses.errors import (
    ForbiddenError,
    InvalidInviteError,
    NotFoundError,
    ValidationError,
)
from src.services.group_expenses.service import GroupExpenseService, GroupService
from src.shared.models.group_dto import Identity


class TestCreateGroup:
    """Создание группы."""

    @pytest.mark.asyncio
    async def test_create_group_writes_all_keys(self, group_service: GroupService, fake_redis, alice: Identity) -> None:
        group = await group_service.create_group(alice, "  Trip  ")

        assert group.name == "Trip"
        assert group.created_by == alice.user_id
        assert group.created_by_name == alice.user_name
        assert re.fullmatch(r"[0-9a-f]{16}", group.id)
        assert re.fullmatch(r"[A-Za-z0-9_-]{8}", group.invite_code)
        assert group.created_at.endswith("Z")

        stored = json.loads(fake_redis.strings[f"group:{group.id}"])
        assert stored["createdBy"] == alice.user_id
        assert stored["inviteCode"] == group.invite_code
        assert fake_redis.strings[f"invite:{group.invite_code}"] == group.id
        assert fake_redis.sets[f"group:{group.id}:members"] == {alice.user_id}
        assert fake_redis.sets[f"user:{alice.user_id}:groups"] == {group.id}
        assert fake_redis.hashes[f"group:{group.id}:member_names"] == {alice.user_id: alice.user_name}

    @pytest.mark.asyncio
    async def test_create_group_single_pipeline(self, group_service: GroupService, fake_redis, alice: Identity) -> None:
        await group_service.create_group(alice, "Trip")

        assert len(fake_redis.executed_pipelines) == 1
        assert [command for command, _ in fake_redis.executed_pipelines[0]] == ["set", "sadd", "hset", "sadd", "set"]

    @pytest.mark.asyncio
    async def test_name_truncated_to_50(self, group_service: GroupService, alice: Identity) -> None:
        group = await group_service.create_group(alice, "x" * 80)
        assert len(group.name) == 50

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, "", "   ", 42, ["Trip"]])
    async def test_invalid_name(self, group_service: GroupService, fake_redis, alice: Identity, name) -> None:
        with pytest.raises(ValidationError, match="Group name is required"):
            await group_service.create_group(alice, name)
        assert fake_redis.keys() == set()

    @pytest.mark.asyncio
    async def test_ids_are_random(self, group_service: GroupService, alice: Identity) -> None:
        first = await group_service.create_group(alice, "A")
        second = await group_service.create_group(alice, "B")
        assert first.id != second.id
        assert first.invite_code != second.invite_code


class TestListGroups:
    """Список групп пользователя."""

    @pytest.mark.asyncio
    async def test_empty(self, group_service: GroupService, fake_redis, alice: Identity) -> None:
        assert await group_service.list_groups(alice) == []
        assert fake_redis.executed_pipelines == []

    @pytest.mark.asyncio
    async def test_lists_own_groups(self, group_service: GroupService, alice: Identity, bob: Identity) -> None:
        g1 = await group_service.create_group(alice, "One")
        g2 = await group_service.create_group(alice, "Two")
        await group_service.create_group(bob, "Bob's")

        groups = await group_service.list_groups(alice)

        assert {g.id for g in groups} == {g1.id, g2.id}

    @pytest.mark.asyncio
    async def test_skips_dangling_ids(self, group_service: GroupService, fake_redis, alice: Identity) -> None:
        group = await group_service.create_group(alice, "One")
        fake_redis.sets[f"user:{alice.user_id}:groups"].add("deadbeefdeadbeef")

        groups = await group_service.list_groups(alice)

        assert [g.id for g in groups] == [group.id]


class TestGetGroup:
    """Детали группы."""

    @pytest.mark.asyncio
    async def test_non_member_forbidden(self, group_service: GroupService, alice: Identity, bob: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")
        with pytest.raises(ForbiddenError, match="Not a member of this group"):
            await group_service.get_group(bob, group.id)

    @pytest.mark.asyncio
    async def test_record_missing(self, group_service: GroupService, fake_redis, alice: Identity) -> None:
        fake_redis.sets["group:orphan:members"] = {alice.user_id}
        with pytest.raises(NotFoundError, match="Group not found"):
            await group_service.get_group(alice, "orphan")

    @pytest.mark.asyncio
    async def test_members_and_sorted_expenses(
        self,
        group_service: GroupService,
        expense_service: GroupExpenseService,
        fake_redis,
        alice: Identity,
        bob: Identity,
    ) -> None:
        group = await group_service.create_group(alice, "Trip")
        await group_service.join_group(bob, group.id, group.invite_code)

        old = await expense_service.add_expense(alice, group.id, 10)
        new = await expense_service.add_expense(bob, group.id, 20)
        # Фиксируем метки времени, чтобы порядок не зависел от скорости теста
        for expense, ts in ((old, "2024-01-01T10:00:00.000Z"), (new, "2024-01-02T10:00:00.000Z")):
            fake_redis.hashes[f"group:{group.id}:expenses"][expense.id] = expense.model_copy(
                update={"timestamp": ts}
            ).to_json()

        detail = await group_service.get_group(alice, group.id)

        assert detail.group.id == group.id
        assert {(m.id, m.name) for m in detail.members} == {(alice.user_id, alice.user_name), (bob.user_id, bob.user_name)}
        assert [e.id for e in detail.expenses] == [new.id, old.id]


class TestDeleteGroup:
    """Удаление группы."""

    @pytest.mark.asyncio
    async def test_not_found(self, group_service: GroupService, alice: Identity) -> None:
        with pytest.raises(NotFoundError):
            await group_service.delete_group(alice, "missing")

    @pytest.mark.asyncio
    async def test_only_creator(self, group_service: GroupService, alice: Identity, bob: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")
        await group_service.join_group(bob, group.id, group.invite_code)

        with pytest.raises(ForbiddenError, match="Only the group creator can delete it"):
            await group_service.delete_group(bob, group.id)

    @pytest.mark.asyncio
    async def test_cascade(
        self,
        group_service: GroupService,
        expense_service: GroupExpenseService,
        fake_redis,
        alice: Identity,
        bob: Identity,
    ) -> None:
        keep = await group_service.create_group(bob, "Keep")
        group = await group_service.create_group(alice, "Trip")
        await group_service.join_group(bob, group.id, group.invite_code)
        await expense_service.add_expense(alice, group.id, 5)

        await group_service.delete_group(alice, group.id)

        assert not any(group.id in key for key in fake_redis.keys())
        assert f"invite:{group.invite_code}" not in fake_redis.strings
        assert f"user:{alice.user_id}:groups" not in fake_redis.sets
        assert fake_redis.sets[f"user:{bob.user_id}:groups"] == {keep.id}

        for user in (alice, bob):
            with pytest.raises(ForbiddenError):
                await group_service.get_group(user, group.id)

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_reported(
        self,
        group_service: GroupService,
        fake_redis,
        alice: Identity,
    ) -> None:
        group = await group_service.create_group(alice, "Trip")
        fake_redis.failing.add(("delete", f"invite:{group.invite_code}"))

        await group_service.delete_group(alice, group.id)

        # Остальные команды пакета применены, инвайт остался сиротой
        assert f"group:{group.id}" not in fake_redis.strings
        assert fake_redis.strings[f"invite:{group.invite_code}"] == group.id


class TestJoinGroup:
    """Вступление по инвайту."""

    @pytest.mark.asyncio
    async def test_join(self, group_service: GroupService, fake_redis, alice: Identity, bob: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")

        result = await group_service.join_group(bob, group.id, group.invite_code)

        assert result.already_member is False
        assert result.group.id == group.id
        assert fake_redis.sets[f"group:{group.id}:members"] == {alice.user_id, bob.user_id}
        assert fake_redis.sets[f"user:{bob.user_id}:groups"] == {group.id}
        assert fake_redis.hashes[f"group:{group.id}:member_names"][bob.user_id] == "Bob"

    @pytest.mark.asyncio
    async def test_idempotent(self, group_service: GroupService, fake_redis, alice: Identity, bob: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")
        await group_service.join_group(bob, group.id, group.invite_code)
        pipelines_before = len(fake_redis.executed_pipelines)

        result = await group_service.join_group(bob, group.id, group.invite_code)

        assert result.already_member is True
        assert len(fake_redis.executed_pipelines) == pipelines_before
        assert fake_redis.sets[f"group:{group.id}:members"] == {alice.user_id, bob.user_id}

    @pytest.mark.asyncio
    async def test_creator_is_already_member(self, group_service: GroupService, alice: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")
        result = await group_service.join_group(alice, group.id, group.invite_code)
        assert result.already_member is True

    @pytest.mark.asyncio
    async def test_unknown_code(self, group_service: GroupService, alice: Identity, bob: Identity) -> None:
        group = await group_service.create_group(alice, "Trip")
        with pytest.raises(InvalidInviteError, match="Invalid invite code"):
            await group_service.join_group(bob, group.id, "nope")

    @pytest.mark.asyncio
    async def test_code_of_other_group_rejected(
        self,
        group_service: GroupService,
        fake_redis,
        alice: Identity,
        bob: Identity,
        carol: Identity,
    ) -> None:
        group_a = await group_service.create_group(alice, "A")
        group_b = await group_service.create_group(bob, "B")

        with pytest.raises(InvalidInviteError):
            await group_service.join_group(carol, group_b.id, group_a.invite_code)

        assert carol.user_id not in fake_redis.sets[f"group:{group_a.id}:members"]
        assert carol.user_id not in fake_redis.sets[f"group:{group_b.id}:members"]

    @pytest.mark.asyncio
    async def test_invite_to_deleted_record(self, group_service: GroupService, fake_redis, bob: Identity) -> None:
        fake_redis.strings["invite:code1234"] = "gone"
        with pytest.raises(NotFoundError):
            await group_service.join_group(bob, "gone", "code1234")
