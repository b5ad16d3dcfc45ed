"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import time
from typing import Any
from urllib.parse import urlencode

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("BOT_TOKEN", "test_bot_token")
os.environ.setdefault("REDIS_PASSWORD", "")

from src.services.group_expenses.repository import GroupRepository
from src.services.group_expenses.service import GroupExpenseService, GroupService
from src.shared.models.group_dto import Identity


BOT_TOKEN = "123456:TEST-bot-token"


# =============================================================================
# IN-MEMORY REDIS
# =============================================================================

class InMemoryPipeline:
    """Пайплайн поверх InMemoryRedis с тем же контрактом, что и RedisPipeline."""

    def __init__(self, owner: "InMemoryRedis", transaction: bool = False) -> None:
        self._owner = owner
        self.transaction = transaction
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def commands(self) -> list[tuple[str, tuple[Any, ...]]]:
        return list(self._commands)

    def __getattr__(self, command: str):
        if command not in InMemoryRedis.COMMANDS:
            raise AttributeError(command)

        def queue(*args: Any) -> "InMemoryPipeline":
            self._commands.append((command, args))
            return self

        return queue

    async def execute(self) -> list[Any]:
        self._owner.executed_pipelines.append(list(self._commands))
        results: list[Any] = []
        for command, args in self._commands:
            if (command, args[0]) in self._owner.failing:
                results.append(RuntimeError(f"{command} {args[0]} failed"))
                continue
            results.append(await getattr(self._owner, command)(*args))
        self._commands.clear()
        return results


class InMemoryRedis:
    """
    Минимальная замена RedisClient для тестов сервисов и маршрутов.
    failing: пары (команда, ключ), которые падают внутри пайплайна.
    """

    COMMANDS = {"get", "set", "delete", "sadd", "srem", "sismember", "hset", "hget", "hgetall", "hdel"}

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.failing: set[tuple[str, str]] = set()
        self.executed_pipelines: list[list[tuple[str, tuple[Any, ...]]]] = []

    def keys(self) -> set[str]:
        return set(self.strings) | set(self.sets) | set(self.hashes)

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.strings[key] = value
        return True

    async def delete(self, key: str) -> int:
        removed = 0
        for store in (self.strings, self.sets, self.hashes):
            if key in store:
                del store[key]
                removed = 1
        return removed

    async def sadd(self, key: str, *members: str) -> int:
        target = self.sets.setdefault(key, set())
        added = len(set(members) - target)
        target.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        target = self.sets.get(key, set())
        removed = len(target & set(members))
        target.difference_update(members)
        if not target:
            self.sets.pop(key, None)
        return removed

    async def sismember(self, key: str, member: str) -> bool:
        return member in self.sets.get(key, set())

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    async def hset(self, name: str, key: str, value: str) -> int:
        target = self.hashes.setdefault(name, {})
        created = 0 if key in target else 1
        target[key] = value
        return created

    async def hget(self, name: str, key: str) -> str | None:
        return self.hashes.get(name, {}).get(key)

    async def hgetall(self, name: str) -> dict[str, str]:
        return dict(self.hashes.get(name, {}))

    async def hdel(self, name: str, *keys: str) -> int:
        target = self.hashes.get(name, {})
        removed = sum(1 for k in keys if target.pop(k, None) is not None)
        if not target:
            self.hashes.pop(name, None)
        return removed

    def pipeline(self, transaction: bool | None = None) -> InMemoryPipeline:
        return InMemoryPipeline(self, transaction=bool(transaction))

    async def health_check(self) -> bool:
        return True


# =============================================================================
# ФИКСТУРЫ ХРАНИЛИЩА И СЕРВИСОВ
# =============================================================================

@pytest.fixture
def fake_redis() -> InMemoryRedis:
    """Пустое in-memory хранилище."""
    return InMemoryRedis()


@pytest.fixture
def repository(fake_redis: InMemoryRedis) -> GroupRepository:
    return GroupRepository(fake_redis)


@pytest.fixture
def group_service(repository: GroupRepository) -> GroupService:
    return GroupService(repository)


@pytest.fixture
def expense_service(repository: GroupRepository) -> GroupExpenseService:
    return GroupExpenseService(repository)


@pytest.fixture
def alice() -> Identity:
    return Identity(user_id="111", user_name="Alice Smith")


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="222", user_name="Bob")


@pytest.fixture
def carol() -> Identity:
    return Identity(user_id="333", user_name="Carol")


# =============================================================================
# ПОДПИСЬ INITDATA
# =============================================================================

def sign_init_data(fields: dict[str, str], bot_token: str = BOT_TOKEN) -> str:
    """Формирует initData так же, как Telegram: поля + hash."""
    data_check_string = "\n".join(f"{k}={fields[k]}" for k in sorted(fields))
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    signature = hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode({**fields, "hash": signature})


def init_data_for(
    user: dict[str, Any] | None,
    bot_token: str = BOT_TOKEN,
    auth_date: int | None = None,
    **extra: str,
) -> str:
    fields: dict[str, str] = {"query_id": "AAHdF6IQAAAAAN0XohD1", **extra}
    fields["auth_date"] = str(int(time.time()) if auth_date is None else auth_date)
    if user is not None:
        fields["user"] = json.dumps(user, separators=(",", ":"))
    return sign_init_data(fields, bot_token)


@pytest.fixture
def make_init_data():
    """Фабрика подписанного initData."""
    return init_data_for
