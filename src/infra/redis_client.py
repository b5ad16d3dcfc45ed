"""
Клиент Redis — key-value хранилище групп и групповых расходов.
Поддерживает строки, множества, хеши и пайплайны.
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as redis

from src.common.logger import log_error, log_info


class RedisPipeline:
    """
    Пакет команд, отправляемый в Redis за один сетевой запрос.

    Команды накапливаются локально и уходят в `execute()`.
    Без `transaction=True` атомарности нет: каждая команда выполняется
    независимо, частичное применение возможно. Ошибка отдельной команды
    не прерывает пакет и возвращается на её месте в списке результатов.
    """

    def __init__(self, owner: "RedisClient", transaction: bool = False) -> None:
        self._owner = owner
        self._transaction = transaction
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def transaction(self) -> bool:
        """Выполняется ли пакет через MULTI/EXEC."""
        return self._transaction

    @property
    def commands(self) -> list[tuple[str, tuple[Any, ...]]]:
        """Накопленные команды (имя, аргументы) с ключами без namespace."""
        return list(self._commands)

    def _queue(self, command: str, *args: Any) -> "RedisPipeline":
        self._commands.append((command, args))
        return self

    # Строки
    def get(self, key: str) -> "RedisPipeline":
        return self._queue("get", key)

    def set(self, key: str, value: str) -> "RedisPipeline":
        return self._queue("set", key, value)

    def delete(self, key: str) -> "RedisPipeline":
        return self._queue("delete", key)

    # Множества
    def sadd(self, key: str, member: str) -> "RedisPipeline":
        return self._queue("sadd", key, member)

    def srem(self, key: str, member: str) -> "RedisPipeline":
        return self._queue("srem", key, member)

    def sismember(self, key: str, member: str) -> "RedisPipeline":
        return self._queue("sismember", key, member)

    # Хеши
    def hset(self, name: str, key: str, value: str) -> "RedisPipeline":
        return self._queue("hset", name, key, value)

    def hget(self, name: str, key: str) -> "RedisPipeline":
        return self._queue("hget", name, key)

    def hgetall(self, name: str) -> "RedisPipeline":
        return self._queue("hgetall", name)

    def hdel(self, name: str, key: str) -> "RedisPipeline":
        return self._queue("hdel", name, key)

    async def execute(self) -> list[Any]:
        """
        Отправляет накопленные команды одним запросом.

        Returns:
            Результаты в порядке команд; для упавших команд — объект исключения.

        Raises:
            redis.RedisError: при сетевой ошибке (пакет не доставлен целиком).
        """
        if not self._commands:
            return []

        try:
            async with self._owner.client.pipeline(transaction=self._transaction) as pipe:
                for command, args in self._commands:
                    key, *rest = args
                    getattr(pipe, command)(self._owner._make_key(key), *rest)
                return await pipe.execute(raise_on_error=False)
        finally:
            self._commands.clear()

    @staticmethod
    def failures(results: list[Any]) -> list[tuple[int, Exception]]:
        """Возвращает (индекс, исключение) для упавших команд пакета."""
        return [(i, r) for i, r in enumerate(results) if isinstance(r, Exception)]


class RedisClient:
    """
    Асинхронный клиент Redis.
    Поддерживает:
    - Строковые get/set/delete
    - Множества (членство в группах)
    - Хеши (имена участников, расходы)
    - Пайплайны без атомарности (или MULTI/EXEC по настройке)
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Инициализация (вызывается только один раз благодаря Singleton)."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = ""
        self._transactional_pipelines = False

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу (пустой namespace — ключ без изменений)."""
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 20,
        namespace: str | None = None,
        transactional_pipelines: bool | None = None,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей (если None, берётся из конфига)
            transactional_pipelines: Выполнять пайплайны через MULTI/EXEC
        """
        if self._client is not None:
            return

        if url is None or namespace is None or transactional_pipelines is None:
            from src.config import settings
            if url is None:
                url = settings.redis.url
                max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            if namespace is None:
                namespace = settings.redis.REDIS_NAMESPACE
            if transactional_pipelines is None:
                transactional_pipelines = settings.redis.REDIS_TRANSACTIONAL_PIPELINES

        self._namespace = namespace
        self._transactional_pipelines = transactional_pipelines

        await log_info("Подключение к Redis...", logger_name="redis_client")

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

        await self._client.ping()

        await log_info(
            "Подключение к Redis установлено",
            logger_name="redis_client",
            extra={"namespace": self._namespace, "transactional_pipelines": self._transactional_pipelines},
        )

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", logger_name="redis_client")

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Получает значение по ключу."""
        return await self.client.get(self._make_key(key))

    async def set(self, key: str, value: str) -> bool:
        """Устанавливает значение без срока жизни."""
        return await self.client.set(self._make_key(key), value)

    async def delete(self, key: str) -> int:
        """Удаляет ключ."""
        return await self.client.delete(self._make_key(key))

    # =========================================================================
    # HASH ОПЕРАЦИИ
    # =========================================================================

    async def hget(self, name: str, key: str) -> str | None:
        """Получает значение из хеша."""
        return await self.client.hget(self._make_key(name), key)

    async def hset(self, name: str, key: str, value: str) -> int:
        """Устанавливает значение в хеше."""
        return await self.client.hset(self._make_key(name), key, value)

    async def hgetall(self, name: str) -> dict[str, str]:
        """Получает все поля хеша."""
        return await self.client.hgetall(self._make_key(name))

    async def hdel(self, name: str, *keys: str) -> int:
        """Удаляет поля из хеша."""
        return await self.client.hdel(self._make_key(name), *keys)

    # =========================================================================
    # SET ОПЕРАЦИИ
    # =========================================================================

    async def sadd(self, key: str, *members: str) -> int:
        """Добавляет элементы в множество."""
        return await self.client.sadd(self._make_key(key), *members)

    async def srem(self, key: str, *members: str) -> int:
        """Удаляет элементы из множества."""
        return await self.client.srem(self._make_key(key), *members)

    async def sismember(self, key: str, member: str) -> bool:
        """Проверяет принадлежность к множеству."""
        return bool(await self.client.sismember(self._make_key(key), member))

    async def smembers(self, key: str) -> set[str]:
        """Возвращает все элементы множества."""
        return await self.client.smembers(self._make_key(key))

    # =========================================================================
    # ПАЙПЛАЙНЫ
    # =========================================================================

    def pipeline(self, transaction: bool | None = None) -> RedisPipeline:
        """
        Создаёт пакет команд.

        Args:
            transaction: MULTI/EXEC; по умолчанию — значение из настроек клиента
        """
        if transaction is None:
            transaction = self._transactional_pipelines
        return RedisPipeline(self, transaction=transaction)

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """
        Проверяет здоровье подключения к Redis.

        Returns:
            True если подключение работает
        """
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}", logger_name="redis_client")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> RedisClient:
    """
    Инициализирует подключение к Redis.
    Использует настройки из конфигурации.
    """
    redis_client = get_redis()
    await redis_client.connect()
    return redis_client


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
