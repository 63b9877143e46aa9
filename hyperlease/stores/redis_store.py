from __future__ import annotations

import asyncio
import math

from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from hyperlease.errors import StoreUnavailableError

from .redis_config import RedisConfig


def to_milliseconds(ttl: float) -> int:
    return max(1, math.ceil(ttl * 1000))


class RedisKVStore:
    """
    KVStore backed by a Redis server.

    Uses SET NX PX for acquisition so the entry and its expiry are
    written in one round trip, PEXPIRE to extend and DEL to release.
    Connection and timeout failures surface as StoreUnavailableError.
    """

    def __init__(
        self,
        config: RedisConfig | None = None,
        client: aioredis.Redis | None = None,
    ) -> None:
        self._config = config or RedisConfig()
        self.connection: aioredis.Redis | None = client
        self._connect_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "redis"

    async def connect(self) -> aioredis.Redis:
        async with self._connect_lock:
            if self.connection is None:
                self.connection = aioredis.from_url(
                    self._config.url,
                    username=self._config.username,
                    password=self._config.password,
                    db=self._config.database,
                    socket_timeout=self._config.timeout,
                    socket_connect_timeout=self._config.timeout,
                    decode_responses=True,
                )

        return self.connection

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        connection = await self.connect()

        try:
            result = await connection.set(
                key,
                value,
                nx=True,
                px=to_milliseconds(ttl),
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as err:
            raise StoreUnavailableError(self.name, "set_if_absent", str(err)) from err

        return bool(result)

    async def expire(self, key: str, ttl: float) -> bool:
        connection = await self.connect()

        try:
            result = await connection.pexpire(
                key,
                to_milliseconds(ttl),
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as err:
            raise StoreUnavailableError(self.name, "expire", str(err)) from err

        return bool(result)

    async def delete(self, key: str) -> bool:
        connection = await self.connect()

        try:
            removed = await connection.delete(key)

        except (RedisConnectionError, RedisTimeoutError, OSError) as err:
            raise StoreUnavailableError(self.name, "delete", str(err)) from err

        return removed > 0

    async def get(self, key: str) -> str | None:
        connection = await self.connect()

        try:
            value = await connection.get(key)

        except (RedisConnectionError, RedisTimeoutError, OSError) as err:
            raise StoreUnavailableError(self.name, "get", str(err)) from err

        if isinstance(value, bytes):
            return value.decode()

        return value

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.aclose()
            self.connection = None
