from hyperlease.env import Env

from .kv_store import KVStore
from .memory_store import MemoryKVStore
from .redis_config import RedisConfig
from .redis_store import RedisKVStore


def create_store(env: Env) -> KVStore:
    if env.HYPERLEASE_STORE_TYPE == "redis":
        return RedisKVStore(
            RedisConfig(
                host=env.HYPERLEASE_REDIS_HOST,
                port=env.HYPERLEASE_REDIS_PORT,
                username=env.HYPERLEASE_REDIS_USERNAME,
                password=env.HYPERLEASE_REDIS_PASSWORD,
                database=env.HYPERLEASE_REDIS_DATABASE,
                secure=env.HYPERLEASE_REDIS_SECURE,
                timeout=env.redis_timeout,
            )
        )

    return MemoryKVStore()
