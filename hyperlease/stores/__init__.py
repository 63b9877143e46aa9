from .create_store import create_store as create_store
from .kv_store import KVStore as KVStore
from .memory_store import MemoryKVStore as MemoryKVStore
from .redis_config import RedisConfig as RedisConfig
from .redis_store import RedisKVStore as RedisKVStore
