"""KV 存储模块。

支持的后端：
- Redis（生产）
- Memory（开发与测试）
"""

from .base import IKeyValueStore
from .factory import KVStoreFactory
from .memory import MemoryKVStore
from .redis import RedisKVStore

__all__ = [
    "IKeyValueStore",
    "KVStoreFactory",
    "MemoryKVStore",
    "RedisKVStore",
]
