"""KV 存储工厂 - 注册机制。"""

from __future__ import annotations

from stashkit.common.logging import logger
from stashkit.core.config import KVSettings

from .base import IKeyValueStore
from .memory import MemoryKVStore
from .redis import RedisKVStore


class KVStoreFactory:
    """KV 存储工厂。

    通过注册机制支持多种后端。
    """

    _backends: dict[str, type[IKeyValueStore]] = {}

    @classmethod
    def register(cls, name: str, backend_class: type[IKeyValueStore]) -> None:
        """注册 KV 后端。"""
        cls._backends[name] = backend_class
        logger.debug(f"注册 KV 后端: {name} -> {backend_class.__name__}")

    @classmethod
    async def create(cls, settings: KVSettings) -> IKeyValueStore:
        """根据配置创建并初始化 KV 实例。

        Raises:
            ValueError: 后端未注册或缺少必要配置
        """
        name = settings.backend.lower()
        if name not in cls._backends:
            available = ", ".join(cls._backends)
            raise ValueError(f"KV 后端 '{name}' 未注册。可用后端: {available}")

        if name == "redis":
            if not settings.url:
                raise ValueError("Redis KV 需要配置 KV_URL")
            instance: IKeyValueStore = RedisKVStore(settings.url, socket_timeout=settings.socket_timeout)
        else:
            instance = cls._backends[name]()

        if hasattr(instance, "initialize"):
            await instance.initialize()

        logger.info(f"创建 KV 实例: {name}")
        return instance


KVStoreFactory.register("memory", MemoryKVStore)
KVStoreFactory.register("redis", RedisKVStore)


__all__ = [
    "KVStoreFactory",
]
