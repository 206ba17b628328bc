"""Redis KV 实现。"""

from __future__ import annotations

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from stashkit.common.logging import logger, mask_url
from stashkit.core.exceptions import StoreError

from .base import Expire, IKeyValueStore, encode_value, expire_seconds


class RedisKVStore(IKeyValueStore):
    """Redis KV 实现。

    compare_and_set 使用 WATCH/MULTI 乐观事务。
    """

    def __init__(self, url: str, *, socket_timeout: float = 5.0, client: Redis | None = None) -> None:
        """初始化 Redis 存储。

        Args:
            url: Redis 连接 URL
            socket_timeout: 套接字超时（秒）
            client: 已创建的 Redis 客户端，传入时 initialize() 只做连通性检查
        """
        self._url = url
        self._socket_timeout = socket_timeout
        self._redis: Redis | None = client

    async def initialize(self) -> None:
        """初始化连接。"""
        try:
            if self._redis is None:
                self._redis = Redis.from_url(
                    self._url,
                    decode_responses=False,
                    socket_connect_timeout=self._socket_timeout,
                    socket_timeout=self._socket_timeout,
                )
            await self._redis.ping()
            logger.info(f"Redis KV 初始化成功: {mask_url(self._url)}")
        except RedisError as exc:
            logger.error(f"Redis 连接失败: {mask_url(self._url)}, {exc}")
            raise StoreError(f"Redis 连接失败: {exc}") from exc

    @property
    def redis(self) -> Redis:
        """获取Redis客户端。"""
        if self._redis is None:
            raise StoreError("Redis KV 未初始化，请先调用 initialize()")
        return self._redis

    async def get(self, key: str) -> bytes | None:
        try:
            return await self.redis.get(key)
        except RedisError as exc:
            raise StoreError(f"Redis 读取失败: {key}, {exc}") from exc

    async def put(self, key: str, value: bytes | str, *, expire: Expire = None) -> None:
        try:
            await self.redis.set(key, encode_value(value), ex=expire_seconds(expire))
        except RedisError as exc:
            raise StoreError(f"Redis 写入失败: {key}, {exc}") from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.redis.delete(*keys)
        except RedisError as exc:
            raise StoreError(f"Redis 删除失败: {keys}, {exc}") from exc

    async def compare_and_set(
        self,
        key: str,
        expected: bytes | None,
        value: bytes | str,
        *,
        expire: Expire = None,
    ) -> bool:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, encode_value(value), ex=expire_seconds(expire))
                await pipe.execute()
                return True
        except WatchError:
            return False
        except RedisError as exc:
            raise StoreError(f"Redis 条件写入失败: {key}, {exc}") from exc

    async def close(self) -> None:
        """关闭连接。"""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis 连接已关闭")


__all__ = [
    "RedisKVStore",
]
