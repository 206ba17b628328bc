"""KV 存储接口。

会话与访客计数的外部存储抽象：get / 带过期的 put / delete / compare-and-set。
实现遇到后端故障时抛出 StoreError，由调用方按场景决定失败放行或失败关闭。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
import math

Expire = int | float | timedelta | None


def encode_value(value: bytes | str) -> bytes:
    """统一转换为字节。"""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def expire_seconds(expire: Expire) -> int | None:
    """把过期时间转换为整数秒（至少 1 秒）。"""
    if expire is None:
        return None
    if isinstance(expire, timedelta):
        expire = expire.total_seconds()
    return max(math.ceil(expire), 1)


class IKeyValueStore(ABC):
    """KV 存储接口。

    所有 KV 后端必须实现此接口。
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """读取值，不存在或已过期返回 None。"""
        pass

    @abstractmethod
    async def put(self, key: str, value: bytes | str, *, expire: Expire = None) -> None:
        """写入值。"""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """删除键，返回删除数量。"""
        pass

    @abstractmethod
    async def compare_and_set(
        self,
        key: str,
        expected: bytes | None,
        value: bytes | str,
        *,
        expire: Expire = None,
    ) -> bool:
        """条件写入。

        仅当当前值等于 expected（None 表示键不存在）时写入。

        Returns:
            bool: 是否写入成功
        """
        pass

    async def close(self) -> None:
        """关闭连接。"""
        pass


__all__ = [
    "Expire",
    "IKeyValueStore",
    "encode_value",
    "expire_seconds",
]
