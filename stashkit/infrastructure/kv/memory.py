"""内存 KV 实现（开发与测试使用）。"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import time

from .base import Expire, IKeyValueStore, encode_value, expire_seconds


class MemoryKVStore(IKeyValueStore):
    """内存 KV 实现。

    过期时间基于可注入的时钟计算，测试时可以通过推进时钟模拟 TTL 到期。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """初始化内存存储。

        Args:
            clock: 返回当前时间（秒）的函数
        """
        self._clock = clock
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self._lock = asyncio.Lock()

    def _read(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expire_at = entry
        if expire_at is not None and self._clock() >= expire_at:
            del self._data[key]
            return None
        return value

    def _write(self, key: str, value: bytes | str, expire: Expire) -> None:
        seconds = expire_seconds(expire)
        expire_at = self._clock() + seconds if seconds is not None else None
        self._data[key] = (encode_value(value), expire_at)

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            return self._read(key)

    async def put(self, key: str, value: bytes | str, *, expire: Expire = None) -> None:
        async with self._lock:
            self._write(key, value, expire)

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            removed = 0
            for key in keys:
                if self._read(key) is not None:
                    removed += 1
                self._data.pop(key, None)
            return removed

    async def compare_and_set(
        self,
        key: str,
        expected: bytes | None,
        value: bytes | str,
        *,
        expire: Expire = None,
    ) -> bool:
        async with self._lock:
            if self._read(key) != expected:
                return False
            self._write(key, value, expire)
            return True

    def keys(self) -> list[str]:
        """列出未过期的键（调试用）。"""
        return [key for key in list(self._data) if self._read(key) is not None]


__all__ = [
    "MemoryKVStore",
]
