"""上传会话存储。

KV 键布局：
- upload:{uploadId}                         会话 JSON
- upload:{uploadId}:chunk:{index}:{sha256}  分片内容

会话与分片共享同一截止时间（createdAt + TTL），重写不会延长寿命。
"""

from __future__ import annotations

from collections.abc import Callable
import time

from pydantic import ValidationError as PydanticValidationError

from stashkit.common.logging import logger
from stashkit.core.exceptions import StoreError
from stashkit.infrastructure.kv import IKeyValueStore

from .models import UploadSession

SESSION_PREFIX = "upload:"


class UploadSessionStore:
    """会话快照存储（KV 的薄封装）。

    读取失败时按"失败关闭"处理：记录日志并视为不存在。
    """

    def __init__(
        self,
        kv: IKeyValueStore,
        *,
        ttl: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """初始化会话存储。

        Args:
            kv: KV 存储
            ttl: 会话寿命（秒）
            clock: 返回当前 Unix 时间（秒）的函数
        """
        self._kv = kv
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def session_key(upload_id: str) -> str:
        return f"{SESSION_PREFIX}{upload_id}"

    @staticmethod
    def chunk_key(upload_id: str, index: int, digest: str) -> str:
        return f"{SESSION_PREFIX}{upload_id}:chunk:{index}:{digest}"

    def _remaining(self, session: UploadSession) -> float:
        """距离截止时间的剩余秒数。"""
        return session.deadline(self._ttl) - self._clock()

    async def load(self, upload_id: str) -> tuple[UploadSession, bytes] | None:
        """读取会话快照。

        Returns:
            tuple[UploadSession, bytes] | None: (会话, 原始值)，原始值用于条件写入；
            不存在、已过期、无法解析或存储故障时返回 None
        """
        try:
            raw = await self._kv.get(self.session_key(upload_id))
        except StoreError as exc:
            logger.error(f"读取上传会话失败，按不存在处理: {upload_id}, {exc}")
            return None

        if raw is None:
            return None

        try:
            session = UploadSession.model_validate_json(raw)
        except PydanticValidationError as exc:
            logger.error(f"上传会话数据损坏: {upload_id}, {exc}")
            return None

        if self._remaining(session) <= 0:
            logger.debug(f"上传会话已过期: {upload_id}")
            return None
        return session, raw

    async def create(self, session: UploadSession) -> bool:
        """写入新会话，键已存在时返回 False。"""
        return await self._kv.compare_and_set(
            self.session_key(session.upload_id),
            None,
            session.to_json(),
            expire=self._ttl,
        )

    async def replace(self, session: UploadSession, expected: bytes) -> bool:
        """条件替换会话，快照已被其他请求修改时返回 False。"""
        remaining = self._remaining(session)
        if remaining <= 0:
            return False
        return await self._kv.compare_and_set(
            self.session_key(session.upload_id),
            expected,
            session.to_json(),
            expire=remaining,
        )

    async def put_chunk(self, session: UploadSession, index: int, digest: str, data: bytes) -> None:
        """写入分片内容，与会话同时过期。"""
        await self._kv.put(
            self.chunk_key(session.upload_id, index, digest),
            data,
            expire=max(self._remaining(session), 1),
        )

    async def get_chunk(self, session: UploadSession, index: int) -> bytes | None:
        """读取已记录的分片内容。"""
        digest = session.chunk_digests.get(index)
        if digest is None:
            return None
        return await self._kv.get(self.chunk_key(session.upload_id, index, digest))

    async def delete_chunks(self, session: UploadSession) -> None:
        """释放已缓存的分片（尽力而为，失败时依赖 TTL 回收）。"""
        keys = [
            self.chunk_key(session.upload_id, index, digest)
            for index, digest in session.chunk_digests.items()
        ]
        if not keys:
            return
        try:
            await self._kv.delete(*keys)
        except StoreError as exc:
            logger.warning(f"释放分片失败，等待过期回收: {session.upload_id}, {exc}")


__all__ = [
    "SESSION_PREFIX",
    "UploadSessionStore",
]
