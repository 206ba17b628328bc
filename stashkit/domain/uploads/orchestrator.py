"""分片上传编排器。

状态机：pending -> uploading -> completed | aborted

- 分片先以摘要限定的键写入，再更新会话，并发写入不会互相覆盖
- 会话更新使用 version 条件写入，冲突时重新读取并重试
- 最终写入失败时保留分片，会话保持 uploading，可通过 complete 重试
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import hashlib
import math
import time

from stashkit.common.logging import LoggerMixin, log_performance
from stashkit.core.config import UploadSettings
from stashkit.core.constants import StorageMode
from stashkit.core.exceptions import (
    ConflictError,
    GoneError,
    NotFoundError,
    SessionConflictError,
    StoreError,
    ValidationError,
)
from stashkit.infrastructure.storage import IStorage, PutResult, StorageFailure
from stashkit.infrastructure.storage.transport import not_configured

from .models import (
    ChunkAcceptResult,
    InitResult,
    UploadSession,
    UploadStatus,
    generate_upload_id,
)
from .store import UploadSessionStore

Mutation = Callable[[UploadSession], UploadSession | None]

_ID_ATTEMPTS = 3


def safe_file_name(file_name: str) -> str:
    """去掉路径部分，只保留文件名。"""
    name = file_name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return name or "file"


class ChunkUploadOrchestrator(LoggerMixin):
    """分片上传编排器。

    使用示例:
        orchestrator = ChunkUploadOrchestrator(settings.upload, store, backends)
        result = await orchestrator.init("a.bin", size, None, total, "s3")
        await orchestrator.accept_chunk(result.upload_id, 0, data)
    """

    def __init__(
        self,
        settings: UploadSettings,
        store: UploadSessionStore,
        backends: Mapping[StorageMode, IStorage],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """初始化编排器。

        Args:
            settings: 上传配置
            store: 会话存储
            backends: 已配置的存储后端
            clock: 返回当前 Unix 时间（秒）的函数，需与会话存储一致
        """
        self._settings = settings
        self._store = store
        self._backends = dict(backends)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _load(self, upload_id: str) -> tuple[UploadSession, bytes]:
        loaded = await self._store.load(upload_id)
        if loaded is None:
            raise NotFoundError("上传会话不存在或已过期", resource=upload_id)
        return loaded

    @staticmethod
    def _ensure_active(session: UploadSession) -> None:
        if session.status.is_terminal:
            raise GoneError(f"上传会话已{session.status.value}", resource=session.upload_id)

    async def _update(self, upload_id: str, mutate: Mutation) -> tuple[UploadSession, bool]:
        """读取最新快照并条件写入。

        mutate 返回 None 表示无需修改。

        Returns:
            tuple[UploadSession, bool]: (最新会话, 是否写入)
        """
        for attempt in range(self._settings.cas_retries):
            session, raw = await self._load(upload_id)
            updated = mutate(session.model_copy(deep=True))
            if updated is None:
                return session, False

            updated.version = session.version + 1
            updated.updated_at = self._now_ms()
            if await self._store.replace(updated, raw):
                return updated, True
            self.logger.debug(f"会话并发更新冲突，重试 ({attempt + 1}): {upload_id}")

        self.logger.warning(f"会话并发更新重试耗尽: {upload_id}")
        raise SessionConflictError(metadata={"upload_id": upload_id})

    async def init(
        self,
        file_name: str | None,
        file_size: int | None,
        file_type: str | None,
        total_chunks: int | None,
        storage_mode: str | StorageMode | None = None,
    ) -> InitResult:
        """创建上传会话。

        Args:
            file_name: 文件名
            file_size: 文件大小（字节）
            file_type: MIME 类型
            total_chunks: 分片总数
            storage_mode: 存储标签，未知值回落到主存储

        Returns:
            InitResult: 上传 ID 与分片大小

        Raises:
            ValidationError: 参数缺失或不合法
        """
        if not file_name or not file_size or not total_chunks:
            raise ValidationError("缺少必要参数")
        if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size <= 0:
            raise ValidationError("文件大小不合法")
        if isinstance(total_chunks, bool) or not isinstance(total_chunks, int) or total_chunks <= 0:
            raise ValidationError("分片数量不合法")

        max_size = self._settings.max_file_size
        if file_size > max_size:
            raise ValidationError(
                f"文件大小超过限制 (最大 {max_size // (1024 * 1024)}MB)",
                metadata={"max_file_size": max_size},
            )

        chunk_size = self._settings.chunk_size
        expected_chunks = math.ceil(file_size / chunk_size)
        if total_chunks != expected_chunks:
            raise ValidationError(
                "分片数量与文件大小不匹配",
                metadata={"expected": expected_chunks, "chunk_size": chunk_size},
            )

        mode = StorageMode.normalize(storage_mode, self._settings.default_storage_mode)
        now = self._now_ms()

        for _ in range(_ID_ATTEMPTS):
            session = UploadSession(
                upload_id=generate_upload_id(),
                file_name=file_name,
                file_size=file_size,
                file_type=file_type or "application/octet-stream",
                total_chunks=total_chunks,
                chunk_size=chunk_size,
                storage_mode=mode,
                created_at=now,
                updated_at=now,
            )
            if await self._store.create(session):
                self.logger.info(
                    f"创建上传会话: {session.upload_id}, file={file_name}, "
                    f"size={file_size}, chunks={total_chunks}, mode={mode.value}"
                )
                return InitResult(upload_id=session.upload_id, chunk_size=chunk_size)

        raise StoreError("无法分配上传 ID")

    async def get_status(self, upload_id: str) -> UploadSession:
        """获取会话快照，不存在或已过期时抛出 NotFoundError。"""
        session, _ = await self._load(upload_id)
        return session

    def _validate_chunk(self, session: UploadSession, index: int, data: bytes) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < session.total_chunks:
            raise ValidationError(
                "分片索引超出范围",
                metadata={"index": index, "total_chunks": session.total_chunks},
            )
        expected = session.expected_chunk_length(index)
        if len(data) != expected:
            raise ValidationError(
                "分片大小不正确",
                metadata={"index": index, "expected": expected, "actual": len(data)},
            )

    async def accept_chunk(self, upload_id: str, index: int, data: bytes) -> ChunkAcceptResult:
        """接收一个分片，集齐后自动写入存储后端。

        Raises:
            NotFoundError: 会话不存在或已过期
            GoneError: 会话已完成或已取消
            ValidationError: 索引越界或分片大小不正确
            ConflictError: 同一索引提交了不同内容
        """
        session, _ = await self._load(upload_id)
        self._ensure_active(session)
        self._validate_chunk(session, index, data)

        digest = hashlib.sha256(data).hexdigest()
        existing = session.chunk_digests.get(index)
        if existing == digest:
            return ChunkAcceptResult(session=session, duplicate=True)
        if existing is not None:
            raise ConflictError("分片内容与已上传的不一致", metadata={"index": index})

        await self._store.put_chunk(session, index, digest, data)

        def record(current: UploadSession) -> UploadSession | None:
            self._ensure_active(current)
            recorded = current.chunk_digests.get(index)
            if recorded == digest:
                return None
            if recorded is not None:
                raise ConflictError("分片内容与已上传的不一致", metadata={"index": index})
            current.chunk_digests[index] = digest
            current.uploaded_chunks = sorted({*current.uploaded_chunks, index})
            current.status = UploadStatus.UPLOADING
            return current

        session, written = await self._update(upload_id, record)
        if not written:
            return ChunkAcceptResult(session=session, duplicate=True)

        self.logger.debug(f"分片已接收: {upload_id} [{index}] {len(session.uploaded_chunks)}/{session.total_chunks}")
        if not session.is_complete:
            return ChunkAcceptResult(session=session)

        outcome = await self._finalize(session)
        if isinstance(outcome, StorageFailure):
            return ChunkAcceptResult(session=session, failure=outcome)
        session, result = outcome
        return ChunkAcceptResult(session=session, completed=True, locator=result.locator)

    async def complete(self, upload_id: str) -> PutResult:
        """显式完成上传（可用于重试失败的最终写入）。

        Raises:
            ValidationError: 仍有分片未上传
            UpstreamError: 存储后端写入失败
        """
        session, _ = await self._load(upload_id)
        self._ensure_active(session)
        if not session.is_complete:
            raise ValidationError("仍有分片未上传", metadata={"missing": session.missing_chunks})

        outcome = await self._finalize(session)
        if isinstance(outcome, StorageFailure):
            raise outcome.to_error()
        return outcome[1]

    async def abort(self, upload_id: str) -> UploadSession:
        """取消上传并释放分片。"""
        def mark_aborted(current: UploadSession) -> UploadSession:
            self._ensure_active(current)
            current.status = UploadStatus.ABORTED
            return current

        session, _ = await self._update(upload_id, mark_aborted)
        await self._store.delete_chunks(session)
        self.logger.info(f"上传已取消: {upload_id}")
        return session

    async def assemble(self, session: UploadSession) -> bytes:
        """按索引顺序拼接分片。

        Raises:
            StoreError: 分片缺失或总长度与文件大小不符
        """
        parts: list[bytes] = []
        for index in range(session.total_chunks):
            chunk = await self._store.get_chunk(session, index)
            if chunk is None:
                raise StoreError(f"分片数据缺失: {session.upload_id} [{index}]")
            parts.append(chunk)

        data = b"".join(parts)
        if len(data) != session.file_size:
            raise StoreError(
                f"拼接后大小不符: {session.upload_id}, expected={session.file_size}, actual={len(data)}"
            )
        return data

    @log_performance(threshold=5.0)
    async def _dispatch(self, session: UploadSession, data: bytes) -> PutResult | StorageFailure:
        backend = self._backends.get(session.storage_mode)
        if backend is None:
            return not_configured(f"存储后端未配置: {session.storage_mode.value}")

        name = safe_file_name(session.file_name)
        return await backend.put(
            f"uploads/{session.upload_id}/{name}",
            data,
            content_type=session.file_type,
            metadata={"filename": name, "upload-id": session.upload_id},
        )

    async def _finalize(self, session: UploadSession) -> tuple[UploadSession, PutResult] | StorageFailure:
        """拼接并写入存储后端，成功后标记完成并释放分片。"""
        data = await self.assemble(session)
        result = await self._dispatch(session, data)
        if isinstance(result, StorageFailure):
            self.logger.warning(
                f"最终写入失败，会话保留: {session.upload_id}, "
                f"mode={session.storage_mode.value}, kind={result.kind.value}, {result.message}"
            )
            return result

        def mark_completed(current: UploadSession) -> UploadSession | None:
            if current.status is UploadStatus.COMPLETED:
                return None
            self._ensure_active(current)
            current.status = UploadStatus.COMPLETED
            return current

        session, _ = await self._update(session.upload_id, mark_completed)
        await self._store.delete_chunks(session)
        self.logger.info(
            f"上传完成: {session.upload_id}, mode={session.storage_mode.value}, size={session.file_size}"
        )
        return session, result


__all__ = [
    "ChunkUploadOrchestrator",
    "safe_file_name",
]
