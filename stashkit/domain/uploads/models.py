"""分片上传领域模型。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import secrets
import time

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from stashkit.core.constants import StorageMode
from stashkit.infrastructure.storage import (
    DiscordLocator,
    HuggingFaceLocator,
    S3Locator,
    StorageFailure,
)


class UploadStatus(str, Enum):
    """上传会话状态。

    pending -> uploading -> completed | aborted
    过期（expired）由 TTL 在读取时体现，不会写入。
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStatus.COMPLETED, UploadStatus.ABORTED)


def generate_upload_id() -> str:
    """生成 128 位随机上传 ID（32 位十六进制）。"""
    return secrets.token_hex(16)


def now_ms() -> int:
    return int(time.time() * 1000)


class UploadSession(BaseModel):
    """上传会话快照。

    JSON 键使用 camelCase，与前端断点续传协议保持一致。
    """

    upload_id: str
    file_name: str
    file_size: int = Field(gt=0)
    file_type: str = "application/octet-stream"
    total_chunks: int = Field(ge=1)
    chunk_size: int = Field(gt=0)
    storage_mode: StorageMode
    uploaded_chunks: list[int] = Field(default_factory=list)
    chunk_digests: dict[int, str] = Field(default_factory=dict)
    status: UploadStatus = UploadStatus.PENDING
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    version: int = 0

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @property
    def is_complete(self) -> bool:
        """所有分片是否都已上传。"""
        return len(self.uploaded_chunks) == self.total_chunks

    @property
    def missing_chunks(self) -> list[int]:
        received = set(self.uploaded_chunks)
        return [index for index in range(self.total_chunks) if index not in received]

    def expected_chunk_length(self, index: int) -> int:
        """分片应有的长度：最后一个分片为余量，其余为 chunk_size。"""
        if index == self.total_chunks - 1:
            return self.file_size - self.chunk_size * (self.total_chunks - 1)
        return self.chunk_size

    def deadline(self, ttl: int) -> float:
        """会话过期时间点（秒）。"""
        return self.created_at / 1000 + ttl

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_public_dict(self) -> dict:
        """对外返回的快照（不含内部字段）。"""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"chunk_digests", "version"},
        )


@dataclass(frozen=True)
class InitResult:
    """会话初始化结果。"""

    upload_id: str
    chunk_size: int


@dataclass(frozen=True)
class ChunkAcceptResult:
    """分片接收结果。

    Attributes:
        session: 接收后的会话快照
        duplicate: 是否为相同内容的重复提交
        completed: 本次是否完成了最终写入
        locator: 完成时的对象定位
        failure: 最终写入失败的原因（会话保持 uploading，可重试）
    """

    session: UploadSession
    duplicate: bool = False
    completed: bool = False
    locator: S3Locator | DiscordLocator | HuggingFaceLocator | None = None
    failure: StorageFailure | None = None


__all__ = [
    "ChunkAcceptResult",
    "InitResult",
    "UploadSession",
    "UploadStatus",
    "generate_upload_id",
    "now_ms",
]
