"""对象存储系统 - 统一的存储后端接口。

支持的后端：
- S3协议存储（AWS S3, MinIO, Cloudflare R2 等）
- Discord 消息附件
- HuggingFace 数据集仓库

约定：
- 返回 None 仅表示"资源不存在"
- 网络错误与非成功状态码一律包装为 StorageFailure 返回，不向外抛出
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from stashkit.core.constants import StorageMode
from stashkit.core.exceptions import UpstreamError


class S3Locator(BaseModel):
    """S3 对象定位（桶 + 键）。"""

    kind: Literal["s3"] = "s3"
    bucket: str
    key: str

    model_config = ConfigDict(frozen=True)


class DiscordLocator(BaseModel):
    """Discord 附件定位（频道 + 消息 + 附件）。"""

    kind: Literal["discord"] = "discord"
    channel_id: str
    message_id: str
    attachment_id: str

    model_config = ConfigDict(frozen=True)


class HuggingFaceLocator(BaseModel):
    """HuggingFace 文件定位（仓库路径 + 提交）。"""

    kind: Literal["huggingface"] = "huggingface"
    repo: str
    path: str
    commit_ref: str | None = None

    model_config = ConfigDict(frozen=True)


StorageObjectLocator = Annotated[
    Union[S3Locator, DiscordLocator, HuggingFaceLocator],
    Field(discriminator="kind"),
]


class FailureKind(str, Enum):
    """失败类型。"""

    NOT_CONFIGURED = "not_configured"
    UPSTREAM_STATUS = "upstream_status"
    NETWORK = "network"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class StorageFailure:
    """结构化失败结果。

    Attributes:
        kind: 失败类型
        message: 提供方消息或本地描述
        status_code: 提供方 HTTP 状态码（如有）
    """

    kind: FailureKind
    message: str
    status_code: int | None = None

    def to_error(self) -> UpstreamError:
        """转换为业务异常。"""
        return UpstreamError(
            self.message,
            upstream_status=self.status_code,
            metadata={"failure_kind": self.kind.value},
        )


@dataclass(frozen=True)
class PutResult:
    """上传结果。

    Attributes:
        locator: 对象定位
        etag: ETag 或提交引用
        size: 写入字节数
    """

    locator: S3Locator | DiscordLocator | HuggingFaceLocator
    etag: str | None = None
    size: int | None = None


@dataclass(frozen=True)
class ObjectStat:
    """对象元信息。"""

    size: int
    content_type: str | None = None
    etag: str | None = None
    last_modified: str | None = None


@dataclass(frozen=True)
class StoredObject:
    """下载结果。

    Attributes:
        content: 对象内容（或请求的区间）
        content_type: MIME 类型
        status_code: 提供方状态码（200 或 206）
        headers: 透传给客户端的响应头
    """

    content: bytes
    content_type: str | None = None
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.content)

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """按块迭代内容。"""
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset:offset + chunk_size]


@dataclass(frozen=True)
class ConnectionStatus:
    """连接检查结果。"""

    connected: bool
    details: dict[str, Any] = field(default_factory=dict)


class IStorage(ABC):
    """存储接口。

    所有存储后端必须实现此接口。
    """

    mode: StorageMode

    @abstractmethod
    async def put(
        self,
        locator_hint: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult | StorageFailure:
        """上传对象。

        Args:
            locator_hint: 建议的对象路径（S3 键、仓库路径或附件文件名）
            data: 对象内容
            content_type: MIME 类型
            metadata: 附加元数据

        Returns:
            PutResult | StorageFailure: 成功返回定位信息
        """
        pass

    @abstractmethod
    async def get(
        self,
        locator: Any,
        range_header: str | None = None,
    ) -> StoredObject | StorageFailure | None:
        """下载对象，不存在返回 None。"""
        pass

    @abstractmethod
    async def delete(self, locator: Any) -> bool:
        """删除对象，失败返回 False，不抛出异常。"""
        pass

    @abstractmethod
    async def stat(self, locator: Any) -> ObjectStat | StorageFailure | None:
        """获取对象元信息，不存在返回 None。"""
        pass

    @abstractmethod
    async def check_connection(self) -> ConnectionStatus:
        """检查连接状态。"""
        pass

    async def close(self) -> None:
        """关闭连接。"""
        pass


__all__ = [
    "ConnectionStatus",
    "DiscordLocator",
    "FailureKind",
    "HuggingFaceLocator",
    "IStorage",
    "ObjectStat",
    "PutResult",
    "S3Locator",
    "StorageFailure",
    "StorageObjectLocator",
    "StoredObject",
]
