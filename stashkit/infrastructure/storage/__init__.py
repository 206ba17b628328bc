"""对象存储系统模块。

支持多种存储后端：
- S3协议存储（AWS S3, MinIO, Cloudflare R2 等）
- Discord 消息附件
- HuggingFace 数据集仓库

使用工厂模式，按配置创建后端。
"""

from .base import (
    ConnectionStatus,
    DiscordLocator,
    FailureKind,
    HuggingFaceLocator,
    IStorage,
    ObjectStat,
    PutResult,
    S3Locator,
    StorageFailure,
    StorageObjectLocator,
    StoredObject,
)
from .discord import DiscordStorage
from .factory import StorageFactory, create_http_client
from .huggingface import HuggingFaceStorage
from .s3 import S3Storage
from .signer import SigningCredentials, SigV4Interceptor, sign_request

__all__ = [
    "ConnectionStatus",
    "DiscordLocator",
    "DiscordStorage",
    "FailureKind",
    "HuggingFaceLocator",
    "HuggingFaceStorage",
    "IStorage",
    "ObjectStat",
    "PutResult",
    "S3Locator",
    "S3Storage",
    "SigV4Interceptor",
    "SigningCredentials",
    "StorageFactory",
    "StorageFailure",
    "StorageObjectLocator",
    "StoredObject",
    "create_http_client",
    "sign_request",
]
