"""常量定义。"""

from __future__ import annotations

from enum import Enum


class StorageMode(str, Enum):
    """存储后端标签（封闭集合）。

    会话初始化时确定并随会话持久化，后续操作不再从字符串重新推导。
    """

    TELEGRAM = "telegram"  # 外部协作方提供实现
    R2 = "r2"  # Cloudflare R2（S3协议）
    S3 = "s3"  # S3协议存储（AWS S3, MinIO等）
    DISCORD = "discord"  # 消息附件存储
    HUGGINGFACE = "huggingface"  # 数据集仓库提交

    @classmethod
    def normalize(cls, value: str | None, default: StorageMode) -> StorageMode:
        """把任意输入规范化为已知标签，未知标签回落到 default。"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


KIB = 1024
MIB = 1024 * KIB

__all__ = [
    "KIB",
    "MIB",
    "StorageMode",
]
