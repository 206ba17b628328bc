"""错误代码定义。

提供统一的错误代码枚举。
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """错误代码枚举。"""

    # 通用错误 (1xxx)
    UNKNOWN_ERROR = "1000"
    VALIDATION_ERROR = "1001"
    NOT_FOUND = "1002"
    UNAUTHORIZED = "1004"
    FORBIDDEN = "1005"
    PAYLOAD_TOO_LARGE = "1006"
    GONE = "1007"
    RATE_LIMITED = "1008"

    # 存储错误 (2xxx)
    STORE_ERROR = "2000"
    VERSION_CONFLICT = "2003"  # 乐观锁冲突

    # 业务错误 (3xxx)
    CONFLICT = "3003"

    # 外部服务错误 (4xxx)
    EXTERNAL_SERVICE_ERROR = "4000"


__all__ = [
    "ErrorCode",
]
