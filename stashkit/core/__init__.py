"""Core 层模块。

提供配置、常量与业务异常。
"""

from .codes import ErrorCode
from .config import Settings, load_settings
from .constants import StorageMode
from .exceptions import (
    BaseError,
    ConflictError,
    ForbiddenError,
    GoneError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitedError,
    SessionConflictError,
    StoreError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "BaseError",
    "ConflictError",
    "ErrorCode",
    "ForbiddenError",
    "GoneError",
    "NotFoundError",
    "PayloadTooLargeError",
    "RateLimitedError",
    "SessionConflictError",
    "Settings",
    "StorageMode",
    "StoreError",
    "UnauthorizedError",
    "UpstreamError",
    "ValidationError",
    "load_settings",
]
