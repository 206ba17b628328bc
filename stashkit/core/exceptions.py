"""Core 层异常定义。

提供带错误代码和 HTTP 状态码的业务异常，
由 application.errors 中的处理器转换为 HTTP 响应。
"""

from __future__ import annotations

from typing import Any

from fastapi import status

from stashkit.common.exceptions import FoundationError

from .codes import ErrorCode


class BaseError(FoundationError):
    """业务异常基类。

    Attributes:
        message: 错误消息
        code: 错误代码
        status_code: HTTP状态码
        metadata: 元数据
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.metadata = metadata or {}

    def to_dict(self) -> dict[str, Any]:
        """转换为字典。"""
        return {
            "message": self.message,
            "code": self.code.value,
            "status_code": self.status_code,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} code={self.code.value} message={self.message}>"


class ValidationError(BaseError):
    """验证异常。"""

    def __init__(self, message: str = "数据验证失败", **kwargs) -> None:
        super().__init__(
            message=message,
            code=kwargs.pop("code", ErrorCode.VALIDATION_ERROR),
            status_code=kwargs.pop("status_code", status.HTTP_400_BAD_REQUEST),
            **kwargs,
        )


class PayloadTooLargeError(ValidationError):
    """文件超过大小限制。"""

    def __init__(self, message: str = "文件大小超过限制", **kwargs) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.PAYLOAD_TOO_LARGE,
            status_code=413,  # Starlette 新旧版本常量名不同
            **kwargs,
        )


class UnauthorizedError(BaseError):
    """未授权异常。"""

    def __init__(self, message: str = "未授权访问", **kwargs) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.UNAUTHORIZED,
            status_code=status.HTTP_401_UNAUTHORIZED,
            **kwargs,
        )


class ForbiddenError(BaseError):
    """禁止访问异常。"""

    def __init__(self, message: str = "禁止访问", **kwargs) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.FORBIDDEN,
            status_code=status.HTTP_403_FORBIDDEN,
            **kwargs,
        )


class NotFoundError(BaseError):
    """资源不存在异常。"""

    def __init__(self, message: str = "资源不存在", resource: Any = None, **kwargs) -> None:
        metadata = kwargs.pop("metadata", {})
        if resource:
            metadata["resource"] = str(resource)

        super().__init__(
            message=message,
            code=kwargs.pop("code", ErrorCode.NOT_FOUND),
            status_code=kwargs.pop("status_code", status.HTTP_404_NOT_FOUND),
            metadata=metadata,
            **kwargs,
        )


class GoneError(NotFoundError):
    """资源已终结（已完成或已取消），不再接受操作。"""

    def __init__(self, message: str = "资源已失效", resource: Any = None, **kwargs) -> None:
        super().__init__(
            message=message,
            resource=resource,
            code=ErrorCode.GONE,
            status_code=status.HTTP_410_GONE,
            **kwargs,
        )


class ConflictError(BaseError):
    """数据冲突异常。"""

    def __init__(self, message: str = "数据冲突", **kwargs) -> None:
        super().__init__(
            message=message,
            code=kwargs.pop("code", ErrorCode.CONFLICT),
            status_code=status.HTTP_409_CONFLICT,
            **kwargs,
        )


class SessionConflictError(ConflictError):
    """并发更新冲突（乐观锁重试耗尽），客户端可重试。"""

    def __init__(self, message: str = "数据已被其他操作修改，请重试", **kwargs) -> None:
        metadata = kwargs.pop("metadata", {})
        metadata["retryable"] = True
        super().__init__(
            message=message,
            code=ErrorCode.VERSION_CONFLICT,
            metadata=metadata,
            **kwargs,
        )


class RateLimitedError(BaseError):
    """请求频率超限异常。

    Attributes:
        remaining: 剩余可用次数
    """

    def __init__(self, message: str = "请求次数超过限制", remaining: int = 0, **kwargs) -> None:
        metadata = kwargs.pop("metadata", {})
        metadata["remaining"] = remaining
        super().__init__(
            message=message,
            code=ErrorCode.RATE_LIMITED,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            metadata=metadata,
            **kwargs,
        )
        self.remaining = remaining


class UpstreamError(BaseError):
    """存储提供方错误，透传提供方消息。"""

    def __init__(
        self,
        message: str = "存储服务错误",
        upstream_status: int | None = None,
        **kwargs,
    ) -> None:
        metadata = kwargs.pop("metadata", {})
        if upstream_status is not None:
            metadata["upstream_status"] = upstream_status
        super().__init__(
            message=message,
            code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            status_code=status.HTTP_502_BAD_GATEWAY,
            metadata=metadata,
            **kwargs,
        )
        self.upstream_status = upstream_status


class StoreError(BaseError):
    """KV 存储不可用。"""

    def __init__(self, message: str = "KV 存储不可用", **kwargs) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.STORE_ERROR,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            **kwargs,
        )


__all__ = [
    "BaseError",
    "ConflictError",
    "ForbiddenError",
    "GoneError",
    "NotFoundError",
    "PayloadTooLargeError",
    "RateLimitedError",
    "SessionConflictError",
    "StoreError",
    "UnauthorizedError",
    "UpstreamError",
    "ValidationError",
]
