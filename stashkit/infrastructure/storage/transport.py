"""HTTP 结果到 StorageFailure 的转换。"""

from __future__ import annotations

from typing import Any

from stashkit.toolkit.http import HttpError, HttpResponse, HttpTimeoutError

from .base import FailureKind, StorageFailure

_MAX_MESSAGE_LENGTH = 500


def provider_message(response: HttpResponse) -> str:
    """提取提供方错误消息（JSON 的 message/error 字段，否则为正文）。"""
    payload = json_object(response)
    if payload is not None:
        for field in ("message", "error"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    return text[:_MAX_MESSAGE_LENGTH] if text else f"HTTP {response.status_code}"


def json_object(response: HttpResponse) -> dict[str, Any] | None:
    """解析 JSON 对象正文，无法解析或不是对象时返回 None。"""
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def failure_from_response(response: HttpResponse, prefix: str) -> StorageFailure:
    """非成功响应 -> StorageFailure。"""
    return StorageFailure(
        kind=FailureKind.UPSTREAM_STATUS,
        message=f"{prefix} ({response.status_code}): {provider_message(response)}",
        status_code=response.status_code,
    )


def failure_from_exception(exc: HttpError) -> StorageFailure:
    """传输异常 -> StorageFailure。"""
    kind = FailureKind.TIMEOUT if isinstance(exc, HttpTimeoutError) else FailureKind.NETWORK
    return StorageFailure(kind=kind, message=str(exc))


def not_configured(message: str) -> StorageFailure:
    return StorageFailure(kind=FailureKind.NOT_CONFIGURED, message=message)


def invalid_response(message: str, status_code: int | None = None) -> StorageFailure:
    return StorageFailure(kind=FailureKind.INVALID_RESPONSE, message=message, status_code=status_code)


__all__ = [
    "failure_from_exception",
    "failure_from_response",
    "invalid_response",
    "json_object",
    "not_configured",
    "provider_message",
]
