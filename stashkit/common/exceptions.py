"""基础异常定义。

所有 stashkit 异常的根类。
"""

from __future__ import annotations


class FoundationError(Exception):
    """stashkit 异常基类。

    Attributes:
        message: 错误消息
    """

    def __init__(self, message: str = "", *args: object) -> None:
        super().__init__(message, *args)
        self.message = message

    def __str__(self) -> str:
        return self.message


__all__ = [
    "FoundationError",
]
