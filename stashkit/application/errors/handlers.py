"""错误处理器实现。

提供责任链模式的错误处理器，统一输出 {success: false, error, code}。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException

from stashkit.common.logging import logger
from stashkit.core.codes import ErrorCode
from stashkit.core.exceptions import BaseError


def error_body(message: str, code: str | int, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    """构建错误响应体。"""
    body: dict[str, Any] = {"success": False, "error": message, "code": code}
    if metadata:
        body["metadata"] = metadata
    return body


class ErrorHandler(ABC):
    """错误处理器抽象基类 - 责任链模式。"""

    def __init__(self) -> None:
        self._next_handler: ErrorHandler | None = None

    def set_next(self, handler: ErrorHandler) -> ErrorHandler:
        """设置下一个处理器（支持链式调用）。"""
        self._next_handler = handler
        return handler

    @abstractmethod
    def can_handle(self, exception: Exception) -> bool:
        """判断是否可以处理该异常。"""
        pass

    @abstractmethod
    async def handle(self, exception: Exception, request: Request) -> JSONResponse:
        """处理异常。"""
        pass

    async def process(self, exception: Exception, request: Request) -> JSONResponse:
        """处理异常（责任链入口）。"""
        if self.can_handle(exception):
            return await self.handle(exception, request)

        if self._next_handler:
            return await self._next_handler.process(exception, request)

        return await self._default_handle(exception, request)

    async def _default_handle(self, exception: Exception, request: Request) -> JSONResponse:
        """默认异常处理。"""
        logger.exception(f"未处理的异常: {request.method} {request.url.path} - {exception}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("服务器内部错误", ErrorCode.UNKNOWN_ERROR.value),
        )


class BaseErrorHandler(ErrorHandler):
    """业务异常处理器。"""

    def can_handle(self, exception: Exception) -> bool:
        return isinstance(exception, BaseError)

    async def handle(self, exception: BaseError, request: Request) -> JSONResponse:
        if exception.status_code >= 500:
            logger.error(f"业务异常: {exception!r}")
        else:
            logger.warning(f"业务异常: {exception!r}")

        return JSONResponse(
            status_code=exception.status_code,
            content=error_body(exception.message, exception.code.value, exception.metadata),
        )


class HTTPExceptionHandler(ErrorHandler):
    """FastAPI HTTP异常处理器。"""

    def can_handle(self, exception: Exception) -> bool:
        return isinstance(exception, HTTPException)

    async def handle(self, exception: HTTPException, request: Request) -> JSONResponse:
        logger.warning(f"HTTP异常: {exception.status_code} - {exception.detail}")
        return JSONResponse(
            status_code=exception.status_code,
            content=error_body(str(exception.detail), exception.status_code),
            headers=getattr(exception, "headers", None),
        )


class ValidationErrorHandler(ErrorHandler):
    """请求数据验证异常处理器。"""

    def can_handle(self, exception: Exception) -> bool:
        return isinstance(exception, (RequestValidationError, PydanticValidationError))

    async def handle(self, exception: Exception, request: Request) -> JSONResponse:
        logger.warning(f"数据验证失败: {exception}")

        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exception.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("数据验证失败", ErrorCode.VALIDATION_ERROR.value, {"errors": errors}),
        )


def build_handler_chain() -> ErrorHandler:
    """构建处理器链：业务异常 -> 验证异常 -> HTTP 异常 -> 默认。"""
    chain = BaseErrorHandler()
    chain.set_next(ValidationErrorHandler()).set_next(HTTPExceptionHandler())
    return chain


_chain = build_handler_chain()


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """全局异常处理入口。"""
    return await _chain.process(exc, request)


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器。

    FastAPI 为 HTTPException 与 RequestValidationError 内置了处理器，
    需要显式覆盖才能统一响应格式。
    """
    app.add_exception_handler(BaseError, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


__all__ = [
    "BaseErrorHandler",
    "ErrorHandler",
    "HTTPExceptionHandler",
    "ValidationErrorHandler",
    "build_handler_chain",
    "error_body",
    "global_exception_handler",
    "register_exception_handlers",
]
