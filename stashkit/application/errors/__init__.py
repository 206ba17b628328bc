"""错误处理模块。"""

from .handlers import (
    BaseErrorHandler,
    ErrorHandler,
    HTTPExceptionHandler,
    ValidationErrorHandler,
    error_body,
    global_exception_handler,
    register_exception_handlers,
)

__all__ = [
    "BaseErrorHandler",
    "ErrorHandler",
    "HTTPExceptionHandler",
    "ValidationErrorHandler",
    "error_body",
    "global_exception_handler",
    "register_exception_handlers",
]
