"""工具包模块。

提供通用工具：
- http: 带重试与拦截器的异步 HTTP 客户端
"""

from .http import HttpClient, HttpResponse, RetryConfig

__all__ = [
    "HttpClient",
    "HttpResponse",
    "RetryConfig",
]
