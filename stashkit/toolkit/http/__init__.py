"""HTTP客户端 - 存储后端统一传输层。

特性：
- 连接池管理
- 自动重试机制（使用tenacity，仅限幂等方法）
- 请求拦截器（每次尝试都会重新执行，用于请求签名）
- 超时控制
- 错误处理
- 请求日志（敏感头脱敏）

基于 aiohttp 实现，全异步无阻塞。
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stashkit.common.logging import logger, mask_url

_SENSITIVE_HEADERS = frozenset({"authorization", "x-amz-security-token", "cookie"})


class RetryConfig(BaseModel):
    """重试配置（Pydantic）。"""

    max_retries: int = 2
    retry_delay: float = 0.5
    backoff_factor: float = 2.0
    retry_on_status: list[int] = [500, 502, 503, 504]
    retry_methods: frozenset[str] = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})


@dataclass
class HttpRequest:
    """请求对象（用于拦截器）。"""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    json_data: Any = None
    data: Any = None


@dataclass
class HttpResponse:
    """响应对象（用于拦截器和返回）。"""

    status_code: int
    url: str
    headers: dict[str, str]
    content: bytes
    elapsed_seconds: float = 0.0

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """解析 JSON 响应。"""
        return jsonlib.loads(self.content)

    def header(self, name: str, default: str | None = None) -> str | None:
        """大小写不敏感地读取响应头。"""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def is_success(self) -> bool:
        """是否成功响应。"""
        return 200 <= self.status_code < 300


class HttpError(Exception):
    """HTTP 错误基类。"""
    pass


class HttpStatusError(HttpError):
    """HTTP 状态码错误。"""

    def __init__(self, message: str, status_code: int, response: HttpResponse) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class HttpTimeoutError(HttpError):
    """HTTP 超时错误。"""
    pass


class HttpNetworkError(HttpError):
    """HTTP 网络错误。"""
    pass


class RequestInterceptor(ABC):
    """请求拦截器接口。"""

    @abstractmethod
    async def before_request(self, request: HttpRequest) -> HttpRequest:
        """请求前处理（每次尝试前调用）。"""
        pass

    async def after_response(self, response: HttpResponse) -> HttpResponse:
        """响应后处理。"""
        return response


class LoggingInterceptor(RequestInterceptor):
    """日志拦截器。"""

    async def before_request(self, request: HttpRequest) -> HttpRequest:
        """记录请求日志。"""
        headers = {
            key: "***" if key.lower() in _SENSITIVE_HEADERS else value
            for key, value in request.headers.items()
        }
        logger.debug(f"HTTP请求: {request.method} {mask_url(request.url)} | Headers: {headers}")
        return request

    async def after_response(self, response: HttpResponse) -> HttpResponse:
        """记录响应日志。"""
        logger.debug(
            f"HTTP响应: {response.status_code} {mask_url(response.url)} | "
            f"耗时: {response.elapsed_seconds:.3f}s"
        )
        return response


class HttpClient:
    """HTTP客户端（基于 aiohttp）。

    与通用客户端的区别：
    - 默认不因 4xx 抛出异常，存储后端需要根据状态码区分"不存在"与"失败"
    - 拦截器在每次重试前重新执行，签名类拦截器可以使用新的时间戳
    - POST 等非幂等方法不重试

    使用示例:
        client = HttpClient(timeout=10, retry_config=RetryConfig(max_retries=2))
        client.add_interceptor(LoggingInterceptor())
        response = await client.get("https://example.com/object")
        if response.status_code == 404:
            ...
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """初始化HTTP客户端。

        Args:
            timeout: 单次请求超时时间（秒）
            retry_config: 重试配置
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._retry_config = retry_config or RetryConfig()
        self._interceptors: list[RequestInterceptor] = []

        # aiohttp 会话（延迟创建，需要运行中的事件循环）
        self._session: aiohttp.ClientSession | None = None

        logger.debug(f"HTTP客户端初始化: timeout={timeout}")

    def add_interceptor(self, interceptor: RequestInterceptor) -> None:
        """添加拦截器。"""
        self._interceptors.append(interceptor)
        logger.debug(f"添加拦截器: {interceptor.__class__.__name__}")

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """确保会话已创建。"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _send(self, request: HttpRequest) -> HttpResponse:
        """执行单次请求。"""
        session = await self._ensure_session()
        start_time = time.perf_counter()
        try:
            async with session.request(
                method=request.method,
                url=request.url,
                headers=request.headers or None,
                params=request.params,
                json=request.json_data,
                data=request.data,
            ) as resp:
                content = await resp.read()
                return HttpResponse(
                    status_code=resp.status,
                    url=str(resp.url),
                    headers=dict(resp.headers),
                    content=content,
                    elapsed_seconds=time.perf_counter() - start_time,
                )
        except asyncio.TimeoutError as exc:
            raise HttpTimeoutError(f"请求超时: {mask_url(request.url)}") from exc
        except aiohttp.ClientError as exc:
            raise HttpNetworkError(f"网络错误: {exc}") from exc

    async def _attempt(self, template: HttpRequest, retryable: bool) -> HttpResponse:
        """执行一次尝试：复制请求、应用拦截器、发送。"""
        request = HttpRequest(
            method=template.method,
            url=template.url,
            headers=dict(template.headers),
            params=template.params,
            json_data=template.json_data,
            data=template.data,
        )
        for interceptor in self._interceptors:
            request = await interceptor.before_request(request)

        response = await self._send(request)

        if retryable and response.status_code in self._retry_config.retry_on_status:
            logger.warning(f"请求失败，状态码: {response.status_code}, 将重试")
            raise HttpStatusError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                response=response,
            )
        return response

    def _retrying(self, retryable: bool) -> AsyncRetrying:
        """动态构建重试控制器。"""
        config = self._retry_config
        attempts = config.max_retries + 1 if retryable else 1
        return AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=config.retry_delay,
                min=config.retry_delay,
                max=config.retry_delay * (config.backoff_factor ** config.max_retries),
            ),
            retry=retry_if_exception_type((HttpStatusError, HttpNetworkError, HttpTimeoutError)),
            reraise=True,
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
    ) -> HttpResponse:
        """发送HTTP请求。

        Args:
            method: HTTP方法
            url: 请求URL
            headers: 请求头
            params: 查询参数
            json: JSON数据
            data: 请求体（bytes / str / aiohttp.FormData）

        Returns:
            HttpResponse: 响应对象。重试耗尽后仍为可重试状态码时，返回最后一次响应

        Raises:
            HttpTimeoutError: 超时（重试耗尽）
            HttpNetworkError: 网络错误（重试耗尽）
        """
        method = method.upper()
        template = HttpRequest(
            method=method,
            url=url,
            headers=headers or {},
            params=params,
            json_data=json,
            data=data,
        )
        retryable = method in self._retry_config.retry_methods

        try:
            async for attempt in self._retrying(retryable):
                with attempt:
                    response = await self._attempt(template, retryable)
        except HttpStatusError as exc:
            response = exc.response
        except HttpError as exc:
            logger.error(f"HTTP请求失败: {method} {mask_url(url)} | 错误: {exc}")
            raise

        for interceptor in self._interceptors:
            response = await interceptor.after_response(response)

        return response

    async def get(self, url: str, **kwargs: Any) -> HttpResponse:
        """GET请求。"""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> HttpResponse:
        """POST请求。"""
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> HttpResponse:
        """PUT请求。"""
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> HttpResponse:
        """DELETE请求。"""
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> HttpResponse:
        """HEAD请求。"""
        return await self.request("HEAD", url, **kwargs)

    async def close(self) -> None:
        """关闭客户端。"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.debug("HTTP客户端已关闭")

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<HttpClient timeout={self._timeout.total}>"


__all__ = [
    "HttpClient",
    "HttpError",
    "HttpNetworkError",
    "HttpRequest",
    "HttpResponse",
    "HttpStatusError",
    "HttpTimeoutError",
    "LoggingInterceptor",
    "RequestInterceptor",
    "RetryConfig",
]
