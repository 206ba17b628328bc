"""存储工厂 - 注册机制。

按 StorageMode 注册后端构建函数，根据配置只创建已完整配置的后端。
Telegram 的传输实现由外部协作方注入。
"""

from __future__ import annotations

from collections.abc import Callable

from stashkit.common.logging import logger
from stashkit.core.config import HttpSettings, Settings
from stashkit.core.constants import StorageMode
from stashkit.toolkit.http import HttpClient, LoggingInterceptor, RetryConfig

from .base import IStorage
from .discord import DiscordStorage
from .huggingface import HuggingFaceStorage
from .s3 import S3Storage

BackendBuilder = Callable[[Settings, HttpClient], IStorage | None]


def create_http_client(settings: HttpSettings) -> HttpClient:
    """按传输配置创建后端专用的 HTTP 客户端。"""
    client = HttpClient(
        timeout=settings.timeout,
        retry_config=RetryConfig(max_retries=settings.max_retries, retry_delay=settings.retry_delay),
    )
    client.add_interceptor(LoggingInterceptor())
    return client


class StorageFactory:
    """存储工厂。"""

    _builders: dict[StorageMode, BackendBuilder] = {}

    @classmethod
    def register(cls, mode: StorageMode, builder: BackendBuilder) -> None:
        """注册存储后端构建函数。

        构建函数在对应配置不完整时返回 None。
        """
        cls._builders[mode] = builder
        logger.debug(f"注册存储后端: {mode.value}")

    @classmethod
    def get_registered(cls) -> list[StorageMode]:
        return list(cls._builders)

    @classmethod
    def create(cls, mode: StorageMode, settings: Settings) -> IStorage | None:
        """创建单个存储实例，未注册或未配置返回 None。"""
        builder = cls._builders.get(mode)
        if builder is None:
            return None
        return builder(settings, create_http_client(settings.http))

    @classmethod
    def build_backends(cls, settings: Settings) -> dict[StorageMode, IStorage]:
        """创建所有已配置的存储后端。"""
        backends: dict[StorageMode, IStorage] = {}
        for mode in cls._builders:
            backend = cls.create(mode, settings)
            if backend is not None:
                backends[mode] = backend
        logger.info(f"已配置存储后端: {[mode.value for mode in backends]}")
        return backends


def _build_s3(settings: Settings, http_client: HttpClient) -> IStorage | None:
    if not settings.s3.is_configured:
        return None
    return S3Storage(settings.s3, http_client=http_client, mode=StorageMode.S3)


def _build_r2(settings: Settings, http_client: HttpClient) -> IStorage | None:
    if not settings.r2.is_configured:
        return None
    return S3Storage(settings.r2, http_client=http_client, mode=StorageMode.R2)


def _build_discord(settings: Settings, http_client: HttpClient) -> IStorage | None:
    if not settings.discord.is_configured:
        return None
    return DiscordStorage(settings.discord, http_client=http_client)


def _build_huggingface(settings: Settings, http_client: HttpClient) -> IStorage | None:
    if not settings.huggingface.is_configured:
        return None
    return HuggingFaceStorage(settings.huggingface, http_client=http_client)


StorageFactory.register(StorageMode.S3, _build_s3)
StorageFactory.register(StorageMode.R2, _build_r2)
StorageFactory.register(StorageMode.DISCORD, _build_discord)
StorageFactory.register(StorageMode.HUGGINGFACE, _build_huggingface)


__all__ = [
    "StorageFactory",
    "create_http_client",
]
