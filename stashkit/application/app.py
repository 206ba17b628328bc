"""应用组装。

create_app 构建 FastAPI 应用：启动时创建 KV 存储与存储后端，组装服务并挂到 app.state。
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stashkit import __version__
from stashkit.common.logging import logger, setup_logging
from stashkit.core.config import Settings, load_settings
from stashkit.core.constants import StorageMode
from stashkit.domain.guest import GuestQuotaGuard
from stashkit.domain.uploads import ChunkUploadOrchestrator, UploadSessionStore
from stashkit.infrastructure.kv import IKeyValueStore, KVStoreFactory
from stashkit.infrastructure.storage import IStorage, StorageFactory

from .api import AuthChecker, UploadServices, system_router, uploads_router
from .errors import register_exception_handlers


def build_services(
    settings: Settings,
    kv: IKeyValueStore,
    backends: Mapping[StorageMode, IStorage],
    auth_checker: AuthChecker | None = None,
) -> UploadServices:
    """按配置组装服务。"""
    store = UploadSessionStore(kv, ttl=settings.upload.session_ttl)
    return UploadServices(
        settings=settings,
        orchestrator=ChunkUploadOrchestrator(settings.upload, store, backends),
        guard=GuestQuotaGuard(settings.guest, kv),
        backends=dict(backends),
        auth_checker=auth_checker,
    )


def create_app(
    settings: Settings | None = None,
    *,
    kv: IKeyValueStore | None = None,
    backends: Mapping[StorageMode, IStorage] | None = None,
    auth_checker: AuthChecker | None = None,
) -> FastAPI:
    """创建应用。

    Args:
        settings: 应用配置（默认从环境变量加载）
        kv: KV 存储（默认按 KV_ 配置创建）
        backends: 存储后端（默认按配置创建所有已配置的后端，可注入 Telegram 等外部实现）
        auth_checker: 管理员认证协作方

    Returns:
        FastAPI: 应用实例
    """
    if settings is None:
        settings = load_settings()

    setup_logging(log_level=settings.log.level, log_file=settings.log.file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理。"""
        logger.info("应用启动中...")
        owned_kv = kv is None
        owned_backends = backends is None

        store = await KVStoreFactory.create(settings.kv) if owned_kv else kv
        storages = StorageFactory.build_backends(settings) if owned_backends else dict(backends)
        app.state.services = build_services(settings, store, storages, auth_checker)
        logger.info("应用启动完成")

        yield

        logger.info("应用关闭中...")
        if owned_backends:
            for backend in storages.values():
                await backend.close()
        if owned_kv:
            await store.close()
        logger.info("应用关闭完成")

    app = FastAPI(title="StashKit", version=__version__, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(uploads_router)
    app.include_router(system_router)
    return app


__all__ = [
    "build_services",
    "create_app",
]
