"""路由依赖。

服务在应用启动时组装并挂到 app.state.services，路由通过依赖函数获取。
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, Request

from stashkit.core.config import Settings
from stashkit.core.constants import StorageMode
from stashkit.core.exceptions import ForbiddenError
from stashkit.domain.guest import GuestQuotaGuard, get_client_ip
from stashkit.domain.uploads import ChunkUploadOrchestrator
from stashkit.infrastructure.storage import IStorage

# 认证协作方：request -> {"authenticated": bool}
AuthChecker = Callable[[Request], Awaitable[dict[str, Any]]]


@dataclass
class UploadServices:
    """请求处理所需的服务集合。"""

    settings: Settings
    orchestrator: ChunkUploadOrchestrator
    guard: GuestQuotaGuard
    backends: dict[StorageMode, IStorage] = field(default_factory=dict)
    auth_checker: AuthChecker | None = None


def get_services(request: Request) -> UploadServices:
    return request.app.state.services


def get_orchestrator(services: UploadServices = Depends(get_services)) -> ChunkUploadOrchestrator:
    return services.orchestrator


def get_guard(services: UploadServices = Depends(get_services)) -> GuestQuotaGuard:
    return services.guard


async def is_admin(request: Request, services: UploadServices) -> bool:
    """是否为管理员请求。

    未要求认证时所有请求视为管理员；要求认证但未配置认证协作方时视为访客。
    """
    if not services.settings.auth.required:
        return True
    if services.auth_checker is None:
        return False
    result = await services.auth_checker(request)
    return bool(result.get("authenticated"))


async def require_uploader(
    request: Request,
    services: UploadServices = Depends(get_services),
) -> bool:
    """分片上传准入：管理员直接放行，访客需通过访客检查。

    Returns:
        bool: 是否为管理员
    """
    if await is_admin(request, services):
        return True

    client_ip = get_client_ip(request.headers)
    decision = await services.guard.check_guest_upload(client_ip, 0)
    if not decision.allowed:
        raise ForbiddenError(
            "访客不支持分片上传，请使用普通上传",
            metadata={"reason": decision.reason},
        )
    return False


__all__ = [
    "AuthChecker",
    "UploadServices",
    "get_guard",
    "get_orchestrator",
    "get_services",
    "is_admin",
    "require_uploader",
]
