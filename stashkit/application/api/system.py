"""存储状态与访客配置 API。"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends

from stashkit.core.constants import StorageMode
from stashkit.domain.guest import GuestQuotaGuard
from stashkit.infrastructure.storage import IStorage

from .dependencies import UploadServices, get_guard, get_services

router = APIRouter(prefix="/api", tags=["system"])


async def _backend_status(backend: IStorage | None) -> dict[str, Any]:
    if backend is None:
        return {"configured": False, "connected": False}
    status = await backend.check_connection()
    return {"configured": True, "connected": status.connected, **status.details}


@router.get("/storage/status")
async def storage_status(services: UploadServices = Depends(get_services)) -> dict[str, Any]:
    """各存储后端的连接状态。"""
    modes = list(StorageMode)
    reports = await asyncio.gather(*(_backend_status(services.backends.get(mode)) for mode in modes))
    return {
        "success": True,
        "default": services.settings.upload.default_storage_mode.value,
        "backends": {mode.value: report for mode, report in zip(modes, reports)},
    }


@router.get("/guest/config")
async def guest_config(guard: GuestQuotaGuard = Depends(get_guard)) -> dict[str, Any]:
    """访客上传配置（供前端展示）。"""
    return guard.guest_config()


__all__ = [
    "router",
]
