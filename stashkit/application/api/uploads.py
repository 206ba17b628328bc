"""分片上传 API。

POST   /api/chunked-upload/init                     初始化上传
GET    /api/chunked-upload/init?uploadId=xxx        查询上传状态（断点续传）
PUT    /api/chunked-upload/{uploadId}/chunks/{index} 上传分片（原始字节）
POST   /api/chunked-upload/{uploadId}/complete      完成上传（重试最终写入）
DELETE /api/chunked-upload/{uploadId}               取消上传
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from stashkit.common.logging import logger
from stashkit.core.exceptions import ValidationError
from stashkit.domain.guest import get_client_ip
from stashkit.domain.uploads import ChunkUploadOrchestrator
from stashkit.infrastructure.storage import PutResult

from .dependencies import UploadServices, get_orchestrator, get_services, require_uploader

router = APIRouter(prefix="/api/chunked-upload", tags=["chunked-upload"])


class InitUploadRequest(BaseModel):
    """初始化请求体，必填项由编排器统一校验。"""

    file_name: str | None = None
    file_size: int | None = None
    file_type: str | None = None
    total_chunks: int | None = None
    storage_mode: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _put_result_body(result: PutResult) -> dict[str, Any]:
    return {
        "locator": result.locator.model_dump(by_alias=True),
        "etag": result.etag,
        "size": result.size,
    }


@router.post("/init")
async def init_upload(
    body: InitUploadRequest,
    request: Request,
    admin: bool = Depends(require_uploader),
    services: UploadServices = Depends(get_services),
) -> dict[str, Any]:
    """初始化分片上传。"""
    result = await services.orchestrator.init(
        body.file_name,
        body.file_size,
        body.file_type,
        body.total_chunks,
        body.storage_mode,
    )

    if not admin:
        outcome = await services.guard.increment_guest_count(get_client_ip(request.headers))
        if not outcome.recorded:
            logger.warning(f"访客计数未记录: {outcome.error}")

    return {"success": True, "uploadId": result.upload_id, "chunkSize": result.chunk_size}


@router.get("/init")
async def get_upload_status(
    upload_id: str | None = Query(default=None, alias="uploadId"),
    orchestrator: ChunkUploadOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """查询上传状态（用于断点续传）。"""
    if not upload_id:
        raise ValidationError("缺少 uploadId")

    session = await orchestrator.get_status(upload_id)
    return {"success": True, **session.to_public_dict()}


@router.put("/{upload_id}/chunks/{index}")
async def upload_chunk(
    upload_id: str,
    index: int,
    request: Request,
    orchestrator: ChunkUploadOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """上传单个分片，集齐后自动写入存储后端。"""
    data = await request.body()
    result = await orchestrator.accept_chunk(upload_id, index, data)

    body: dict[str, Any] = {
        "success": True,
        "uploadedChunks": result.session.uploaded_chunks,
        "totalChunks": result.session.total_chunks,
        "duplicate": result.duplicate,
        "completed": result.completed,
    }
    if result.locator is not None:
        body["locator"] = result.locator.model_dump(by_alias=True)
    if result.failure is not None:
        body["dispatchError"] = {"kind": result.failure.kind.value, "message": result.failure.message}
    return body


@router.post("/{upload_id}/complete")
async def complete_upload(
    upload_id: str,
    orchestrator: ChunkUploadOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """完成上传。"""
    result = await orchestrator.complete(upload_id)
    return {"success": True, **_put_result_body(result)}


@router.delete("/{upload_id}")
async def abort_upload(
    upload_id: str,
    orchestrator: ChunkUploadOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """取消上传。"""
    session = await orchestrator.abort(upload_id)
    return {"success": True, "status": session.status.value}


__all__ = [
    "InitUploadRequest",
    "router",
]
