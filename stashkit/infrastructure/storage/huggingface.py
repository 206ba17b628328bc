"""HuggingFace 数据集存储。

上传与删除均为针对指定分支的单文件提交，请求体为 NDJSON：
- 第一行：提交头 {"key": "header", "value": {"summary": ...}}
- 第二行：文件 {"key": "file", ...}（base64）或删除标记 {"key": "deletedFile", ...}

下载直接按路径解析分支上的当前内容，无需查询提交。
"""

from __future__ import annotations

import base64
import json
from urllib.parse import quote

from stashkit.common.logging import logger
from stashkit.core.config import HuggingFaceSettings
from stashkit.core.constants import StorageMode
from stashkit.toolkit.http import HttpClient, HttpError, HttpResponse, RetryConfig

from .base import (
    ConnectionStatus,
    HuggingFaceLocator,
    IStorage,
    ObjectStat,
    PutResult,
    StorageFailure,
    StoredObject,
)
from .transport import failure_from_exception, failure_from_response, invalid_response, json_object, not_configured

NDJSON_CONTENT_TYPE = "application/x-ndjson"


def build_commit_body(summary: str, operation: dict) -> str:
    """构建单文件提交的 NDJSON 请求体。"""
    header = {"key": "header", "value": {"summary": summary}}
    return json.dumps(header) + "\n" + json.dumps(operation)


def file_operation(path: str, data: bytes) -> dict:
    return {
        "key": "file",
        "value": {
            "content": base64.b64encode(data).decode("ascii"),
            "path": path,
            "encoding": "base64",
        },
    }


def delete_operation(path: str) -> dict:
    return {"key": "deletedFile", "value": {"path": path}}


class HuggingFaceStorage(IStorage):
    """HuggingFace 数据集存储。"""

    mode = StorageMode.HUGGINGFACE

    def __init__(self, settings: HuggingFaceSettings, *, http_client: HttpClient | None = None) -> None:
        """初始化 HuggingFace 存储。

        Args:
            settings: HuggingFace 配置
            http_client: HTTP 客户端
        """
        self._settings = settings
        self._endpoint = settings.endpoint.rstrip("/")
        self._http = http_client or HttpClient(retry_config=RetryConfig())
        logger.info(f"HuggingFace 存储初始化: repo={settings.repo}, branch={settings.branch}")

    @property
    def repo(self) -> str | None:
        return self._settings.repo

    def _auth_headers(self) -> dict[str, str]:
        if not self._settings.token:
            return {}
        return {"Authorization": f"Bearer {self._settings.token.get_secret_value()}"}

    def _commit_url(self) -> str:
        branch = quote(self._settings.branch, safe="")
        return f"{self._endpoint}/api/datasets/{self._settings.repo}/commit/{branch}"

    def public_url(self, path: str) -> str:
        """文件的公开下载 URL（私有仓库仍需令牌）。"""
        branch = quote(self._settings.branch, safe="")
        return f"{self._endpoint}/datasets/{self._settings.repo}/resolve/{branch}/{quote(path.lstrip('/'))}"

    def _path(self, locator: HuggingFaceLocator | str) -> str:
        return locator if isinstance(locator, str) else locator.path

    async def _commit(self, body: str) -> HttpResponse:
        headers = {**self._auth_headers(), "Content-Type": NDJSON_CONTENT_TYPE}
        return await self._http.post(self._commit_url(), headers=headers, data=body)

    async def put(
        self,
        locator_hint: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult | StorageFailure:
        """以单文件提交上传到数据集仓库。"""
        if not self._settings.is_configured:
            return not_configured("HuggingFace 配置不完整")

        path = locator_hint.lstrip("/")
        filename = (metadata or {}).get("filename") or path.rsplit("/", 1)[-1]
        body = build_commit_body(f"Upload {filename}", file_operation(path, data))

        try:
            response = await self._commit(body)
        except HttpError as exc:
            return failure_from_exception(exc)

        if not response.is_success:
            logger.warning(f"HuggingFace 上传失败 ({response.status_code}): {path}")
            return failure_from_response(response, "HF upload failed")

        payload = json_object(response) or {}
        commit_oid = payload.get("commitOid")
        if not isinstance(commit_oid, str):
            commit_oid = None

        return PutResult(
            locator=HuggingFaceLocator(repo=self._settings.repo, path=path, commit_ref=commit_oid),
            etag=commit_oid,
            size=len(data),
        )

    async def get(
        self,
        locator: HuggingFaceLocator | str,
        range_header: str | None = None,
    ) -> StoredObject | StorageFailure | None:
        """按路径读取分支上的当前文件，支持 Range。"""
        if not self._settings.repo:
            return not_configured("HuggingFace 未配置仓库")

        headers = self._auth_headers()
        if range_header:
            headers["Range"] = range_header

        try:
            response = await self._http.get(self.public_url(self._path(locator)), headers=headers)
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "HF download failed")

        return StoredObject(
            content=response.content,
            content_type=response.header("content-type"),
            status_code=response.status_code,
            headers={
                name: value
                for name in ("content-length", "content-range", "etag", "accept-ranges")
                if (value := response.header(name)) is not None
            },
        )

    async def stat(self, locator: HuggingFaceLocator | str) -> ObjectStat | StorageFailure | None:
        """HEAD 解析 URL 获取元信息。"""
        if not self._settings.repo:
            return not_configured("HuggingFace 未配置仓库")

        try:
            response = await self._http.head(self.public_url(self._path(locator)), headers=self._auth_headers())
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "HF stat failed")

        size = response.header("x-linked-size") or response.header("content-length") or 0
        try:
            size = int(size)
        except ValueError:
            return invalid_response(f"HF 返回的文件大小无效: {size!r}", response.status_code)
        return ObjectStat(
            size=size,
            content_type=response.header("content-type"),
            etag=response.header("x-linked-etag") or response.header("etag"),
        )

    async def delete(self, locator: HuggingFaceLocator | str) -> bool:
        """以删除提交移除文件，尽力而为。"""
        if not self._settings.is_configured:
            return False

        path = self._path(locator).lstrip("/")
        body = build_commit_body(f"Delete {path}", delete_operation(path))
        try:
            response = await self._commit(body)
        except HttpError as exc:
            logger.error(f"HuggingFace 删除失败: {path}, {exc}")
            return False
        return response.is_success

    async def check_connection(self) -> ConnectionStatus:
        """检查仓库访问权限。"""
        if not self._settings.is_configured:
            return ConnectionStatus(connected=False)

        try:
            response = await self._http.get(
                f"{self._endpoint}/api/datasets/{self._settings.repo}",
                headers=self._auth_headers(),
            )
            data = json_object(response) if response.is_success else None
            if data is not None:
                return ConnectionStatus(
                    connected=True,
                    details={"repo_id": data.get("id"), "private": data.get("private")},
                )
        except HttpError as exc:
            logger.warning(f"HuggingFace 连接检查失败: {exc}")
        return ConnectionStatus(connected=False)

    async def close(self) -> None:
        await self._http.close()


__all__ = [
    "HuggingFaceStorage",
    "build_commit_body",
    "delete_operation",
    "file_operation",
]
