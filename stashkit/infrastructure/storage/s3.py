"""S3 兼容存储实现。

使用 path-style URL（endpoint/bucket/key）以兼容所有 S3 服务，
每个请求由 SigV4Interceptor 签名。
"""

from __future__ import annotations

from urllib.parse import quote

from stashkit.common.logging import logger
from stashkit.core.config import S3Settings
from stashkit.core.constants import StorageMode
from stashkit.toolkit.http import HttpClient, HttpError, RetryConfig

from .base import (
    ConnectionStatus,
    IStorage,
    ObjectStat,
    PutResult,
    S3Locator,
    StorageFailure,
    StoredObject,
)
from .signer import SigningCredentials, SigV4Interceptor, uri_encode
from .transport import failure_from_exception, failure_from_response


class S3Storage(IStorage):
    """S3 兼容存储。

    - 404 映射为 None
    - 其他非 2xx 状态返回带提供方消息的 StorageFailure
    """

    mode = StorageMode.S3

    def __init__(
        self,
        settings: S3Settings,
        *,
        http_client: HttpClient | None = None,
        mode: StorageMode = StorageMode.S3,
    ) -> None:
        """初始化 S3 存储。

        Args:
            settings: S3 配置（需已完整配置）
            http_client: 专用 HTTP 客户端（签名拦截器会被添加到该客户端）
            mode: 存储标签（S3 或 R2）
        """
        if not settings.is_configured:
            raise ValueError("S3 配置不完整，需要 ENDPOINT, ACCESS_KEY_ID, SECRET_ACCESS_KEY, BUCKET")

        self.mode = mode
        self.endpoint = settings.endpoint.rstrip("/")
        self.bucket = settings.bucket
        self.region = settings.region or "us-east-1"
        self._http = http_client or HttpClient(retry_config=RetryConfig())
        self._http.add_interceptor(
            SigV4Interceptor(
                SigningCredentials(
                    access_key_id=settings.access_key_id,
                    secret_access_key=settings.secret_access_key,
                    region=self.region,
                    service="s3",
                )
            )
        )
        logger.info(f"S3 存储初始化: mode={mode.value}, endpoint={self.endpoint}, bucket={self.bucket}")

    def object_url(self, key: str) -> str:
        """对象 URL（path-style）。"""
        return f"{self.endpoint}/{uri_encode(self.bucket)}/{uri_encode(key.lstrip('/'), encode_slash=False)}"

    def _key(self, locator: S3Locator | str) -> str:
        return locator if isinstance(locator, str) else locator.key

    async def put(
        self,
        locator_hint: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult | StorageFailure:
        """上传对象（PutObject）。"""
        headers: dict[str, str] = {"content-length": str(len(data))}
        if content_type:
            headers["content-type"] = content_type
        for name, value in (metadata or {}).items():
            header = name if name.lower().startswith("x-amz-meta-") else f"x-amz-meta-{name}"
            value = str(value)
            # 请求头只允许 ASCII
            headers[header.lower()] = value if value.isascii() else quote(value)

        try:
            response = await self._http.put(self.object_url(locator_hint), headers=headers, data=data)
        except HttpError as exc:
            return failure_from_exception(exc)

        if not response.is_success:
            logger.warning(f"S3 PutObject 失败 ({response.status_code}): {locator_hint}")
            return failure_from_response(response, "S3 PutObject failed")

        return PutResult(
            locator=S3Locator(bucket=self.bucket, key=locator_hint),
            etag=response.header("etag"),
            size=len(data),
        )

    async def get(
        self,
        locator: S3Locator | str,
        range_header: str | None = None,
    ) -> StoredObject | StorageFailure | None:
        """下载对象（GetObject），支持 Range。"""
        headers = {"range": range_header} if range_header else {}
        try:
            response = await self._http.get(self.object_url(self._key(locator)), headers=headers)
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "S3 GetObject failed")

        passthrough = {
            name: value
            for name in ("content-length", "content-range", "etag", "last-modified", "accept-ranges")
            if (value := response.header(name)) is not None
        }
        return StoredObject(
            content=response.content,
            content_type=response.header("content-type"),
            status_code=response.status_code,
            headers=passthrough,
        )

    async def delete(self, locator: S3Locator | str) -> bool:
        """删除对象（DeleteObject）。"""
        key = self._key(locator)
        try:
            response = await self._http.delete(self.object_url(key))
        except HttpError as exc:
            logger.error(f"S3 DeleteObject 失败: {key}, {exc}")
            return False

        if not response.is_success:
            logger.warning(f"S3 DeleteObject 失败 ({response.status_code}): {key}")
            return False
        return True

    async def stat(self, locator: S3Locator | str) -> ObjectStat | StorageFailure | None:
        """获取对象头信息（HeadObject）。"""
        try:
            response = await self._http.head(self.object_url(self._key(locator)))
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "S3 HeadObject failed")

        return ObjectStat(
            size=int(response.header("content-length") or 0),
            content_type=response.header("content-type"),
            etag=response.header("etag"),
            last_modified=response.header("last-modified"),
        )

    async def check_connection(self) -> ConnectionStatus:
        """检查连接（列出 bucket 的一个对象）。"""
        url = f"{self.endpoint}/{uri_encode(self.bucket)}?list-type=2&max-keys=1"
        details = {"endpoint": self.endpoint, "bucket": self.bucket}
        try:
            response = await self._http.get(url)
        except HttpError as exc:
            logger.warning(f"S3 连接检查失败: {exc}")
            return ConnectionStatus(connected=False, details={**details, "error": str(exc)})

        if not response.is_success:
            details["status_code"] = response.status_code
        return ConnectionStatus(connected=response.is_success, details=details)

    async def close(self) -> None:
        await self._http.close()


__all__ = [
    "S3Storage",
]
