"""Discord 消息附件存储。

支持 Webhook 和 Bot 两种上传方式：
- 按固定优先级选择（Webhook 优先），二者互斥，Webhook 失败不会改用 Bot
- 附件 URL 约 24 小时过期，下载时通过消息 API 重新获取
- 下载、元信息、删除需要 Bot Token
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp

from stashkit.common.logging import logger
from stashkit.core.config import DiscordSettings
from stashkit.core.constants import StorageMode
from stashkit.toolkit.http import HttpClient, HttpError, HttpResponse, RetryConfig

from .base import (
    ConnectionStatus,
    DiscordLocator,
    IStorage,
    ObjectStat,
    PutResult,
    StorageFailure,
    StoredObject,
)
from .transport import (
    failure_from_exception,
    failure_from_response,
    invalid_response,
    json_object,
    not_configured,
)


class DiscordStorage(IStorage):
    """Discord 附件存储。"""

    mode = StorageMode.DISCORD

    def __init__(self, settings: DiscordSettings, *, http_client: HttpClient | None = None) -> None:
        """初始化 Discord 存储。

        Args:
            settings: Discord 配置
            http_client: HTTP 客户端
        """
        self._settings = settings
        self._api_base = settings.api_base.rstrip("/")
        self._http = http_client or HttpClient(retry_config=RetryConfig())
        logger.info(f"Discord 存储初始化: mode={self.upload_mode or '未配置'}")

    @property
    def upload_mode(self) -> str | None:
        """当前生效的上传方式（webhook/bot），未配置返回 None。"""
        if self._settings.webhook_url:
            return "webhook"
        if self._settings.bot_token and self._settings.channel_id:
            return "bot"
        return None

    def _bot_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self._settings.bot_token.get_secret_value()}"}

    def _message_url(self, channel_id: str, message_id: str) -> str:
        return f"{self._api_base}/channels/{channel_id}/messages/{message_id}"

    @staticmethod
    def _build_form(data: bytes, filename: str, content_type: str | None) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field(
            "files[0]",
            data,
            filename=filename,
            content_type=content_type or "application/octet-stream",
        )
        form.add_field(
            "payload_json",
            json.dumps({"content": "", "attachments": [{"id": 0, "filename": filename}]}),
            content_type="application/json",
        )
        return form

    @staticmethod
    def _parse_message(response: HttpResponse, size: int) -> PutResult | StorageFailure:
        message = json_object(response)
        if message is None:
            return invalid_response("Discord 返回了无法解析的消息", response.status_code)

        attachments = message.get("attachments") or []
        if not attachments:
            return invalid_response("未获取到附件信息", response.status_code)

        try:
            attachment = attachments[0]
            locator = DiscordLocator(
                channel_id=str(message["channel_id"]),
                message_id=str(message["id"]),
                attachment_id=str(attachment["id"]),
            )
            size = int(attachment.get("size", size))
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            return invalid_response(f"Discord 消息缺少字段: {exc}", response.status_code)

        return PutResult(locator=locator, etag=None, size=size)

    async def put(
        self,
        locator_hint: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutResult | StorageFailure:
        """上传附件。

        locator_hint 的最后一段作为附件文件名（metadata 中的 filename 优先）。
        """
        filename = (metadata or {}).get("filename") or locator_hint.rsplit("/", 1)[-1] or "file"
        mode = self.upload_mode
        if mode is None:
            return not_configured("Discord 未配置 Webhook URL 或 Bot Token")

        form = self._build_form(data, filename, content_type)
        try:
            if mode == "webhook":
                response = await self._http.post(
                    self._settings.webhook_url.get_secret_value(),
                    params={"wait": "true"},  # 确保返回完整消息对象
                    data=form,
                )
            else:
                response = await self._http.post(
                    f"{self._api_base}/channels/{self._settings.channel_id}/messages",
                    headers=self._bot_headers(),
                    data=form,
                )
        except HttpError as exc:
            logger.warning(f"Discord 上传失败 ({mode}): {exc}")
            return failure_from_exception(exc)

        if not response.is_success:
            logger.warning(f"Discord 上传失败 ({mode}): HTTP {response.status_code}")
            return failure_from_response(response, f"Discord {mode} upload failed")

        return self._parse_message(response, len(data))

    async def _lookup_attachment(self, locator: DiscordLocator) -> dict[str, Any] | StorageFailure | None:
        """通过消息 API 获取附件的最新信息。"""
        if not self._settings.bot_token:
            return not_configured("需要 DISCORD_BOT_TOKEN 才能获取文件")

        try:
            response = await self._http.get(
                self._message_url(locator.channel_id, locator.message_id),
                headers=self._bot_headers(),
            )
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "Discord API error")

        message = json_object(response)
        attachments = message.get("attachments") if message is not None else None
        if not isinstance(attachments, list):
            return invalid_response("Discord 返回了无法解析的消息", response.status_code)

        for attachment in attachments:
            if isinstance(attachment, dict) and str(attachment.get("id")) == locator.attachment_id:
                return attachment
        return None

    async def resolve_url(self, locator: DiscordLocator) -> dict[str, Any] | StorageFailure | None:
        """获取附件的最新 URL 与元信息。"""
        attachment = await self._lookup_attachment(locator)
        if attachment is None or isinstance(attachment, StorageFailure):
            return attachment
        return {
            "url": attachment.get("url"),
            "filename": attachment.get("filename"),
            "size": attachment.get("size"),
            "content_type": attachment.get("content_type"),
        }

    async def get(
        self,
        locator: DiscordLocator,
        range_header: str | None = None,
    ) -> StoredObject | StorageFailure | None:
        """下载附件：先刷新 URL，再从 CDN 读取。"""
        resolved = await self.resolve_url(locator)
        if resolved is None or isinstance(resolved, StorageFailure):
            return resolved
        if not resolved["url"]:
            return invalid_response("附件缺少 URL")

        headers = {"Range": range_header} if range_header else {}
        try:
            response = await self._http.get(resolved["url"], headers=headers)
        except HttpError as exc:
            return failure_from_exception(exc)

        if response.status_code == 404:
            return None
        if not response.is_success:
            return failure_from_response(response, "Discord CDN error")

        return StoredObject(
            content=response.content,
            content_type=response.header("content-type") or resolved["content_type"],
            status_code=response.status_code,
            headers={
                name: value
                for name in ("content-length", "content-range", "accept-ranges")
                if (value := response.header(name)) is not None
            },
        )

    async def stat(self, locator: DiscordLocator) -> ObjectStat | StorageFailure | None:
        """获取附件元信息。"""
        resolved = await self.resolve_url(locator)
        if resolved is None or isinstance(resolved, StorageFailure):
            return resolved
        try:
            size = int(resolved["size"] or 0)
        except (TypeError, ValueError):
            return invalid_response(f"附件大小无效: {resolved['size']!r}")
        return ObjectStat(
            size=size,
            content_type=resolved["content_type"],
            etag=locator.attachment_id,
        )

    async def delete(self, locator: DiscordLocator) -> bool:
        """删除消息（及其附件），尽力而为。"""
        if not self._settings.bot_token:
            logger.warning("未配置 DISCORD_BOT_TOKEN，无法删除 Discord 消息")
            return False

        try:
            response = await self._http.delete(
                self._message_url(locator.channel_id, locator.message_id),
                headers=self._bot_headers(),
            )
        except HttpError as exc:
            logger.error(f"Discord 删除失败: {exc}")
            return False
        return response.is_success

    async def check_connection(self) -> ConnectionStatus:
        """检查连接状态（Webhook 信息或 Bot 身份）。"""
        if self._settings.webhook_url:
            try:
                response = await self._http.get(self._settings.webhook_url.get_secret_value())
                data = json_object(response) if response.is_success else None
                if data is not None:
                    return ConnectionStatus(
                        connected=True,
                        details={"mode": "webhook", "name": data.get("name"), "channel_id": data.get("channel_id")},
                    )
            except HttpError as exc:
                logger.warning(f"Discord Webhook 连接检查失败: {exc}")

        if self._settings.bot_token:
            try:
                response = await self._http.get(f"{self._api_base}/users/@me", headers=self._bot_headers())
                data = json_object(response) if response.is_success else None
                if data is not None:
                    return ConnectionStatus(
                        connected=True,
                        details={"mode": "bot", "name": data.get("username"), "channel_id": self._settings.channel_id},
                    )
            except HttpError as exc:
                logger.warning(f"Discord Bot 连接检查失败: {exc}")

        return ConnectionStatus(connected=False)

    async def close(self) -> None:
        await self._http.close()


__all__ = [
    "DiscordStorage",
]
