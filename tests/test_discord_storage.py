"""Discord 附件存储测试。"""

from __future__ import annotations

import aiohttp
import pytest

from stashkit.core.config import DiscordSettings
from stashkit.infrastructure.storage import DiscordLocator, DiscordStorage, FailureKind, StorageFailure

pytestmark = pytest.mark.asyncio

WEBHOOK = "https://discord.com/api/webhooks/123/token"
MESSAGE = {
    "id": "900",
    "channel_id": "700",
    "attachments": [
        {
            "id": "800",
            "filename": "a.png",
            "size": 3,
            "url": "https://cdn.discordapp.com/attachments/700/800/a.png?ex=1",
            "content_type": "image/png",
        }
    ],
}
LOCATOR = DiscordLocator(channel_id="700", message_id="900", attachment_id="800")


def _sent(client, position: int = 0):
    return client._send.await_args_list[position].args[0]


async def test_webhook_used_exclusively_when_both_configured(mock_http, make_response):
    client = mock_http(make_response(200, json_body=MESSAGE))
    storage = DiscordStorage(
        DiscordSettings(webhook_url=WEBHOOK, bot_token="bot-token", channel_id="700"),
        http_client=client,
    )

    result = await storage.put("uploads/1/a.png", b"png", "image/png")

    assert storage.upload_mode == "webhook"
    assert result.locator == LOCATOR
    assert result.size == 3

    request = _sent(client)
    assert request.url == WEBHOOK
    assert request.params == {"wait": "true"}
    assert "Authorization" not in request.headers
    assert isinstance(request.data, aiohttp.FormData)


async def test_webhook_failure_does_not_fall_back_to_bot(mock_http, make_response):
    client = mock_http(make_response(500, json_body={"message": "Internal"}), make_response(200, json_body=MESSAGE))
    storage = DiscordStorage(
        DiscordSettings(webhook_url=WEBHOOK, bot_token="bot-token", channel_id="700"),
        http_client=client,
    )

    result = await storage.put("a.png", b"png")

    assert isinstance(result, StorageFailure)
    assert result.status_code == 500
    assert "Internal" in result.message
    assert client._send.await_count == 1


async def test_bot_path_when_no_webhook(mock_http, make_response):
    client = mock_http(make_response(200, json_body=MESSAGE))
    storage = DiscordStorage(DiscordSettings(bot_token="bot-token", channel_id="700"), http_client=client)

    result = await storage.put("a.png", b"png")

    assert storage.upload_mode == "bot"
    assert result.locator.message_id == "900"
    request = _sent(client)
    assert request.url == "https://discord.com/api/v10/channels/700/messages"
    assert request.headers["Authorization"] == "Bot bot-token"


async def test_not_configured():
    storage = DiscordStorage(DiscordSettings())

    result = await storage.put("a.png", b"png")

    assert result.kind is FailureKind.NOT_CONFIGURED


async def test_message_without_attachments_is_invalid(mock_http, make_response):
    client = mock_http(make_response(200, json_body={"id": "1", "channel_id": "2", "attachments": []}))
    storage = DiscordStorage(DiscordSettings(webhook_url=WEBHOOK), http_client=client)

    result = await storage.put("a.png", b"png")

    assert result.kind is FailureKind.INVALID_RESPONSE


async def test_get_refreshes_url_then_downloads(mock_http, make_response):
    client = mock_http(
        make_response(200, json_body=MESSAGE),
        make_response(206, b"pn", headers={"Content-Range": "bytes 0-1/3"}),
    )
    storage = DiscordStorage(DiscordSettings(bot_token="bot-token", channel_id="700"), http_client=client)

    result = await storage.get(LOCATOR, range_header="bytes=0-1")

    assert result.content == b"pn"
    assert result.status_code == 206
    assert result.content_type == "image/png"
    assert _sent(client, 0).url == "https://discord.com/api/v10/channels/700/messages/900"
    cdn_request = _sent(client, 1)
    assert cdn_request.url.startswith("https://cdn.discordapp.com/")
    assert cdn_request.headers["Range"] == "bytes=0-1"


async def test_get_requires_bot_token(mock_http):
    storage = DiscordStorage(DiscordSettings(webhook_url=WEBHOOK), http_client=mock_http())

    result = await storage.get(LOCATOR)

    assert result.kind is FailureKind.NOT_CONFIGURED


async def test_deleted_message_is_none(mock_http, make_response):
    client = mock_http(make_response(404, json_body={"message": "Unknown Message"}))
    storage = DiscordStorage(DiscordSettings(bot_token="bot-token", channel_id="700"), http_client=client)

    assert await storage.stat(LOCATOR) is None


async def test_delete_without_bot_token_is_false(mock_http):
    storage = DiscordStorage(DiscordSettings(webhook_url=WEBHOOK), http_client=mock_http())
    assert await storage.delete(LOCATOR) is False


async def test_check_connection_reports_webhook(mock_http, make_response):
    client = mock_http(make_response(200, json_body={"name": "hook", "channel_id": "700"}))
    storage = DiscordStorage(DiscordSettings(webhook_url=WEBHOOK), http_client=client)

    status = await storage.check_connection()

    assert status.connected
    assert status.details == {"mode": "webhook", "name": "hook", "channel_id": "700"}


@pytest.mark.parametrize(
    "body",
    [
        {"id": "9", "attachments": [{"id": "8"}]},
        {"id": "9", "channel_id": "7", "attachments": [{"filename": "a.png"}]},
        {"id": "9", "channel_id": "7", "attachments": ["8"]},
        [MESSAGE],
    ],
    ids=["missing-channel", "attachment-without-id", "attachment-not-object", "list-body"],
)
async def test_malformed_upload_response_is_invalid(mock_http, make_response, body):
    client = mock_http(make_response(200, json_body=body))
    storage = DiscordStorage(DiscordSettings(webhook_url=WEBHOOK), http_client=client)

    result = await storage.put("a.png", b"png")

    assert isinstance(result, StorageFailure)
    assert result.kind is FailureKind.INVALID_RESPONSE


@pytest.mark.parametrize("body", [[1, 2], {"id": "900"}, {"attachments": "800"}])
async def test_malformed_message_lookup_is_invalid(mock_http, make_response, body):
    client = mock_http(make_response(200, json_body=body))
    storage = DiscordStorage(DiscordSettings(bot_token="bot-token", channel_id="700"), http_client=client)

    result = await storage.stat(LOCATOR)

    assert isinstance(result, StorageFailure)
    assert result.kind is FailureKind.INVALID_RESPONSE


async def test_stale_attachment_id_is_none(mock_http, make_response):
    client = mock_http(make_response(200, json_body=MESSAGE))
    storage = DiscordStorage(DiscordSettings(bot_token="bot-token", channel_id="700"), http_client=client)
    stale = DiscordLocator(channel_id="700", message_id="900", attachment_id="801")

    assert await storage.get(stale) is None
    assert client._send.await_count == 1


async def test_check_connection_with_malformed_body(mock_http, make_response):
    client = mock_http(make_response(200, json_body=[1, 2]), make_response(200, b"not json"))
    storage = DiscordStorage(
        DiscordSettings(webhook_url=WEBHOOK, bot_token="bot-token", channel_id="700"),
        http_client=client,
    )

    status = await storage.check_connection()

    assert not status.connected
    assert client._send.await_count == 2
