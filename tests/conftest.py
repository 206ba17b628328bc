"""测试公共夹具。"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from stashkit.core.config import UploadSettings
from stashkit.core.constants import StorageMode
from stashkit.infrastructure.kv import MemoryKVStore
from stashkit.infrastructure.storage import (
    ConnectionStatus,
    IStorage,
    ObjectStat,
    PutResult,
    S3Locator,
    StorageFailure,
    StoredObject,
)
from stashkit.toolkit.http import HttpClient, HttpResponse, RetryConfig


class FakeClock:
    """可手动推进的时钟（Unix 秒）。"""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStorage(IStorage):
    """记录写入内容的内存后端，可预置失败结果。"""

    mode = StorageMode.S3

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: list[dict[str, Any]] = []
        self.failures: list[StorageFailure] = []

    async def put(self, locator_hint, data, content_type=None, metadata=None):
        self.calls.append({
            "locator_hint": locator_hint,
            "data": data,
            "content_type": content_type,
            "metadata": metadata,
        })
        if self.failures:
            return self.failures.pop(0)
        self.objects[locator_hint] = data
        return PutResult(locator=S3Locator(bucket="test", key=locator_hint), etag='"etag"', size=len(data))

    async def get(self, locator, range_header=None):
        data = self.objects.get(locator.key)
        return None if data is None else StoredObject(content=data)

    async def delete(self, locator):
        return self.objects.pop(locator.key, None) is not None

    async def stat(self, locator):
        data = self.objects.get(locator.key)
        return None if data is None else ObjectStat(size=len(data))

    async def check_connection(self):
        return ConnectionStatus(connected=True, details={"bucket": "test"})


def build_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: dict[str, str] | None = None,
    json_body: Any = None,
    url: str = "https://example.com/",
) -> HttpResponse:
    headers = dict(headers or {})
    if json_body is not None:
        content = json.dumps(json_body).encode("utf-8")
        headers.setdefault("Content-Type", "application/json")
    return HttpResponse(status_code=status_code, url=url, headers=headers, content=content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv(clock: FakeClock) -> MemoryKVStore:
    return MemoryKVStore(clock=clock)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def upload_settings() -> UploadSettings:
    return UploadSettings(
        chunk_size=4,
        max_file_size=64,
        session_ttl=3600,
        default_storage_mode=StorageMode.S3,
        cas_retries=5,
    )


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def mock_http():
    """创建 _send 被替换的 HttpClient，拦截器与重试逻辑照常执行。"""
    def factory(*responses: HttpResponse | Exception, max_retries: int = 2) -> HttpClient:
        client = HttpClient(retry_config=RetryConfig(max_retries=max_retries, retry_delay=0))
        client._send = AsyncMock(side_effect=list(responses))
        return client
    return factory
