"""存储工厂测试。"""

from __future__ import annotations

from stashkit.core.config import (
    DiscordSettings,
    HuggingFaceSettings,
    R2Settings,
    S3Settings,
    Settings,
)
from stashkit.core.constants import StorageMode
from stashkit.infrastructure.storage import DiscordStorage, S3Storage, StorageFactory


def _settings(**overrides) -> Settings:
    values = {
        "s3": S3Settings(endpoint=None, access_key_id=None, secret_access_key=None, bucket=None),
        "r2": R2Settings(endpoint=None, access_key_id=None, secret_access_key=None, bucket=None),
        "discord": DiscordSettings(webhook_url=None, bot_token=None, channel_id=None),
        "huggingface": HuggingFaceSettings(token=None, repo=None),
    }
    values.update(overrides)
    return Settings(**values)


def test_no_backends_when_nothing_configured():
    assert StorageFactory.build_backends(_settings()) == {}


def test_only_configured_backends_are_built():
    settings = _settings(
        r2=R2Settings(
            endpoint="https://account.r2.cloudflarestorage.com",
            access_key_id="key",
            secret_access_key="secret",
            bucket="media",
        ),
        discord=DiscordSettings(webhook_url="https://discord.com/api/webhooks/1/t"),
    )

    backends = StorageFactory.build_backends(settings)

    assert set(backends) == {StorageMode.R2, StorageMode.DISCORD}
    assert isinstance(backends[StorageMode.R2], S3Storage)
    assert backends[StorageMode.R2].mode is StorageMode.R2
    assert backends[StorageMode.R2].region == "auto"
    assert isinstance(backends[StorageMode.DISCORD], DiscordStorage)


def test_telegram_has_no_builtin_backend():
    assert StorageMode.TELEGRAM not in StorageFactory.get_registered()
    assert StorageFactory.create(StorageMode.TELEGRAM, _settings()) is None


def test_storage_mode_normalize():
    assert StorageMode.normalize("S3", StorageMode.TELEGRAM) is StorageMode.S3
    assert StorageMode.normalize(" huggingface ", StorageMode.TELEGRAM) is StorageMode.HUGGINGFACE
    assert StorageMode.normalize("ftp", StorageMode.TELEGRAM) is StorageMode.TELEGRAM
    assert StorageMode.normalize(None, StorageMode.R2) is StorageMode.R2
