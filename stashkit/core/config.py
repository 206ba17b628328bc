"""配置定义。

使用 pydantic-settings 进行分层配置管理。
每个配置段独立读取带前缀的环境变量；Settings 在进程启动时构建一次，
之后作为不可变值显式传入各组件。
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import MIB, StorageMode


class UploadSettings(BaseSettings):
    """分片上传配置。

    环境变量前缀: UPLOAD_
    示例: UPLOAD_CHUNK_SIZE, UPLOAD_MAX_FILE_SIZE, UPLOAD_DEFAULT_STORAGE_MODE
    """

    chunk_size: int = Field(default=5 * MIB, gt=0, description="分片大小（字节）")
    max_file_size: int = Field(default=100 * MIB, gt=0, description="最大文件大小（字节）")
    session_ttl: int = Field(default=3600, gt=0, description="会话过期时间（秒）")
    default_storage_mode: StorageMode = Field(
        default=StorageMode.TELEGRAM,
        description="未知存储标签回落的主存储后端",
    )
    cas_retries: int = Field(default=5, ge=1, description="会话并发更新重试次数")

    model_config = SettingsConfigDict(env_prefix="UPLOAD_", case_sensitive=False, frozen=True)


class GuestSettings(BaseSettings):
    """访客上传配置。

    环境变量前缀: GUEST_
    示例: GUEST_UPLOAD=true, GUEST_MAX_FILE_SIZE, GUEST_DAILY_LIMIT
    """

    enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices("GUEST_UPLOAD", "GUEST_ENABLED"),
        description="是否启用访客上传",
    )
    max_file_size: int = Field(default=5 * MIB, gt=0, description="访客单文件大小上限（字节）")
    daily_limit: int = Field(default=10, ge=0, description="访客每 IP 每日上传次数")
    counter_ttl: int = Field(default=86400, gt=0, description="计数器过期时间（秒）")

    model_config = SettingsConfigDict(
        env_prefix="GUEST_",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
    )


class KVSettings(BaseSettings):
    """KV 存储配置。

    环境变量前缀: KV_
    示例: KV_BACKEND=redis, KV_URL=redis://localhost:6379/0
    """

    backend: str = Field(default="memory", description="KV 后端类型（memory/redis）")
    url: str | None = Field(default=None, description="Redis 连接 URL")
    socket_timeout: float = Field(default=5.0, description="套接字超时（秒）")

    model_config = SettingsConfigDict(env_prefix="KV_", case_sensitive=False, frozen=True)


class HttpSettings(BaseSettings):
    """存储后端 HTTP 传输配置。

    环境变量前缀: HTTP_
    """

    timeout: float = Field(default=30.0, gt=0, description="单次请求超时（秒）")
    max_retries: int = Field(default=2, ge=0, description="幂等请求最大重试次数")
    retry_delay: float = Field(default=0.5, ge=0, description="首次重试等待（秒）")

    model_config = SettingsConfigDict(env_prefix="HTTP_", case_sensitive=False, frozen=True)


class S3Settings(BaseSettings):
    """S3 兼容存储配置。

    环境变量前缀: S3_
    示例: S3_ENDPOINT, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_BUCKET, S3_REGION
    """

    endpoint: str | None = Field(default=None, description="端点URL")
    access_key_id: str | None = Field(default=None, description="访问密钥ID")
    secret_access_key: SecretStr | None = Field(default=None, description="访问密钥")
    bucket: str | None = Field(default=None, description="桶名")
    region: str = Field(default="us-east-1", description="区域")

    model_config = SettingsConfigDict(env_prefix="S3_", case_sensitive=False, frozen=True)

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.access_key_id and self.secret_access_key and self.bucket)


class R2Settings(S3Settings):
    """Cloudflare R2 配置（S3 协议）。

    环境变量前缀: R2_
    """

    region: str = Field(default="auto", description="区域")

    model_config = SettingsConfigDict(env_prefix="R2_", case_sensitive=False, frozen=True)


class DiscordSettings(BaseSettings):
    """Discord 存储配置。

    环境变量前缀: DISCORD_
    Webhook 与 Bot 二选一，Webhook 优先。
    """

    webhook_url: SecretStr | None = Field(default=None, description="Webhook URL")
    bot_token: SecretStr | None = Field(default=None, description="Bot Token")
    channel_id: str | None = Field(default=None, description="Bot 上传使用的频道ID")
    api_base: str = Field(default="https://discord.com/api/v10", description="API 地址")

    model_config = SettingsConfigDict(env_prefix="DISCORD_", case_sensitive=False, frozen=True)

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url or (self.bot_token and self.channel_id))


class HuggingFaceSettings(BaseSettings):
    """HuggingFace 数据集存储配置。

    环境变量前缀: HF_
    示例: HF_TOKEN, HF_REPO
    """

    token: SecretStr | None = Field(default=None, description="访问令牌")
    repo: str | None = Field(default=None, description="数据集仓库，如 user/images")
    branch: str = Field(default="main", description="提交分支")
    endpoint: str = Field(default="https://huggingface.co", description="Hub 地址")

    model_config = SettingsConfigDict(env_prefix="HF_", case_sensitive=False, frozen=True)

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.repo)


class LogSettings(BaseSettings):
    """日志配置。

    环境变量前缀: LOG_
    """

    level: str = Field(default="INFO", description="日志级别")
    file: str | None = Field(default=None, description="日志文件路径")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False, frozen=True)


class AuthSettings(BaseSettings):
    """认证配置。

    环境变量前缀: AUTH_
    """

    required: bool = Field(default=False, description="是否要求管理员认证")

    model_config = SettingsConfigDict(env_prefix="AUTH_", case_sensitive=False, frozen=True)


class Settings(BaseModel):
    """应用配置聚合（不可变）。"""

    upload: UploadSettings = Field(default_factory=UploadSettings)
    guest: GuestSettings = Field(default_factory=GuestSettings)
    kv: KVSettings = Field(default_factory=KVSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    s3: S3Settings = Field(default_factory=S3Settings)
    r2: R2Settings = Field(default_factory=R2Settings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    huggingface: HuggingFaceSettings = Field(default_factory=HuggingFaceSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)

    model_config = ConfigDict(frozen=True)


def load_settings() -> Settings:
    """从环境变量构建配置（进程启动时调用一次）。"""
    return Settings()


__all__ = [
    "AuthSettings",
    "DiscordSettings",
    "GuestSettings",
    "HttpSettings",
    "HuggingFaceSettings",
    "KVSettings",
    "LogSettings",
    "R2Settings",
    "S3Settings",
    "Settings",
    "UploadSettings",
    "load_settings",
]
