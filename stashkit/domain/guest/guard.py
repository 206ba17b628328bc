"""访客上传权限检查与每日配额。

计数键为 guest:{ip}:{YYYY-MM-DD}（UTC 日期），值为十进制字符串。
KV 故障时放行，避免配额存储不可用阻塞正常上传。
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from stashkit.common.logging import logger
from stashkit.core.config import GuestSettings
from stashkit.core.exceptions import (
    BaseError,
    PayloadTooLargeError,
    RateLimitedError,
    StoreError,
    UnauthorizedError,
)
from stashkit.infrastructure.kv import IKeyValueStore

GUEST_PREFIX = "guest:"
UNKNOWN_IP = "0.0.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_client_ip(headers: Mapping[str, str]) -> str:
    """按代理头优先级获取客户端 IP。

    CF-Connecting-IP > X-Forwarded-For（第一个）> X-Real-IP > 0.0.0.0
    """
    lowered = {name.lower(): value for name, value in headers.items()}
    if ip := lowered.get("cf-connecting-ip"):
        return ip.strip()
    if forwarded := lowered.get("x-forwarded-for"):
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if ip := lowered.get("x-real-ip"):
        return ip.strip()
    return UNKNOWN_IP


@dataclass(frozen=True)
class GuestDecision:
    """访客检查结果。

    Attributes:
        allowed: 是否放行
        status_code: 拒绝时的 HTTP 状态码
        reason: 拒绝原因
        remaining: 今日剩余次数（KV 故障放行时为 None）
    """

    allowed: bool
    status_code: int | None = None
    reason: str | None = None
    remaining: int | None = None

    def to_error(self) -> BaseError | None:
        """拒绝结果对应的业务异常，放行时返回 None。"""
        if self.allowed:
            return None
        if self.status_code == 401:
            return UnauthorizedError(self.reason)
        if self.status_code == 413:
            return PayloadTooLargeError(self.reason)
        return RateLimitedError(self.reason, remaining=self.remaining or 0)

    def raise_for_denial(self) -> None:
        error = self.to_error()
        if error is not None:
            raise error


@dataclass(frozen=True)
class QuotaIncrement:
    """计数结果。

    对调用方而言总是 accepted；recorded 为 False 时表示计数未写入，
    error 中带有原因（仅用于日志与诊断）。
    """

    accepted: bool = True
    recorded: bool = False
    error: str | None = None


class GuestQuotaGuard:
    """访客配额守卫。"""

    def __init__(
        self,
        settings: GuestSettings,
        kv: IKeyValueStore,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        """初始化守卫。

        Args:
            settings: 访客配置
            kv: 计数存储
            now: 返回当前 UTC 时间的函数
        """
        self._settings = settings
        self._kv = kv
        self._now = now

    def counter_key(self, client_ip: str) -> str:
        """当日计数键。"""
        today = self._now().astimezone(timezone.utc).strftime("%Y-%m-%d")
        return f"{GUEST_PREFIX}{client_ip}:{today}"

    async def _read_count(self, key: str) -> int:
        raw = await self._kv.get(key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"访客计数值无效，按 0 处理: {key}")
            return 0

    async def check_guest_upload(self, client_ip: str, file_size: int) -> GuestDecision:
        """检查访客是否可以上传。

        Args:
            client_ip: 客户端 IP
            file_size: 文件大小（字节）

        Returns:
            GuestDecision: 检查结果
        """
        settings = self._settings
        if not settings.enabled:
            return GuestDecision(allowed=False, status_code=401, reason="未启用访客上传，请登录后操作")

        if file_size > settings.max_file_size:
            max_mb = settings.max_file_size // (1024 * 1024)
            return GuestDecision(
                allowed=False,
                status_code=413,
                reason=f"访客上传限制：文件大小不能超过 {max_mb}MB",
            )

        key = self.counter_key(client_ip)
        try:
            count = await self._read_count(key)
        except StoreError as exc:
            logger.error(f"访客配额检查失败，放行: {key}, {exc}")
            return GuestDecision(allowed=True)

        limit = settings.daily_limit
        if count >= limit:
            return GuestDecision(
                allowed=False,
                status_code=429,
                reason=f"访客每日上传上限 {limit} 次，今日已用完",
                remaining=0,
            )
        return GuestDecision(allowed=True, remaining=limit - count)

    async def increment_guest_count(self, client_ip: str) -> QuotaIncrement:
        """增加当日计数（尽力而为，不向调用方抛出）。"""
        if not self._settings.enabled:
            return QuotaIncrement(recorded=False, error="访客上传未启用")

        key = self.counter_key(client_ip)
        try:
            count = await self._read_count(key)
            await self._kv.put(key, str(count + 1), expire=self._settings.counter_ttl)
        except StoreError as exc:
            logger.error(f"访客计数写入失败: {key}, {exc}")
            return QuotaIncrement(recorded=False, error=exc.message)
        return QuotaIncrement(recorded=True)

    def guest_config(self) -> dict[str, int | bool]:
        """访客配置摘要（供前端展示）。"""
        enabled = self._settings.enabled
        return {
            "enabled": enabled,
            "maxFileSize": self._settings.max_file_size if enabled else 0,
            "dailyLimit": self._settings.daily_limit if enabled else 0,
        }


__all__ = [
    "GUEST_PREFIX",
    "GuestDecision",
    "GuestQuotaGuard",
    "QuotaIncrement",
    "get_client_ip",
    "utc_now",
]
