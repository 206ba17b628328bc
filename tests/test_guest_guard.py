"""访客配额测试。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from stashkit.core.config import GuestSettings
from stashkit.core.exceptions import PayloadTooLargeError, RateLimitedError, StoreError, UnauthorizedError
from stashkit.domain.guest import GuestQuotaGuard, get_client_ip

pytestmark = pytest.mark.asyncio

MIB = 1024 * 1024


class Today:
    def __init__(self) -> None:
        self.value = datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.value


@pytest.fixture
def today() -> Today:
    return Today()


@pytest.fixture
def guard(kv, today) -> GuestQuotaGuard:
    settings = GuestSettings(enabled=True, max_file_size=5 * MIB, daily_limit=10)
    return GuestQuotaGuard(settings, kv, now=today)


async def test_daily_limit_then_next_day_and_other_ip(guard, today):
    for _ in range(10):
        outcome = await guard.increment_guest_count("1.2.3.4")
        assert outcome.accepted and outcome.recorded

    denied = await guard.check_guest_upload("1.2.3.4", 100)
    assert not denied.allowed
    assert denied.status_code == 429
    assert denied.remaining == 0

    other = await guard.check_guest_upload("5.6.7.8", 100)
    assert other.allowed
    assert other.remaining == 10

    today.value += timedelta(minutes=2)
    tomorrow = await guard.check_guest_upload("1.2.3.4", 100)
    assert tomorrow.allowed
    assert tomorrow.remaining == 10


async def test_remaining_counts_down(guard):
    await guard.increment_guest_count("1.2.3.4")
    await guard.increment_guest_count("1.2.3.4")

    decision = await guard.check_guest_upload("1.2.3.4", 0)

    assert decision.allowed
    assert decision.remaining == 8


async def test_counter_key_and_expiry(guard, kv, clock):
    await guard.increment_guest_count("1.2.3.4")

    assert await kv.get("guest:1.2.3.4:2024-03-01") == b"1"
    clock.advance(86400)
    assert await kv.get("guest:1.2.3.4:2024-03-01") is None


async def test_disabled_guest_uploads(kv, today):
    guard = GuestQuotaGuard(GuestSettings(enabled=False), kv, now=today)

    decision = await guard.check_guest_upload("1.2.3.4", 0)
    assert decision.status_code == 401
    with pytest.raises(UnauthorizedError):
        decision.raise_for_denial()

    outcome = await guard.increment_guest_count("1.2.3.4")
    assert outcome.accepted and not outcome.recorded

    assert guard.guest_config() == {"enabled": False, "maxFileSize": 0, "dailyLimit": 0}


async def test_file_too_large(guard):
    decision = await guard.check_guest_upload("1.2.3.4", 5 * MIB + 1)

    assert decision.status_code == 413
    assert "5MB" in decision.reason
    with pytest.raises(PayloadTooLargeError):
        decision.raise_for_denial()


async def test_rate_limited_error(guard):
    for _ in range(10):
        await guard.increment_guest_count("1.2.3.4")

    decision = await guard.check_guest_upload("1.2.3.4", 0)

    with pytest.raises(RateLimitedError) as exc_info:
        decision.raise_for_denial()
    assert exc_info.value.remaining == 0
    assert exc_info.value.status_code == 429


async def test_allowed_decision_does_not_raise(guard):
    decision = await guard.check_guest_upload("1.2.3.4", 0)
    decision.raise_for_denial()


async def test_store_failure_fails_open(guard, kv):
    kv.get = AsyncMock(side_effect=StoreError("down"))

    decision = await guard.check_guest_upload("1.2.3.4", 0)
    assert decision.allowed
    assert decision.remaining is None

    outcome = await guard.increment_guest_count("1.2.3.4")
    assert outcome.accepted
    assert not outcome.recorded
    assert outcome.error == "down"


async def test_guest_config(guard):
    assert guard.guest_config() == {"enabled": True, "maxFileSize": 5 * MIB, "dailyLimit": 10}


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"CF-Connecting-IP": "1.1.1.1", "X-Forwarded-For": "2.2.2.2"}, "1.1.1.1"),
        ({"X-Forwarded-For": "2.2.2.2, 10.0.0.1", "X-Real-IP": "3.3.3.3"}, "2.2.2.2"),
        ({"X-Real-IP": "3.3.3.3"}, "3.3.3.3"),
        ({}, "0.0.0.0"),
    ],
)
async def test_get_client_ip(headers, expected):
    assert get_client_ip(headers) == expected
