"""访客上传模块。"""

from .guard import (
    GuestDecision,
    GuestQuotaGuard,
    QuotaIncrement,
    get_client_ip,
)

__all__ = [
    "GuestDecision",
    "GuestQuotaGuard",
    "QuotaIncrement",
    "get_client_ip",
]
