"""HTTP 接口模块。"""

from .dependencies import AuthChecker, UploadServices
from .system import router as system_router
from .uploads import router as uploads_router

__all__ = [
    "AuthChecker",
    "UploadServices",
    "system_router",
    "uploads_router",
]
