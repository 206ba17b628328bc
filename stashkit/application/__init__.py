"""应用层：FastAPI 路由、错误处理与应用组装。"""

from .app import build_services, create_app

__all__ = [
    "build_services",
    "create_app",
]
