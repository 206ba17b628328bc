"""日志管理器 - 统一的日志配置和管理。

提供：
- 统一的日志配置
- 性能监控装饰器
- 日志混入类
- 敏感信息脱敏
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
import sys
import time
from typing import TypeVar
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

T = TypeVar("T")

# 移除默认配置，由setup_logging统一配置
logger.remove()

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(log_level: str = "INFO", log_file: str | None = None) -> None:
    """设置日志配置。

    控制台始终输出；指定 log_file 时追加按天滚动的文件输出。

    Args:
        log_level: 日志级别（默认：INFO）
        log_file: 日志文件路径（可选）
    """
    log_level = log_level.upper()
    logger.remove()

    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            rotation="00:00",
            retention="7 days",
            level=log_level,
            format=_FILE_FORMAT,
            encoding="utf-8",
            enqueue=True,  # 异步写入
        )

    logger.info(f"日志系统初始化完成，级别: {log_level}")


def mask_url(url: str) -> str:
    """URL 脱敏。

    隐藏 userinfo 中的密码，以及路径最后一段（Webhook token 所在位置）。

    Args:
        url: 原始 URL

    Returns:
        str: 可以安全写入日志的 URL
    """
    parts = urlsplit(url)
    netloc = parts.netloc
    if "@" in netloc:
        userinfo, host = netloc.rsplit("@", 1)
        user = userinfo.split(":", 1)[0]
        netloc = f"{user}:***@{host}"

    path = parts.path
    segments = path.rstrip("/").split("/")
    if len(segments) > 2 and "webhooks" in segments:
        segments[-1] = "***"
        path = "/".join(segments)

    return urlunsplit((parts.scheme, netloc, path, "", ""))


def log_performance(threshold: float = 1.0) -> Callable:
    """性能监控装饰器。

    记录协程执行时间，超过阈值时警告。

    Args:
        threshold: 警告阈值（秒）

    使用示例:
        @log_performance(threshold=0.5)
        async def dispatch():
            pass
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                duration = time.perf_counter() - start_time
                logger.error(
                    f"执行失败: {func.__module__}.{func.__name__} | "
                    f"耗时: {duration:.3f}s | "
                    f"异常: {type(exc).__name__}: {exc}"
                )
                raise

            duration = time.perf_counter() - start_time
            if duration > threshold:
                logger.warning(
                    f"性能警告: {func.__module__}.{func.__name__} 执行耗时 {duration:.3f}s "
                    f"(阈值: {threshold}s)"
                )
            else:
                logger.debug(f"性能: {func.__module__}.{func.__name__} 执行耗时 {duration:.3f}s")
            return result

        return wrapper
    return decorator


class LoggerMixin:
    """日志混入类。

    为类提供带类名绑定的日志器。
    """

    @property
    def logger(self):
        """获取类专用的日志器。"""
        return logger.bind(name=f"{self.__class__.__module__}.{self.__class__.__name__}")


__all__ = [
    "LoggerMixin",
    "log_performance",
    "logger",
    "mask_url",
    "setup_logging",
]
