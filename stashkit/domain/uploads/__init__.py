"""分片上传模块。

提供：
- 上传会话模型与状态
- 基于 KV 的会话存储（条件写入）
- 分片上传编排器
"""

from .models import (
    ChunkAcceptResult,
    InitResult,
    UploadSession,
    UploadStatus,
    generate_upload_id,
)
from .orchestrator import ChunkUploadOrchestrator, safe_file_name
from .store import UploadSessionStore

__all__ = [
    "ChunkAcceptResult",
    "ChunkUploadOrchestrator",
    "InitResult",
    "UploadSession",
    "UploadSessionStore",
    "UploadStatus",
    "generate_upload_id",
    "safe_file_name",
]
