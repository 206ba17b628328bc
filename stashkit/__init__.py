"""StashKit - 多后端文件存储与分片断点续传。

子包：
- common: 日志与基础异常
- core: 配置、常量、业务异常
- toolkit: HTTP 客户端
- infrastructure: KV 存储与对象存储后端
- domain: 上传会话编排与访客配额
- application: FastAPI 路由与错误处理
"""

__version__ = "0.1.0"
