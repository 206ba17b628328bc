"""基础设施层。

外部依赖的实现：
- kv: 会话与计数存储（Redis / 内存）
- storage: 对象存储后端（S3 / Discord / HuggingFace）
"""
