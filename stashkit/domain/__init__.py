"""领域层。

- uploads: 分片上传会话与编排
- guest: 访客配额
"""
