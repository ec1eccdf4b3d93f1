"""领域层模型与协议。

包含：
- models: Sender 枚举以及 ChatMessage / ChatRequest / ChatResult 模型。
- conversation: 会话与消息的存储模型及 MessageStore 抽象。
- exceptions: 业务异常类型定义。
"""
