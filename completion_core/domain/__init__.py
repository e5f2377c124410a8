"""领域层模型与协议。

包含：
- models: Message / SamplingParameters / StreamEvent / CompletionResult 等模型。
- conversation: 只追加、可显式重置的会话句柄。
- exceptions: 业务异常类型定义。
"""
