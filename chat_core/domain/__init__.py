"""领域层模型与协议。

包含：
- models: Message / Conversation / ChatSettings 记录以及发给 Gateway 的请求模型。
- events: 单轮对话生命周期事件。
- exceptions: 业务异常类型定义。
"""
