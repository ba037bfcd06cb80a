"""领域层模型与协议。

包含：
- models: ChatRole / ChatMessage / ChatCompletionRequest / ChatCompletionResponse。
- result: 显式成功/失败的 RequestResult。
- factories: 消息工厂与请求构造器。
- exceptions: 业务异常类型定义。
"""
