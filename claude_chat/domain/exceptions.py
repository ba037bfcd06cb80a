"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError。
客户端内部抛出这些异常，并在自身边界处统一转换：
非流式路径转换为 RequestResult.failure，流式路径转换为 on_error 回调。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 对应的 HTTP 状态码；与网络无关的错误为 None。
        extra: 其他补充字段（例如 model、url 等）。
    """

    def __init__(self, code: str, message: str, http_status: Optional[int] = None, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败（请求为空、没有消息、缺少 API Key 等），发生在任何网络调用之前。"""


class TransportError(BusinessError):
    """HTTP 交换未成功完成。http_status 为 None 表示没有拿到状态码的普通失败。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(TransportError):
    """服务端返回非 2xx 状态码时抛出。"""


class ParseError(BusinessError):
    """非流式响应体无法解析为 ChatCompletionResponse。"""


class StreamCancelled(Exception):
    """流被调用方主动取消。

    这不是错误：只用于在客户端内部区分“取消”与 TransportError，
    永远不会通过 on_error 或 RequestResult 暴露给调用方。
    """
