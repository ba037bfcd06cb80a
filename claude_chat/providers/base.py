"""Provider 抽象接口。

会话控制器不直接依赖具体的 HTTP 客户端实现，而是依赖这里的协议：

- ChatApi: 非流式调用能力，同时暴露控制器需要的 api_key。
- StreamingChatApi: 流式调用能力，支持取消。
- StreamingTransport: 底层“发 POST、按块推送响应字节、支持中断”的传输能力。

这样测试可以注入假的实现，也不需要把接口向下转型为某个具体类。
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from claude_chat.domain.models import ChatCompletionRequest, ChatCompletionResponse
from claude_chat.domain.result import RequestResult


TextDeltaCallback = Callable[[str], None]
ErrorCallback = Callable[[str], None]
CompleteCallback = Callable[[], None]


class ChatApi(Protocol):
    """非流式 Claude 客户端协议。"""

    @property
    def api_key(self) -> Optional[str]:
        ...

    def create_chat_completion_result(
        self, request: Optional[ChatCompletionRequest]
    ) -> RequestResult[ChatCompletionResponse]:
        ...

    def create_chat_completion(
        self, request: Optional[ChatCompletionRequest]
    ) -> Optional[ChatCompletionResponse]:
        """旧接口：失败时返回 None。"""

        ...


class StreamingChatApi(Protocol):
    """流式 Claude 客户端协议。"""

    def create_chat_completion_stream(
        self,
        request: Optional[ChatCompletionRequest],
        api_key: Optional[str],
        on_text_delta: TextDeltaCallback,
        on_error: Optional[ErrorCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        ...

    def cancel_stream(self) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass
class TransportResponse:
    """一次流式 HTTP 交换结束后的结果。"""

    status_code: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class StreamingTransport(Protocol):
    """流式传输协议。

    post_stream 阻塞直到响应体读完，期间每收到一块字节就调用 on_chunk；
    连接失败抛出 NetworkError，被 abort 中断时抛出 StreamCancelled。
    """

    def post_stream(
        self,
        url: str,
        headers: Dict[str, str],
        payload: dict,
        on_chunk: Callable[[bytes], None],
    ) -> TransportResponse:
        ...

    def abort(self) -> None:
        ...

    def close(self) -> None:
        ...
