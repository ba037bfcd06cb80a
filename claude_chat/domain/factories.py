"""消息与请求的构造工具。

- create_*_message: 统一创建 ChatMessage，避免到处写角色字符串。
- ChatCompletionRequestBuilder: 链式构造不可变的 ChatCompletionRequest。
"""

from typing import Iterable, List, Optional, Union

from claude_chat.domain.models import ChatCompletionRequest, ChatMessage, ChatRole
from claude_chat.providers.registry import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    ClaudeModel,
    resolve_model,
)


def create_message(role: ChatRole, content: Optional[str]) -> ChatMessage:
    return ChatMessage(role=role, content=content or "")


def create_user_message(content: Optional[str]) -> ChatMessage:
    return create_message(ChatRole.USER, content)


def create_assistant_message(content: Optional[str]) -> ChatMessage:
    return create_message(ChatRole.ASSISTANT, content)


def create_system_message(content: Optional[str]) -> ChatMessage:
    return create_message(ChatRole.SYSTEM, content)


def create_streaming_placeholder() -> ChatMessage:
    """流式回复开始前发给 UI 的空 assistant 占位消息。"""

    return create_message(ChatRole.ASSISTANT, "")


class ChatCompletionRequestBuilder:
    """ChatCompletionRequest 的链式构造器。

    用法::

        req = (
            ChatCompletionRequest.builder()
            .with_model(ClaudeModel.CLAUDE_3_5_SONNET)
            .add_user_message("hi")
            .with_streaming(True)
            .build()
        )
    """

    def __init__(self):
        self._model: Optional[str] = None
        self._messages: List[ChatMessage] = []
        self._temperature = DEFAULT_TEMPERATURE
        self._top_p = DEFAULT_TOP_P
        self._max_tokens = DEFAULT_MAX_TOKENS
        self._stream = False
        self._stop: Optional[str] = None

    def with_model(self, model: Union[str, ClaudeModel]) -> "ChatCompletionRequestBuilder":
        # 逻辑名/枚举统一映射为真实模型 ID，未登记的名字原样透传
        self._model = resolve_model(model)
        return self

    def add_message(self, message: Optional[ChatMessage]) -> "ChatCompletionRequestBuilder":
        if message is not None:
            self._messages.append(message)
        return self

    def add_user_message(self, content: str) -> "ChatCompletionRequestBuilder":
        return self.add_message(create_user_message(content))

    def add_assistant_message(self, content: str) -> "ChatCompletionRequestBuilder":
        return self.add_message(create_assistant_message(content))

    def add_system_message(self, content: str) -> "ChatCompletionRequestBuilder":
        return self.add_message(create_system_message(content))

    def with_messages(self, messages: Optional[Iterable[ChatMessage]]) -> "ChatCompletionRequestBuilder":
        """用已有消息序列整体替换当前消息。"""

        self._messages = [m for m in (messages or []) if m is not None]
        return self

    def with_temperature(self, temperature: float) -> "ChatCompletionRequestBuilder":
        self._temperature = temperature
        return self

    def with_top_p(self, top_p: float) -> "ChatCompletionRequestBuilder":
        self._top_p = top_p
        return self

    def with_max_tokens(self, tokens: int) -> "ChatCompletionRequestBuilder":
        self._max_tokens = tokens if tokens > 0 else DEFAULT_MAX_TOKENS
        return self

    def with_streaming(self, enabled: bool) -> "ChatCompletionRequestBuilder":
        self._stream = enabled
        return self

    def with_stop(self, stop: Optional[str]) -> "ChatCompletionRequestBuilder":
        self._stop = stop
        return self

    def build(self) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=self._model or "",
            messages=tuple(self._messages),
            temperature=self._temperature,
            top_p=self._top_p,
            max_tokens=self._max_tokens,
            stream=self._stream,
            stop=self._stop,
        )
