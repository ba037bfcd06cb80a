"""会话控制器。

ChatSessionController 是面向调用方（例如 UI 层）的顶层入口：

- 持有会话历史，并在每次追加后按配置裁剪。
- 按配置选择流式或非流式客户端发起请求。
- 流式模式下累积增量文本，把“累计全文”推给 on_streaming_update，
  完成时把完整回复作为一条 assistant 消息提交到历史。
- 通过 on_message / on_error 回调通知调用方。

状态机：IDLE -> AWAITING_STREAM / AWAITING_FULL -> IDLE，任意状态都可以进入终态 DISPOSED。
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from claude_chat.config.settings import settings
from claude_chat.domain.factories import (
    create_assistant_message,
    create_streaming_placeholder,
    create_system_message,
    create_user_message,
)
from claude_chat.domain.models import ChatCompletionRequest, ChatCompletionResponse, ChatMessage
from claude_chat.infrastructure.logging.logger import logger
from claude_chat.providers.base import ChatApi, StreamingChatApi
from claude_chat.providers.claude_streaming import StreamingChatApiClient
from claude_chat.providers.registry import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, DEFAULT_TOP_P, resolve_model
from claude_chat.utils.history_trimmer import trim_if_needed


MessageCallback = Callable[[ChatMessage, bool], None]
StreamingUpdateCallback = Callable[[str], None]
ErrorCallback = Callable[[str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_STREAM = "awaiting_stream"
    AWAITING_FULL = "awaiting_full"
    DISPOSED = "disposed"


@dataclass
class StreamTurn:
    """一次流式回合的上下文，随回合创建、随回合结束丢弃。

    - placeholder: 发给调用方的空 assistant 占位消息。
    - parts: 已收到的增量文本。
    - finished: 完成/出错后置为 True，之后的回调全部忽略。
    """

    placeholder: ChatMessage
    parts: List[str] = field(default_factory=list)
    finished: bool = False

    @property
    def text(self) -> str:
        return "".join(self.parts)

    def append(self, delta: str) -> str:
        self.parts.append(delta)
        return self.text

    def clear(self) -> None:
        self.parts.clear()


class ChatSessionController:
    def __init__(
        self,
        api: ChatApi,
        streaming_api: Optional[StreamingChatApi] = None,
        config: Any = None,
        model_name: Optional[str] = None,
        on_message: Optional[MessageCallback] = None,
        on_streaming_update: Optional[StreamingUpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        use_streaming: bool = False,
    ):
        if api is None:
            raise ValueError("api must not be None")
        self._api = api
        self._config = config if config is not None else settings
        self._streaming_api = streaming_api or StreamingChatApiClient(self._config)
        self._model = resolve_model(model_name or getattr(self._config, "default_model", ""))
        self._on_message = on_message
        self._on_streaming_update = on_streaming_update
        self._on_error = on_error
        self._use_streaming = use_streaming

        self._history: List[ChatMessage] = []
        self._active_turn: Optional[StreamTurn] = None
        # 本回合是否已被取消；流式传输建立之前到达的取消也记录在这里
        self._turn_cancelled = False
        self._state = SessionState.IDLE
        self._lock = threading.Lock()
        self._log_ctx: Dict[str, Any] = {
            "session_id": f"s-{uuid4().hex}",
            "model": self._model,
            "streaming": use_streaming,
        }

    # ---- 只读状态 ----

    @property
    def history(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._history)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state in (SessionState.AWAITING_STREAM, SessionState.AWAITING_FULL)

    @property
    def model(self) -> str:
        return self._model

    # ---- 对外操作 ----

    def send_user_message(self, text: Optional[str]) -> None:
        """发送一条用户消息并处理回复。

        空白输入直接忽略（不修改历史、不触发回调）；已有回合在进行中时
        通过 on_error 报告并忽略本次发送。
        """

        if not text or not text.strip():
            self._log(logging.WARNING, "User message is empty", self._log_ctx)
            return

        with self._lock:
            state = self._state
            if state is SessionState.IDLE:
                self._state = SessionState.AWAITING_STREAM if self._use_streaming else SessionState.AWAITING_FULL
                self._turn_cancelled = False
        if state is SessionState.DISPOSED:
            self._log(logging.WARNING, "Send on disposed session ignored", self._log_ctx)
            return
        if state is not SessionState.IDLE:
            self._log(logging.WARNING, "Send while a response is in progress", self._log_ctx, state=state.value)
            self._notify_error("A response is already in progress.")
            return

        try:
            user_message = create_user_message(text)
            self._history.append(user_message)
            self._trim_history()
            self._notify_message(user_message, True)

            request = self._build_request()
            if self._use_streaming:
                self._handle_streaming(request)
            else:
                self._handle_full(request)
        finally:
            with self._lock:
                if self._state is not SessionState.DISPOSED:
                    self._state = SessionState.IDLE

    def cancel_streaming(self) -> None:
        """取消进行中的流；没有流时是空操作。

        流式回合已开始但传输尚未建立时（例如在占位消息回调里调用），
        取消同样生效：本回合不会再发起请求，也不会提交回复。
        """

        with self._lock:
            if self._state is SessionState.AWAITING_STREAM:
                self._turn_cancelled = True
        if self._streaming_api is not None:
            self._streaming_api.cancel_stream()

    def clear_history(self) -> None:
        """清空历史与当前流式累积内容，不影响进行中的请求。"""

        self._history.clear()
        turn = self._active_turn
        if turn is not None:
            turn.clear()
        self._log(logging.INFO, "Cleared history", self._log_ctx)

    def dispose(self) -> None:
        with self._lock:
            if self._state is SessionState.DISPOSED:
                return
            self._state = SessionState.DISPOSED
        if self._streaming_api is not None:
            self._streaming_api.close()
        self._history.clear()
        turn = self._active_turn
        if turn is not None:
            turn.clear()
        self._log(logging.INFO, "Disposed session", self._log_ctx)

    def __enter__(self) -> "ChatSessionController":
        return self

    def __exit__(self, *exc) -> bool:
        self.dispose()
        return False

    # ---- 请求构造 ----

    def _build_request(self) -> ChatCompletionRequest:
        messages: List[ChatMessage] = list(self._history)
        system_prompt = getattr(self._config, "system_prompt", None)
        if system_prompt:
            messages.insert(0, create_system_message(system_prompt))
        return (
            ChatCompletionRequest.builder()
            .with_model(self._model)
            .with_messages(messages)
            .with_streaming(self._use_streaming)
            .with_max_tokens(getattr(self._config, "max_tokens", DEFAULT_MAX_TOKENS))
            .with_temperature(getattr(self._config, "temperature", DEFAULT_TEMPERATURE))
            .with_top_p(getattr(self._config, "top_p", DEFAULT_TOP_P))
            .build()
        )

    # ---- 流式 ----

    def _handle_streaming(self, request: ChatCompletionRequest) -> None:
        turn = StreamTurn(placeholder=create_streaming_placeholder())
        self._active_turn = turn
        # 先给调用方一个空占位，便于立即分配 UI
        self._notify_message(turn.placeholder, False)
        if self._turn_cancelled:
            turn.finished = True
            self._active_turn = None
            self._log(logging.INFO, "Stream cancelled before start", self._log_ctx)
            return
        try:
            self._streaming_api.create_chat_completion_stream(
                request,
                self._api.api_key,
                on_text_delta=lambda delta: self._on_stream_delta(turn, delta),
                on_error=lambda message: self._on_stream_error(turn, message),
                on_complete=lambda: self._on_stream_complete(turn),
            )
        finally:
            turn.finished = True
            turn.clear()
            if self._active_turn is turn:
                self._active_turn = None

    def _on_stream_delta(self, turn: StreamTurn, delta: str) -> None:
        if turn.finished or self._turn_cancelled:
            return
        cumulative = turn.append(delta)
        if self._on_streaming_update:
            self._on_streaming_update(cumulative)

    def _on_stream_complete(self, turn: StreamTurn) -> None:
        if turn.finished:
            return
        turn.finished = True
        if self._turn_cancelled:
            self._log(logging.INFO, "Discarded cancelled stream", self._log_ctx)
            return
        content = turn.text
        if not content:
            self._log(logging.WARNING, "Stream completed without content", self._log_ctx)
            return
        if self._state is SessionState.DISPOSED:
            return
        self._commit_assistant_message(create_assistant_message(content), notify=False)

    def _on_stream_error(self, turn: StreamTurn, message: str) -> None:
        if turn.finished:
            return
        turn.finished = True
        if self._turn_cancelled:
            return
        self._log(logging.ERROR, "Stream failed", self._log_ctx, error=message)
        self._notify_error(message)

    # ---- 非流式 ----

    def _handle_full(self, request: ChatCompletionRequest) -> None:
        result = self._api.create_chat_completion_result(request)
        if self._state is SessionState.DISPOSED:
            self._log(logging.INFO, "Discarded response for disposed session", self._log_ctx)
            return
        result.match(on_success=self._on_full_response, on_failure=self._on_full_failure)

    def _on_full_response(self, response: Optional[ChatCompletionResponse]) -> None:
        if response is None or not response.content:
            self._log(logging.WARNING, "No response content received", self._log_ctx)
            return
        self._commit_assistant_message(create_assistant_message(response.content[0].text), notify=True)

    def _on_full_failure(self, error: str) -> None:
        self._log(logging.ERROR, "Chat completion failed", self._log_ctx, error=error)
        self._notify_error(error)

    # ---- 历史 ----

    def _commit_assistant_message(self, message: ChatMessage, notify: bool) -> None:
        self._history.append(message)
        self._trim_history()
        self._log(
            logging.INFO,
            "Stored assistant message",
            self._log_ctx,
            length=len(message.content),
            history_size=len(self._history),
        )
        if notify:
            self._notify_message(message, False)

    def _trim_history(self) -> None:
        max_messages = getattr(self._config, "max_history_messages", 0)
        trim_to = max_messages - getattr(self._config, "history_trim_count", 0)
        if trim_to < 0:
            trim_to = max_messages // 2
        if trim_if_needed(self._history, max_messages, trim_to):
            self._log(logging.INFO, "Trimmed history", self._log_ctx, history_size=len(self._history))

    # ---- 回调 ----

    def _notify_message(self, message: ChatMessage, is_user: bool) -> None:
        if self._on_message:
            self._on_message(message, is_user)

    def _notify_error(self, message: str) -> None:
        if self._on_error:
            self._on_error(message)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
