"""对外 API 服务模块。

提供简化的函数接口供上层应用调用。
"""

from typing import Any, Dict, List, Optional

from claude_chat.config.settings import settings
from claude_chat.domain.models import ChatMessage
from claude_chat.infrastructure.logging.logger import logger
from claude_chat.providers.base import ChatApi, StreamingChatApi
from claude_chat.providers.claude_client import ChatApiClient
from claude_chat.providers.claude_streaming import StreamingChatApiClient
from claude_chat.session.controller import (
    ChatSessionController,
    ErrorCallback,
    MessageCallback,
    StreamingUpdateCallback,
)


def create_chat_controller(
    on_message: Optional[MessageCallback] = None,
    on_streaming_update: Optional[StreamingUpdateCallback] = None,
    on_error: Optional[ErrorCallback] = None,
    model_name: Optional[str] = None,
    use_streaming: Optional[bool] = None,
    api: Optional[ChatApi] = None,
    streaming_api: Optional[StreamingChatApi] = None,
    cfg=None,
) -> ChatSessionController:
    """按全局配置组装一个会话控制器，任意参数都可以覆盖。"""

    cfg = cfg if cfg is not None else settings
    if use_streaming is None:
        use_streaming = getattr(cfg, "use_streaming", False)
    return ChatSessionController(
        api=api or ChatApiClient(cfg),
        streaming_api=streaming_api or StreamingChatApiClient(cfg),
        config=cfg,
        model_name=model_name or getattr(cfg, "default_model", None),
        on_message=on_message,
        on_streaming_update=on_streaming_update,
        on_error=on_error,
        use_streaming=use_streaming,
    )


def run_chat(
    user_input: str,
    use_streaming: bool = False,
    model_name: Optional[str] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """在一个全新的会话里完成一轮对话。

    Args:
        user_input: 用户输入内容
        use_streaming: 是否使用流式输出
        model_name: 逻辑模型名或模型 ID（可选）
        overrides: 透传给 create_chat_controller 的其他参数（api、streaming_api、cfg）

    Returns:
        包含用户消息、助手回复和错误信息的字典
    """
    errors: List[str] = []
    updates: List[str] = []
    controller = create_chat_controller(
        on_streaming_update=updates.append,
        on_error=errors.append,
        model_name=model_name,
        use_streaming=use_streaming,
        **overrides,
    )
    with controller:
        controller.send_user_message(user_input)
        history = controller.history
        assistant: Optional[ChatMessage] = next(
            (m for m in reversed(history) if m.is_assistant), None
        )
    if errors:
        logger.error(f"Chat failed: {errors[-1]}", extra={"extra": {"streaming": use_streaming}})
    return {
        "user_message": user_input,
        "assistant_message": assistant.content if assistant else None,
        "error": errors[-1] if errors else None,
        "stream_updates": len(updates),
    }
