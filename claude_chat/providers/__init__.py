"""Claude API 集成层。

该包下的模块负责：
- 定义客户端与传输层的抽象接口 (base)。
- 维护 API 常量与模型配置 (registry)。
- SSE 增量解析 (sse) 与流式传输 (transport)。
- 非流式/流式客户端的具体实现 (claude_client、claude_streaming)。
"""

from claude_chat.config.settings import settings
from claude_chat.providers.base import ChatApi, StreamingChatApi
from claude_chat.providers.claude_client import ChatApiClient
from claude_chat.providers.claude_streaming import StreamingChatApiClient


def create_clients(cfg=None) -> tuple[ChatApiClient, StreamingChatApiClient]:
    """根据配置创建一对非流式/流式客户端，默认使用全局 settings。"""

    cfg = cfg if cfg is not None else settings
    return ChatApiClient(cfg), StreamingChatApiClient(cfg)


__all__ = [
    "ChatApi",
    "ChatApiClient",
    "StreamingChatApi",
    "StreamingChatApiClient",
    "create_clients",
]
