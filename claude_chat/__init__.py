"""claude_chat 顶层包。

该包提供 Claude Messages API 的客户端会话管理能力，
包括配置加载、领域模型、SSE 增量解析、流式/非流式客户端、
会话历史裁剪与会话控制器。
"""

from claude_chat.domain.models import ChatMessage, ChatRole
from claude_chat.domain.result import RequestResult
from claude_chat.session.controller import ChatSessionController, SessionState

__all__ = ["ChatMessage", "ChatRole", "ChatSessionController", "RequestResult", "SessionState"]
