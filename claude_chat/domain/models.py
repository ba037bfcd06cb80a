"""统一的对话数据模型。

本模块定义了会话控制器与 API 客户端之间共享的标准数据结构：

- ChatRole: 消息角色枚举（user/assistant/system）。
- ChatMessage: 一条对话消息。
- ChatCompletionRequest: 发给 Claude Messages API 的完整请求（不可变）。
- ChatCompletionResponse / ContentItem: 非流式调用的响应体。
- StreamChunk / StreamDelta: 流式 SSE 行里的 JSON 载荷。

请求/消息使用 dataclass；线上 JSON（响应体、SSE 载荷）使用 pydantic 模型，
由 pydantic 负责“按已知结构解析 JSON，格式错误即失败”。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    """LLM 消息角色，值与 API 的 role 字段一致。"""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def from_api_string(cls, value: Optional[str]) -> "ChatRole":
        """把 API 字符串转换为 ChatRole，无法识别时按 user 处理。"""

        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.USER


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息。

    - role: 消息角色。
    - content: 纯文本内容；传入 None 时规范化为空字符串。

    消息一旦进入会话历史即不可变，流式占位消息在完成时以新消息的形式提交。
    """

    role: ChatRole
    content: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.role, ChatRole):
            object.__setattr__(self, "role", ChatRole.from_api_string(self.role))
        if self.content is None:
            object.__setattr__(self, "content", "")

    @property
    def is_user(self) -> bool:
        return self.role is ChatRole.USER

    @property
    def is_assistant(self) -> bool:
        return self.role is ChatRole.ASSISTANT

    @property
    def is_system(self) -> bool:
        return self.role is ChatRole.SYSTEM


@dataclass(frozen=True)
class ChatCompletionRequest:
    """一次完整的聊天请求。

    会话控制器每轮都基于当前历史快照重新构造请求，构造后不再修改；
    客户端需要调整 stream / max_tokens 时使用 dataclasses.replace 生成副本。
    """

    model: str
    messages: Tuple[ChatMessage, ...] = field(default_factory=tuple)
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 1000
    stream: bool = False
    stop: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.messages, tuple):
            object.__setattr__(self, "messages", tuple(self.messages or ()))

    @staticmethod
    def builder() -> "ChatCompletionRequestBuilder":
        from claude_chat.domain.factories import ChatCompletionRequestBuilder

        return ChatCompletionRequestBuilder()


class ContentItem(BaseModel):
    """响应 content 数组中的一项。"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    role: Optional[str] = None
    type: Optional[str] = None
    text: str = ""


class ChatCompletionResponse(BaseModel):
    """非流式调用的响应：`{"content": [{"role", "text"}, ...]}`。"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    content: List[ContentItem] = Field(default_factory=list)


class StreamDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    text: Optional[str] = None


class StreamChunk(BaseModel):
    """SSE data 行的 JSON 载荷：`{"type", "delta": {"type", "text"}}`。"""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    delta: Optional[StreamDelta] = None
