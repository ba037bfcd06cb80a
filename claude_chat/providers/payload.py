"""请求体、请求头与请求校验，流式/非流式客户端共用。"""

from dataclasses import replace
from typing import Any, Dict, List, Optional

from claude_chat.domain.exceptions import ValidationError
from claude_chat.domain.models import ChatCompletionRequest, ChatMessage, ChatRole
from claude_chat.providers.registry import (
    ACCEPT_SSE,
    API_VERSION,
    CONTENT_TYPE_JSON,
    DEFAULT_MAX_TOKENS_FALLBACK,
    HEADER_ACCEPT,
    HEADER_ANTHROPIC_VERSION,
    HEADER_API_KEY,
    HEADER_CONTENT_TYPE,
)


def validate_request(request: Optional[ChatCompletionRequest], api_key: Optional[str]) -> ChatCompletionRequest:
    """在任何网络调用之前校验请求，失败抛出 ValidationError。"""

    if request is None:
        raise ValidationError(code="NULL_REQUEST", message="Request cannot be None.")
    if not request.messages:
        raise ValidationError(code="EMPTY_MESSAGES", message="No messages found in request.")
    if not api_key:
        raise ValidationError(code="MISSING_API_KEY", message="API key is not configured.")
    return request


def prepare_request(request: ChatCompletionRequest, stream: bool, fallback_max_tokens: int) -> ChatCompletionRequest:
    """生成发送用的副本：强制 stream 标志，max_tokens 非正数时回落到兜底值。"""

    max_tokens = request.max_tokens if request.max_tokens > 0 else (fallback_max_tokens or DEFAULT_MAX_TOKENS_FALLBACK)
    return replace(request, stream=stream, max_tokens=max_tokens)


def build_headers(api_key: str, api_version: str = API_VERSION, stream: bool = False) -> Dict[str, str]:
    headers = {
        HEADER_CONTENT_TYPE: CONTENT_TYPE_JSON,
        HEADER_API_KEY: api_key,
        HEADER_ANTHROPIC_VERSION: api_version,
    }
    if stream:
        headers[HEADER_ACCEPT] = ACCEPT_SSE
    return headers


def build_payload(request: ChatCompletionRequest) -> Dict[str, Any]:
    """将 ChatCompletionRequest 转成 Messages API 所需的请求 JSON。

    system 角色的消息不能出现在 messages 数组里，这里合并为顶层 system 字段。
    """

    system_parts: List[str] = []
    msgs: List[Dict[str, str]] = []
    for message in request.messages:
        if message.role is ChatRole.SYSTEM:
            if message.content:
                system_parts.append(message.content)
            continue
        msgs.append(_message_to_payload(message))

    payload: Dict[str, Any] = {
        "model": request.model,
        "messages": msgs,
        "max_tokens": request.max_tokens,
        "stream": request.stream,
        "temperature": request.temperature,
        "top_p": request.top_p,
    }
    if system_parts:
        payload["system"] = "\n\n".join(system_parts)
    if request.stop:
        payload["stop"] = request.stop
    return payload


def _message_to_payload(message: ChatMessage) -> Dict[str, str]:
    return {"role": message.role.value, "content": message.content}
