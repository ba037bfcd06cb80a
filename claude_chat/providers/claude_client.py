"""Claude 非流式客户端。

本模块负责：

1. 校验 ChatCompletionRequest 与 API Key。
2. 将其转换为 Messages API 的 HTTP 请求（stream=false）。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 解析为 ChatCompletionResponse。

所有错误都在本模块边界内转换为 RequestResult.failure，不会有异常逃出
create_chat_completion_result。
"""

from typing import Optional

import httpx
import pydantic

from claude_chat.config.settings import settings
from claude_chat.domain.exceptions import ApiError, BusinessError, NetworkError, ParseError
from claude_chat.domain.models import ChatCompletionRequest, ChatCompletionResponse
from claude_chat.domain.result import RequestResult
from claude_chat.infrastructure.logging.logger import logger
from claude_chat.providers.payload import build_headers, build_payload, prepare_request, validate_request
from claude_chat.providers.registry import API_VERSION, CLAUDE_CONFIG, DEFAULT_MAX_TOKENS_FALLBACK, MESSAGES_PATH


class ChatApiClient:
    """Claude 非流式客户端实现。

    - api_key: 控制器发起流式调用时读取的凭据。
    - create_chat_completion_result: 推荐入口，返回 RequestResult。
    - create_chat_completion: 旧入口，失败时返回 None。
    """

    name = "claude"

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg

    @property
    def api_key(self) -> Optional[str]:
        return getattr(self._settings, "anthropic_api_key", None)

    @property
    def settings(self):
        return self._settings

    def create_chat_completion_result(
        self, request: Optional[ChatCompletionRequest]
    ) -> RequestResult[ChatCompletionResponse]:
        """执行一次非流式对话调用。

        步骤：
        1. 校验请求与 API Key（失败不发起网络请求）。
        2. 构造 HTTP 请求 payload，max_tokens 非正数时使用兜底值。
        3. 发送请求，网络错误/HTTP 错误转换为失败结果。
        4. 解析响应体，格式错误同样转换为失败结果。
        """

        try:
            validate_request(request, self.api_key)
            fallback = getattr(self._settings, "max_tokens_fallback", DEFAULT_MAX_TOKENS_FALLBACK)
            prepared = prepare_request(request, stream=False, fallback_max_tokens=fallback)
            resp = self._post(prepared)
            if resp.status_code >= 400:
                raise ApiError(
                    code="API_ERROR",
                    message=f"Request failed (HTTP {resp.status_code}): {resp.text or resp.reason_phrase}",
                    http_status=resp.status_code,
                )
            response = self._parse_response(resp.text)
        except BusinessError as e:
            logger.error(
                f"Chat completion failed: {e.message}",
                extra={"extra": {"code": e.code, "http_status": e.http_status}},
            )
            return RequestResult.failure(e.message, e, e.http_status)
        except Exception as e:
            logger.exception("Unexpected error during chat completion")
            return RequestResult.failure(f"Unexpected error: {e}", e)

        logger.info(
            "Chat completion succeeded",
            extra={"extra": {"model": prepared.model, "content_items": len(response.content)}},
        )
        return RequestResult.success(response)

    def create_chat_completion(
        self, request: Optional[ChatCompletionRequest]
    ) -> Optional[ChatCompletionResponse]:
        """旧接口：把失败结果降级为 None，新代码请使用 create_chat_completion_result。"""

        return self.create_chat_completion_result(request).get_value_or_default(None)

    def _post(self, request: ChatCompletionRequest) -> httpx.Response:
        base = getattr(self._settings, "claude_base_url", None) or CLAUDE_CONFIG.base_url
        version = getattr(self._settings, "api_version", None) or API_VERSION
        logger.info(
            "Sending chat completion request",
            extra={"extra": {"model": request.model, "message_count": len(request.messages)}},
        )
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                return client.post(
                    f"{base}{MESSAGES_PATH}",
                    json=build_payload(request),
                    headers=build_headers(self.api_key, version),
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)

    @staticmethod
    def _parse_response(body: Optional[str]) -> ChatCompletionResponse:
        if not body or not body.strip():
            raise ParseError(code="EMPTY_RESPONSE", message="Empty response body.")
        try:
            return ChatCompletionResponse.model_validate_json(body)
        except pydantic.ValidationError as e:
            raise ParseError(code="PARSE_ERROR", message=f"Failed to parse response: {e.error_count()} error(s).")
