"""Claude 流式客户端（Server-Sent Events）。

一次 create_chat_completion_stream 调用驱动一条完整的流式 HTTP 交换：

1. 在任何网络操作之前校验请求；校验失败只调用 on_error，不抛异常。
2. 强制 stream=true，max_tokens 非正数时使用兜底值。
3. 通过传输层逐块接收响应字节，增量解码后交给新的 SseParser。
4. 文本增量按到达顺序转发给 on_text_delta；结束标记或正常结束触发一次 on_complete；
   非取消导致的失败调用 on_error。

调用在当前线程阻塞直到交换结束；cancel_stream 可以在其他线程或回调内部调用，
取消后所有回调都被抑制，取消本身不会被当成错误上报。
"""

import codecs
import threading
from typing import Callable, Optional

from claude_chat.config.settings import settings
from claude_chat.domain.exceptions import BusinessError, StreamCancelled
from claude_chat.domain.models import ChatCompletionRequest
from claude_chat.infrastructure.logging.logger import logger
from claude_chat.providers.base import (
    CompleteCallback,
    ErrorCallback,
    StreamingTransport,
    TextDeltaCallback,
)
from claude_chat.providers.payload import build_headers, build_payload, prepare_request, validate_request
from claude_chat.providers.registry import API_VERSION, CLAUDE_CONFIG, DEFAULT_MAX_TOKENS_FALLBACK, MESSAGES_PATH
from claude_chat.providers.sse import SseEvent, SseParser
from claude_chat.providers.transport import HttpxStreamingTransport, TransportHandle


class StreamingChatApiClient:
    """Claude 流式客户端实现，每个实例同一时间最多只有一条流。"""

    name = "claude-stream"

    def __init__(self, cfg=settings, transport_factory: Optional[Callable[[], StreamingTransport]] = None):
        self._settings = cfg
        self._transport_factory = transport_factory or self._default_transport
        self._lock = threading.Lock()
        self._handle: Optional[TransportHandle] = None
        self._cancelled = False
        self._closed = False

    @property
    def is_streaming(self) -> bool:
        return self._handle is not None

    def create_chat_completion_stream(
        self,
        request: Optional[ChatCompletionRequest],
        api_key: Optional[str],
        on_text_delta: TextDeltaCallback,
        on_error: Optional[ErrorCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        try:
            validate_request(request, api_key)
        except BusinessError as e:
            logger.error(f"Streaming request rejected: {e.message}", extra={"extra": {"code": e.code}})
            if on_error:
                on_error(e.message)
            return
        if self._closed:
            logger.warning("Streaming request on a closed client ignored")
            if on_error:
                on_error("Streaming client is closed.")
            return

        fallback = getattr(self._settings, "max_tokens_fallback", DEFAULT_MAX_TOKENS_FALLBACK)
        prepared = prepare_request(request, stream=True, fallback_max_tokens=fallback)
        base = getattr(self._settings, "claude_base_url", None) or CLAUDE_CONFIG.base_url
        version = getattr(self._settings, "api_version", None) or API_VERSION

        with self._lock:
            self._cancelled = False
            handle = TransportHandle(self._transport_factory())
            self._handle = handle

        completed = False
        parser = SseParser()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        def dispatch(event: SseEvent) -> None:
            nonlocal completed
            if self._cancelled or completed:
                return
            if event.kind == "delta":
                on_text_delta(event.text)
            else:
                completed = True
                if on_complete:
                    on_complete()

        def on_chunk(data: bytes) -> None:
            if self._cancelled:
                return
            for event in parser.process_chunk(decoder.decode(data)):
                dispatch(event)

        log_ctx = {"model": prepared.model, "message_count": len(prepared.messages)}
        logger.info("Starting streaming request", extra={"extra": log_ctx})
        try:
            response = handle.post_stream(
                f"{base}{MESSAGES_PATH}",
                build_headers(api_key, version, stream=True),
                build_payload(prepared),
                on_chunk,
            )
            if self._cancelled:
                raise StreamCancelled()
            if response.ok:
                for event in parser.process_chunk(decoder.decode(b"", final=True)):
                    dispatch(event)
                for event in parser.flush():
                    dispatch(event)
                # 服务端没有发 [DONE] 时，以正常结束作为完成信号
                dispatch(SseEvent(kind="complete"))
                logger.info("Streaming request completed", extra={"extra": log_ctx})
            elif completed:
                logger.warning(
                    "Ignored failure after stream completion",
                    extra={"extra": {**log_ctx, "http_status": response.status_code}},
                )
            else:
                message = f"Streaming request failed (HTTP {response.status_code}): {response.error or 'unknown error'}"
                self._report_error(message, on_error, log_ctx, http_status=response.status_code)
        except StreamCancelled:
            logger.info("Stream cancelled", extra={"extra": log_ctx})
        except BusinessError as e:
            if self._cancelled:
                logger.info("Stream cancelled", extra={"extra": log_ctx})
            elif completed:
                # on_complete 已经发出，同一条流不再上报错误
                logger.warning(f"Ignored failure after stream completion: {e.message}", extra={"extra": log_ctx})
            else:
                self._report_error(f"Streaming request failed: {e.message}", on_error, log_ctx, http_status=e.http_status)
        finally:
            handle.release()
            with self._lock:
                if self._handle is handle:
                    self._handle = None

    def cancel_stream(self) -> None:
        """取消当前流：设置取消标记，中断并释放传输。没有进行中的流时只设置标记。"""

        with self._lock:
            self._cancelled = True
            handle = self._handle
            self._handle = None
        if handle is not None:
            handle.abort()
            handle.release()
            logger.info("Stream cancel requested")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.cancel_stream()

    def _default_transport(self) -> StreamingTransport:
        return HttpxStreamingTransport(timeout=getattr(self._settings, "http_timeout", 30.0))

    @staticmethod
    def _report_error(message: str, on_error: Optional[ErrorCallback], log_ctx: dict, http_status=None) -> None:
        payload = dict(log_ctx)
        payload["http_status"] = http_status
        logger.error(message, extra={"extra": payload})
        if on_error:
            on_error(message)
