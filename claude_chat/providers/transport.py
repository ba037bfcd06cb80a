"""流式 HTTP 传输。

- HttpxStreamingTransport: 基于 httpx 的“发 POST、逐块推送响应字节、可中断”实现。
- TransportHandle: 包装一次传输的一次性释放状态机（Open -> Released），
  保证底层资源只被释放一次，重复释放是空操作。
"""

import threading
from typing import Callable, Dict, Optional

import httpx

from claude_chat.domain.exceptions import NetworkError, StreamCancelled
from claude_chat.providers.base import StreamingTransport, TransportResponse


class HttpxStreamingTransport:
    """一次流式交换使用一个实例，abort 可以从其他线程调用。"""

    def __init__(self, timeout: float = 30.0):
        self._timeout = timeout
        self._aborted = threading.Event()
        self._response: Optional[httpx.Response] = None

    def post_stream(
        self,
        url: str,
        headers: Dict[str, str],
        payload: dict,
        on_chunk: Callable[[bytes], None],
    ) -> TransportResponse:
        if self._aborted.is_set():
            raise StreamCancelled()
        try:
            with httpx.Client(timeout=self._timeout, trust_env=False) as client:
                with client.stream("POST", url, json=payload, headers=headers) as resp:
                    self._response = resp
                    if resp.status_code >= 300:
                        resp.read()
                        return TransportResponse(
                            status_code=resp.status_code,
                            error=resp.text or resp.reason_phrase,
                        )
                    for data in resp.iter_bytes():
                        if self._aborted.is_set():
                            raise StreamCancelled()
                        if data:
                            on_chunk(data)
                    if self._aborted.is_set():
                        raise StreamCancelled()
                    return TransportResponse(status_code=resp.status_code)
        except StreamCancelled:
            raise
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._aborted.is_set():
                raise StreamCancelled() from e
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        except Exception as e:
            # 从其他线程关闭响应后，读取端可能抛出任意底层异常，此时按取消处理
            if self._aborted.is_set():
                raise StreamCancelled() from e
            raise
        finally:
            self._response = None

    def abort(self) -> None:
        self._aborted.set()
        resp = self._response
        if resp is not None:
            resp.close()

    def close(self) -> None:
        # 正常结束时 with 块已经关闭了连接；仍在读取说明是被取消，关闭响应让读取端尽快退出
        resp = self._response
        if resp is not None:
            resp.close()


class TransportHandle:
    """Open -> Released 的一次性资源状态机。"""

    def __init__(self, transport: StreamingTransport):
        self._transport = transport
        self._lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def post_stream(
        self,
        url: str,
        headers: Dict[str, str],
        payload: dict,
        on_chunk: Callable[[bytes], None],
    ) -> TransportResponse:
        if self._released:
            raise StreamCancelled()
        return self._transport.post_stream(url, headers, payload, on_chunk)

    def abort(self) -> None:
        if not self._released:
            self._transport.abort()

    def release(self) -> bool:
        """释放底层传输；返回本次调用是否真正执行了释放。"""

        with self._lock:
            if self._released:
                return False
            self._released = True
        self._transport.close()
        return True
