"""Server-Sent Events 增量解析器。

网络层推送的文本块可能在任意位置切断一行甚至切断一段 JSON，
SseParser 负责把这些块重新拼成完整的行，并转换为语义事件：

- SseEvent(kind="delta", text=...): 一段增量文本。
- SseEvent(kind="complete"): 收到 `data: [DONE]` 结束标记。

无法解析的 data 行（流式分块造成的半截 JSON）属于正常现象，静默丢弃。
一个解析器实例只服务于一条流，不要在并发的流之间共享。
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Literal, Optional

import pydantic

from claude_chat.domain.models import StreamChunk
from claude_chat.providers.registry import SSE_DATA_PREFIX, SSE_DONE_MARKER


@dataclass(frozen=True)
class SseEvent:
    """解析得到的流式事件。

    kind:
        - "delta": 正常的内容增量，text 为本次增量。
        - "complete": 服务端发出的结束标记。
    """

    kind: Literal["delta", "complete"]
    text: Optional[str] = None


COMPLETE = SseEvent(kind="complete")


class SseParser:
    def __init__(self):
        # 只保存最近一次未以换行结尾的残行
        self._buffer = ""

    @property
    def pending(self) -> str:
        """当前缓存的未完成行。"""

        return self._buffer

    def process_chunk(self, chunk: Optional[str]) -> List[SseEvent]:
        """处理一块原始 SSE 文本，返回本块中所有完整行产生的事件。

        除最后一段外，按 `\\n` 切出的每一段都是完整行，立即分发；
        若缓冲区不以换行结尾，最后一段作为新的缓冲内容保留到下一块。
        """

        if not chunk:
            return []
        data = self._buffer + chunk
        lines = data.split("\n")
        # 以换行结尾时最后一段是空串，保留它等价于清空缓冲区
        self._buffer = lines.pop()
        events: List[SseEvent] = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[SseEvent]:
        """流自然结束时，把缓冲区中残留的最后一行当作完整行处理。"""

        tail, self._buffer = self._buffer, ""
        event = self._process_line(tail)
        return [event] if event is not None else []

    def feed(self, chunks: Iterable[Optional[str]]) -> Iterator[SseEvent]:
        """按顺序处理多个块，惰性产出事件。"""

        for chunk in chunks:
            yield from self.process_chunk(chunk)

    def reset(self) -> None:
        """丢弃缓存的残行，用于复用解析器实例。"""

        self._buffer = ""

    @staticmethod
    def _process_line(line: str) -> Optional[SseEvent]:
        if not line or line.isspace():
            return None
        if not line.startswith(SSE_DATA_PREFIX):
            # event:/id:/注释行不携带文本
            return None
        data = line[len(SSE_DATA_PREFIX):].strip()
        if data == SSE_DONE_MARKER:
            return COMPLETE
        try:
            chunk = StreamChunk.model_validate_json(data)
        except pydantic.ValidationError:
            return None
        text = chunk.delta.text if chunk.delta else None
        if text:
            return SseEvent(kind="delta", text=text)
        return None
