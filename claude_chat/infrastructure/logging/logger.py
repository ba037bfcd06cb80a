import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from claude_chat.config.settings import settings

# 可能携带对话正文或服务端返回内容的字段，开启脱敏时截断
CONTENT_FIELDS = ("content", "delta", "error", "user_input")
REDACT_LENGTH = 64
RESERVED_FIELDS = ("ts", "level", "name", "msg", "exc")


def _redact(value: Any) -> Any:
    if isinstance(value, str) and len(value) > REDACT_LENGTH:
        return value[:REDACT_LENGTH]
    return value


class JsonFormatter(logging.Formatter):
    """一行一个 JSON 对象；extra={"extra": {...}} 中的字段（session_id、model 等）平铺到顶层。"""

    def __init__(self, redact: Optional[bool] = None):
        super().__init__()
        self._redact = redact

    @property
    def redact(self) -> bool:
        if self._redact is None:
            return bool(settings.log_redact_content)
        return self._redact

    def format(self, record: logging.LogRecord) -> str:
        redact = self.redact
        msg = record.getMessage()
        if redact:
            msg = _redact(msg or "")
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                if redact and key in CONTENT_FIELDS:
                    value = _redact(value)
                # 上下文字段不能覆盖基础字段
                payload[f"ctx_{key}" if key in RESERVED_FIELDS else key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("claude_chat")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "claude_chat.log", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
