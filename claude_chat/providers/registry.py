"""Claude API 常量与模型配置。

本模块将“逻辑模型名”与“具体模型 ID”解耦：

- 逻辑名（logical_name）：在代码/配置里使用的统一名称，例如 "claude-3-5-sonnet"。
- provider_model：Anthropic 实际提供的模型 ID，例如 "claude-3-5-sonnet-20241022"。

上层只关心逻辑名，具体用哪个带日期的模型版本由这里集中配置，便于升级。"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

# ---- HTTP / 协议常量 ----
API_VERSION = "2023-06-01"
MESSAGES_PATH = "/messages"
CONTENT_TYPE_JSON = "application/json"
ACCEPT_SSE = "text/event-stream"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_ACCEPT = "Accept"
HEADER_API_KEY = "x-api-key"
HEADER_ANTHROPIC_VERSION = "anthropic-version"

SSE_DATA_PREFIX = "data: "
SSE_DONE_MARKER = "[DONE]"

# ---- 请求参数默认值 ----
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 1.0
DEFAULT_MAX_TOKENS = 1000
DEFAULT_MAX_TOKENS_FALLBACK = 500


class ClaudeModel(str, Enum):
    """可选的逻辑模型名。"""

    CLAUDE_3_HAIKU = "claude-3-haiku"
    CLAUDE_3_SONNET = "claude-3-sonnet"
    CLAUDE_3_OPUS = "claude-3-opus"
    CLAUDE_3_5_HAIKU = "claude-3-5-haiku"
    CLAUDE_3_5_SONNET = "claude-3-5-sonnet"
    CLAUDE_3_7_SONNET = "claude-3-7-sonnet"
    CLAUDE_4_SONNET = "claude-sonnet-4"


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int = DEFAULT_MAX_TOKENS
    default_temperature: float = DEFAULT_TEMPERATURE


@dataclass
class ProviderConfig:
    """Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}{MESSAGES_PATH}"


def _model(logical: ClaudeModel, provider_model: str) -> ModelConfig:
    return ModelConfig(logical_name=logical.value, provider_model=provider_model)


CLAUDE_CONFIG = ProviderConfig(
    name="claude",
    base_url="https://api.anthropic.com/v1",
    models={
        m.logical_name: m
        for m in (
            _model(ClaudeModel.CLAUDE_3_HAIKU, "claude-3-haiku-20240307"),
            _model(ClaudeModel.CLAUDE_3_SONNET, "claude-3-sonnet-20240229"),
            _model(ClaudeModel.CLAUDE_3_OPUS, "claude-3-opus-20240229"),
            _model(ClaudeModel.CLAUDE_3_5_HAIKU, "claude-3-5-haiku-20241022"),
            _model(ClaudeModel.CLAUDE_3_5_SONNET, "claude-3-5-sonnet-20241022"),
            _model(ClaudeModel.CLAUDE_3_7_SONNET, "claude-3-7-sonnet-20250219"),
            _model(ClaudeModel.CLAUDE_4_SONNET, "claude-sonnet-4-20250514"),
        )
    },
)


def get_model_config(name: Union[str, ClaudeModel]) -> ModelConfig:
    """根据逻辑名获取 ModelConfig，名称不区分大小写。"""

    key = (name.value if isinstance(name, ClaudeModel) else name).lower()
    for k, cfg in CLAUDE_CONFIG.models.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown model: {name!r}")


def resolve_model(name: Union[str, ClaudeModel, None]) -> str:
    """把逻辑名映射为模型 ID；未登记的名称视为已经是模型 ID，原样返回。"""

    if not name:
        return ""
    try:
        return get_model_config(name).provider_model
    except KeyError:
        return name.value if isinstance(name, ClaudeModel) else name
