"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CLAUDE_CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class ClaudeSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- API 相关配置 ----
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    claude_base_url: str = Field(
        default="https://api.anthropic.com/v1",
        description="Claude API 基础URL",
    )
    api_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    default_model: str = Field(
        default="claude-3-5-sonnet",
        description="逻辑模型名，由 registry 映射为具体模型 ID",
    )

    # ---- 请求参数默认值 ----
    max_tokens: int = Field(default=1000, ge=1, description="单次回复的最大 token 数")
    max_tokens_fallback: int = Field(
        default=500,
        ge=1,
        description="请求中 max_tokens 非正数时使用的兜底值",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=1.0, description="生成温度")
    top_p: float = Field(default=1.0, ge=0.0, le=1.0, description="nucleus sampling")
    use_streaming: bool = Field(default=False, description="是否默认使用流式输出")
    system_prompt: Optional[str] = Field(default=None, description="可选的系统提示词")

    # ---- 内存管理 ----
    max_history_messages: int = Field(
        default=50,
        ge=0,
        le=200,
        description="会话历史最大消息数（0 表示不限制）",
    )
    history_trim_count: int = Field(default=30, ge=0, description="超限时裁掉的最旧消息数")
    max_ui_messages: int = Field(default=100, ge=0, description="UI 层最多保留的消息控件数")
    ui_trim_count: int = Field(default=70, ge=0, description="UI 层裁剪后保留的消息控件数")

    # ---- 运行环境 ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = ClaudeSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = ClaudeSettings
