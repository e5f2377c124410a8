"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("COMPLETION_CONFIG_FILE")
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


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 选择与采样参数 ----
    default_provider: Optional[str] = Field(
        default=None,
        description="默认 Provider 标签；为空时根据 default_model 推断",
    )
    default_model: str = Field(default="claude-3-5-sonnet-latest", description="模型 ID")
    max_tokens: int = Field(default=1024, ge=1, description="单次回答的 token 上限")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0, description="nucleus 采样阈值")
    top_k: Optional[int] = Field(default=None, ge=1, description="top-k 采样阈值")
    stop_sequences: List[str] = Field(default_factory=list, description="额外的停止序列")

    # Anthropic
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", description="Anthropic API 基础URL")
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")
    # 兼容 OpenAI 协议的自建服务
    custom_base_url: Optional[str] = Field(default=None, description="自定义 LLM 服务基础URL")
    custom_api_key: Optional[str] = Field(default=None, description="自定义 LLM 服务密钥（可选）")

    client_id: str = Field(default="completion-core/0.1.0", description="Client 请求头")
    http_timeout: float = Field(default=30.0, ge=1.0, description="建立连接/写请求超时时间（秒）")
    stream_read_timeout: float = Field(
        default=120.0,
        ge=1.0,
        description="两段流数据之间允许的最长等待时间（秒）",
    )
    system_prompt_locale: str = Field(default="en", description="默认系统提示词语言")

    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
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

    @field_validator("anthropic_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("custom_base_url", "anthropic_base_url", "openai_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

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


settings = Settings()
