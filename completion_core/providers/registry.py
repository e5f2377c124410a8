"""Provider 配置与模型 -> Provider 的推断规则。

本模块把“运行时 Provider 标签”与线路协议细节解耦：

- 标签（name）：在代码和配置里使用的统一名称，例如 "anthropic"、"openai"。
- family：线路协议家族。"cumulative" 每个事件携带完整累计文本，
  "delta" 每个事件只携带增量 token。

上层只关心标签，具体走哪个端点、读哪个密钥由这里集中配置。"""

from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from completion_core.domain.exceptions import ValidationError


Family = Literal["cumulative", "delta"]


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    family: Family
    base_url: str
    endpoint: str
    # 凭据查找用的名字，两个 Anthropic 变体共用同一个密钥
    credential_name: str
    # Settings 中覆盖 base_url 的字段名
    base_url_setting: str
    requires_api_key: bool = True


ANTHROPIC_COMPLETE_CONFIG = ProviderConfig(
    name="anthropic-complete",
    family="cumulative",
    base_url="https://api.anthropic.com",
    endpoint="/v1/complete",
    credential_name="anthropic",
    base_url_setting="anthropic_base_url",
)

ANTHROPIC_MESSAGES_CONFIG = ProviderConfig(
    name="anthropic",
    family="delta",
    base_url="https://api.anthropic.com",
    endpoint="/v1/messages",
    credential_name="anthropic",
    base_url_setting="anthropic_base_url",
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    family="delta",
    base_url="https://api.openai.com/v1",
    endpoint="/chat/completions",
    credential_name="openai",
    base_url_setting="openai_base_url",
)

# 兼容 OpenAI 协议的自建服务，base_url 必须由配置给出
CUSTOM_CONFIG = ProviderConfig(
    name="custom",
    family="delta",
    base_url="",
    endpoint="/chat/completions",
    credential_name="custom",
    base_url_setting="custom_base_url",
    requires_api_key=False,
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "anthropic-complete": ANTHROPIC_COMPLETE_CONFIG,
    "anthropic": ANTHROPIC_MESSAGES_CONFIG,
    "openai": OPENAI_CONFIG,
    "custom": CUSTOM_CONFIG,
}

_OPENAI_MODEL_PREFIXES = ("gpt", "o1", "o3", "o4", "chatgpt")
_LEGACY_ANTHROPIC_PREFIXES = ("claude-v1", "claude-instant", "claude-2")


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = (name or "").lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise ValidationError(
        code="UNKNOWN_PROVIDER",
        message=f"Unknown provider: {name!r}. Expected one of {sorted(PROVIDER_REGISTRY)}",
    )


def provider_from_model(model: Optional[str]) -> str:
    """根据模型 ID 推断 Provider 标签。"""

    m = (model or "").lower()
    if m == "custom":
        return "custom"
    if m.startswith(_OPENAI_MODEL_PREFIXES):
        return "openai"
    if m.startswith(_LEGACY_ANTHROPIC_PREFIXES):
        return "anthropic-complete"
    return "anthropic"


def resolve_base_url(cfg: ProviderConfig, settings_obj) -> str:
    base = getattr(settings_obj, cfg.base_url_setting, None) or cfg.base_url
    return base.rstrip("/")
