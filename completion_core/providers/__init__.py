"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 配置与模型推断规则 (registry)。
- 对话消息与单 prompt 字符串的互转 (prompt)。
- 提供各线路协议的具体实现 (anthropic_complete_client、anthropic_messages_client、openai_client)。
"""

from typing import Optional

from completion_core.config.settings import settings
from completion_core.infrastructure.credentials.key_provider import CredentialProvider
from completion_core.providers.anthropic_complete_client import AnthropicCompleteClient
from completion_core.providers.anthropic_messages_client import AnthropicMessagesClient
from completion_core.providers.base import ProviderClient
from completion_core.providers.openai_client import OpenAIChatClient
from completion_core.providers.registry import get_provider_config, provider_from_model


def create_provider(
    name: Optional[str] = None,
    credentials: Optional[CredentialProvider] = None,
    transport=None,
) -> ProviderClient:
    """根据标签创建 Provider 实例。

    未给出 name 时依次使用配置中的 default_provider、根据 default_model 推断的标签。
    """

    provider_name = (
        name
        or getattr(settings, "default_provider", None)
        or provider_from_model(getattr(settings, "default_model", None))
    )
    cfg = get_provider_config(provider_name)
    if cfg.name == "anthropic-complete":
        return AnthropicCompleteClient(settings, credentials=credentials, transport=transport)
    if cfg.name == "anthropic":
        return AnthropicMessagesClient(settings, credentials=credentials, transport=transport)
    return OpenAIChatClient(settings, credentials=credentials, transport=transport, name=cfg.name)


__all__ = [
    "AnthropicCompleteClient",
    "AnthropicMessagesClient",
    "OpenAIChatClient",
    "ProviderClient",
    "create_provider",
    "provider_from_model",
]
