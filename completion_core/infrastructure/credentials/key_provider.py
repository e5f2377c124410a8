"""API Key 查找。

核心只依赖 CredentialProvider 协议；密钥的安全存储与交互式询问属于
外部协作方（编辑器的 SecretStorage、输入框等），通过 prompt / persist
两个回调注入。
"""

import inspect
from typing import Any, Callable, Dict, Optional, Protocol

from completion_core.config.settings import settings
from completion_core.infrastructure.logging.logger import logger


class CredentialProvider(Protocol):
    async def get_api_key(self, provider: str) -> Optional[str]:
        ...

    def forget(self, provider: str) -> None:
        """丢弃已缓存的密钥（例如服务端返回 401 之后），下次查找重新询问。"""
        ...


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class SettingsCredentialProvider:
    """按“缓存 -> 配置 -> 询问并持久化”的顺序查找密钥。

    - 配置字段名为 ``<provider>_api_key``，例如 anthropic_api_key。
    - prompt(provider) 返回用户输入的密钥，可为协程函数。
    - persist(provider, key) 在询问成功后被调用，可为协程函数。
    """

    def __init__(
        self,
        cfg=settings,
        prompt: Optional[Callable[[str], Any]] = None,
        persist: Optional[Callable[[str, str], Any]] = None,
    ):
        self._settings = cfg
        self._prompt = prompt
        self._persist = persist
        self._cache: Dict[str, str] = {}

    async def get_api_key(self, provider: str) -> Optional[str]:
        if provider in self._cache:
            return self._cache[provider]
        key = getattr(self._settings, f"{provider}_api_key", None)
        if not key and self._prompt is not None:
            key = await _maybe_await(self._prompt(provider))
            if key and self._persist is not None:
                await _maybe_await(self._persist(provider, key))
                logger.info("Stored API key", extra={"extra": {"provider": provider}})
        if key:
            self._cache[provider] = key
        return key or None

    def forget(self, provider: str) -> None:
        self._cache.pop(provider, None)
