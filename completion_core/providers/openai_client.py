"""OpenAI Chat Completions 适配器，增量型家族。

同一个类同时服务两个标签：

- "openai": 官方接口，必须提供 API Key。
- "custom": 兼容 OpenAI 协议的自建服务，必须配置 custom_base_url，密钥可选。

流中每个负载的 choices[0].delta.content 是本次增量，finish_reason
为停止原因；[DONE] 哨兵表示流结束。
"""

from typing import Any, Dict, List, Optional

import httpx

from completion_core.config.settings import settings
from completion_core.domain.exceptions import ApiError, NotInitializedError, ValidationError
from completion_core.domain.models import (
    CompletionResult,
    Message,
    SamplingParameters,
    StreamEvent,
    WireRequest,
    normalize_stop_reason,
)
from completion_core.infrastructure.credentials.key_provider import CredentialProvider, SettingsCredentialProvider
from completion_core.infrastructure.logging.logger import logger
from completion_core.providers.base import stream_timeout
from completion_core.providers.registry import ProviderConfig, get_provider_config, resolve_base_url
from completion_core.streaming.session import StreamCallbacks, StreamSession


OPENAI_COMPATIBLE = ("openai", "custom")


class OpenAIChatClient:
    """OpenAI / OpenAI 兼容服务客户端实现。"""

    family = "delta"
    cumulative = False
    sentinel_terminates = True

    def __init__(
        self,
        cfg=settings,
        credentials: Optional[CredentialProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        name: str = "openai",
    ):
        if name not in OPENAI_COMPATIBLE:
            raise ValidationError(
                code="UNKNOWN_PROVIDER",
                message=f"{name!r} is not an OpenAI-compatible provider",
            )
        self._config: ProviderConfig = get_provider_config(name)
        self.name = self._config.name
        self._settings = cfg
        self._credentials = credentials or SettingsCredentialProvider(cfg)
        self._transport = transport
        self._api_key: Optional[str] = None
        self._base_url: Optional[str] = None

    async def init(self) -> None:
        base = resolve_base_url(self._config, self._settings)
        if not base:
            raise ValidationError(
                code="MISSING_BASE_URL",
                message="No LLM base path configured. Set CUSTOM_BASE_URL to use the custom provider.",
                provider=self.name,
            )
        api_key = await self._credentials.get_api_key(self._config.credential_name)
        if not api_key and self._config.requires_api_key:
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._config.credential_name.upper()}_API_KEY not set",
                provider=self.name,
            )
        self._api_key = api_key
        self._base_url = base
        logger.info("Provider initialized", extra={"extra": {"provider": self.name, "base_url": base}})

    def reset_credentials(self) -> None:
        """丢弃当前密钥，之后必须重新 init()。"""

        self._api_key = None
        self._base_url = None
        self._credentials.forget(self._config.credential_name)

    def create_session(self, params: SamplingParameters, callbacks: Optional[StreamCallbacks] = None) -> StreamSession:
        return StreamSession(self, callbacks, model=params.model)

    async def run_session(
        self, session: StreamSession, messages: List[Message], params: SamplingParameters
    ) -> CompletionResult:
        request = self.build_request(messages, params)
        async with httpx.AsyncClient(
            timeout=stream_timeout(self._settings), trust_env=False, transport=self._transport
        ) as client:
            return await session.run(client, request)

    async def complete_stream(
        self,
        messages: List[Message],
        params: SamplingParameters,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> CompletionResult:
        return await self.run_session(self.create_session(params, callbacks), messages, params)

    def build_request(self, messages: List[Message], params: SamplingParameters) -> WireRequest:
        if not self._base_url:
            raise NotInitializedError(
                code="NOT_INITIALIZED",
                message="OpenAI API is not initialized.",
                provider=self.name,
            )
        body: Dict[str, Any] = {
            "model": params.model,
            "messages": [m.to_payload() for m in messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "stream": True,
        }
        if params.top_p is not None:
            body["top_p"] = params.top_p
        if params.stop_sequences:
            body["stop"] = list(params.stop_sequences)
        headers = {
            "Accept": "text/event-stream",
            "Content-Type": "application/json",
            "Client": self._settings.client_id,
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return WireRequest(url=f"{self._base_url}{self._config.endpoint}", headers=headers, body=body)

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        error = payload.get("error")
        if isinstance(error, dict):
            raise ApiError(
                code="API_ERROR",
                message=error.get("message") or "OpenAI stream error",
                http_status=502,
                provider=self.name,
                error_type=error.get("type"),
            )
        choices = payload.get("choices") or []
        if not choices:
            return StreamEvent.delta(request_id=payload.get("id"))
        choice = choices[0]
        delta = choice.get("delta") or {}
        return StreamEvent.delta(
            text=delta.get("content"),
            stop_reason=normalize_stop_reason(choice.get("finish_reason")),
            request_id=payload.get("id"),
        )
