"""Anthropic 文本补全（/v1/complete）适配器，累计型家族。

本模块负责：

1. 把对话消息拍平成 ``\\n\\nHuman: ... \\n\\nAssistant:`` 形式的 prompt。
2. 构造 /v1/complete 的流式请求（X-API-Key、Client 请求头）。
3. 解析每个事件负载 ``{completion, stop, stop_reason, truncated, exception, log_id}``。

该接口每个事件都携带“到目前为止的完整补全文本”，终止信号是非空的
stop_reason；[DONE] 哨兵在 stop_reason 之前出现属于异常，只记录不结束。
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
from completion_core.providers.prompt import HUMAN_PROMPT, messages_to_prompt
from completion_core.providers.registry import ANTHROPIC_COMPLETE_CONFIG, resolve_base_url
from completion_core.streaming.session import StreamCallbacks, StreamSession


class AnthropicCompleteClient:
    """Anthropic /v1/complete 客户端实现。"""

    name = ANTHROPIC_COMPLETE_CONFIG.name
    family = "cumulative"
    cumulative = True
    sentinel_terminates = False

    def __init__(
        self,
        cfg=settings,
        credentials: Optional[CredentialProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = cfg
        self._credentials = credentials or SettingsCredentialProvider(cfg)
        self._transport = transport
        self._api_key: Optional[str] = None

    async def init(self) -> None:
        api_key = await self._credentials.get_api_key(ANTHROPIC_COMPLETE_CONFIG.credential_name)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set", provider=self.name)
        self._api_key = api_key

    def reset_credentials(self) -> None:
        self._api_key = None
        self._credentials.forget(ANTHROPIC_COMPLETE_CONFIG.credential_name)

    # ---- 流式 ----

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

    # ---- 辅助方法 ----

    def build_request(self, messages: List[Message], params: SamplingParameters) -> WireRequest:
        if not self._api_key:
            raise NotInitializedError(
                code="NOT_INITIALIZED",
                message="Anthropic API client is not initialized.",
                provider=self.name,
            )
        stop_sequences = [HUMAN_PROMPT] + [s for s in params.stop_sequences if s != HUMAN_PROMPT]
        body: Dict[str, Any] = {
            "prompt": messages_to_prompt(messages),
            "model": params.model,
            "max_tokens_to_sample": params.max_tokens,
            "stop_sequences": stop_sequences,
            "temperature": params.temperature,
            "stream": True,
        }
        if params.top_p is not None:
            body["top_p"] = params.top_p
        if params.top_k is not None:
            body["top_k"] = params.top_k
        base = resolve_base_url(ANTHROPIC_COMPLETE_CONFIG, self._settings)
        return WireRequest(
            url=f"{base}{ANTHROPIC_COMPLETE_CONFIG.endpoint}",
            headers={
                "Accept": "text/event-stream",
                "Content-Type": "application/json",
                "Client": self._settings.client_id,
                "X-API-Key": self._api_key,
            },
            body=body,
        )

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        error = payload.get("error")
        if isinstance(error, dict):
            raise ApiError(
                code="API_ERROR",
                message=f"{error.get('type') or 'error'}: {error.get('message') or ''}".strip(),
                http_status=502,
                provider=self.name,
            )
        if payload.get("exception"):
            logger.warning(
                "Completion payload carries an exception",
                extra={"extra": {"provider": self.name, "exception": payload.get("exception")}},
            )
        return StreamEvent.delta(
            text=payload.get("completion"),
            stop_reason=normalize_stop_reason(payload.get("stop_reason")),
            request_id=payload.get("log_id"),
        )
