"""Anthropic Messages（/v1/messages）适配器，增量型家族。

请求体是结构化的消息数组，system 消息单独放到顶层 system 字段；
流中每个事件是带 type 字段的记录：

- message_start:        携带 message.id，作为 request_id。
- content_block_delta:  delta.text 为本次增量文本。
- message_delta:        delta.stop_reason 为停止原因。
- message_stop:         流结束。
- error:                服务端错误，整个会话失败。
- 其他（ping、content_block_start/stop）：无状态变化。

[DONE] 哨兵同样视为流结束。
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
from completion_core.providers.base import stream_timeout
from completion_core.providers.registry import ANTHROPIC_MESSAGES_CONFIG, resolve_base_url
from completion_core.streaming.session import StreamCallbacks, StreamSession


# error 事件类型 -> 近似的 HTTP 状态码
_ERROR_STATUS = {
    "invalid_request_error": 400,
    "authentication_error": 401,
    "permission_error": 403,
    "not_found_error": 404,
    "rate_limit_error": 429,
    "api_error": 500,
    "overloaded_error": 529,
}


class AnthropicMessagesClient:
    """Anthropic Messages API 客户端实现。"""

    name = ANTHROPIC_MESSAGES_CONFIG.name
    family = "delta"
    cumulative = False
    sentinel_terminates = True

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
        api_key = await self._credentials.get_api_key(ANTHROPIC_MESSAGES_CONFIG.credential_name)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set", provider=self.name)
        self._api_key = api_key

    def reset_credentials(self) -> None:
        self._api_key = None
        self._credentials.forget(ANTHROPIC_MESSAGES_CONFIG.credential_name)

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
        if not self._api_key:
            raise NotInitializedError(
                code="NOT_INITIALIZED",
                message="Anthropic API client is not initialized.",
                provider=self.name,
            )
        system_parts = [m.content for m in messages if m.role == "system" and m.content]
        body: Dict[str, Any] = {
            "model": params.model,
            "max_tokens": params.max_tokens,
            "messages": [m.to_payload() for m in messages if m.role != "system"],
            "temperature": params.temperature,
            "stream": True,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if params.top_p is not None:
            body["top_p"] = params.top_p
        if params.top_k is not None:
            body["top_k"] = params.top_k
        if params.stop_sequences:
            body["stop_sequences"] = list(params.stop_sequences)
        base = resolve_base_url(ANTHROPIC_MESSAGES_CONFIG, self._settings)
        return WireRequest(
            url=f"{base}{ANTHROPIC_MESSAGES_CONFIG.endpoint}",
            headers={
                "Accept": "text/event-stream",
                "Content-Type": "application/json",
                "Client": self._settings.client_id,
                "x-api-key": self._api_key,
                "anthropic-version": self._settings.anthropic_version,
            },
            body=body,
        )

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        event_type = payload.get("type")
        if event_type == "content_block_delta":
            delta = payload.get("delta") or {}
            return StreamEvent.delta(text=delta.get("text"))
        if event_type == "message_start":
            message = payload.get("message") or {}
            return StreamEvent.delta(request_id=message.get("id"))
        if event_type == "message_delta":
            delta = payload.get("delta") or {}
            return StreamEvent.delta(stop_reason=normalize_stop_reason(delta.get("stop_reason")))
        if event_type == "message_stop":
            return StreamEvent.delta(terminal=True)
        if event_type == "error":
            error = payload.get("error") or {}
            error_type = error.get("type") or "api_error"
            raise ApiError(
                code="API_ERROR",
                message=f"{error_type}: {error.get('message') or ''}".strip(),
                http_status=_ERROR_STATUS.get(error_type, 500),
                provider=self.name,
                error_type=error_type,
            )
        return StreamEvent.delta()
