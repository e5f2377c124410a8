"""对外 API 服务模块。

ChatService 是流式核心的“编排调用方”：

- 持有一个 Conversation 句柄，在同一会话上串行化请求；
- 发送前追加 user 消息，流到达终止状态后追加 assistant 消息；
- 把累计文本经可选的 render 钩子（如 Markdown -> HTML）后交给 on_update；
- 支持中止当前流、重置会话；
- describe_error() 把异常分类映射为给用户看的说明文字。
"""

import asyncio
from typing import Any, Callable, Optional

from completion_core.config.settings import settings
from completion_core.domain.conversation import Conversation
from completion_core.domain.exceptions import (
    ApiError,
    BusinessError,
    NetworkError,
    NotInitializedError,
    RateLimitError,
    StreamCancelledError,
    StreamIncompleteError,
    StreamTimeoutError,
    ValidationError,
)
from completion_core.domain.models import CompletionResult, SamplingParameters
from completion_core.infrastructure.credentials.key_provider import CredentialProvider
from completion_core.infrastructure.logging.logger import logger
from completion_core.providers import create_provider
from completion_core.providers.base import ProviderClient
from completion_core.streaming.session import StreamCallbacks, StreamSession


class ChatService:
    def __init__(
        self,
        provider: ProviderClient,
        conversation: Optional[Conversation] = None,
        cfg=settings,
        render: Optional[Callable[[str], str]] = None,
    ):
        self._provider = provider
        self._settings = cfg
        if conversation is None:
            conversation = Conversation(locale=getattr(cfg, "system_prompt_locale", None))
        self._conversation = conversation
        self._render = render
        self._lock = asyncio.Lock()
        self._initialized = False
        self._current: Optional[StreamSession] = None

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def provider(self) -> ProviderClient:
        return self._provider

    @property
    def busy(self) -> bool:
        return self._current is not None

    async def start(self) -> None:
        """初始化 Provider（取得凭据），send() 首次调用时也会自动执行。"""

        await self._provider.init()
        self._initialized = True

    async def send(
        self,
        user_input: str,
        on_update: Optional[Callable[[str], Any]] = None,
        on_open: Optional[Callable[[Any], Any]] = None,
        on_complete: Optional[Callable[[str], Any]] = None,
        **overrides,
    ) -> CompletionResult:
        """发送一条用户消息并以流式方式等待回答。

        Args:
            user_input: 用户输入
            on_update: 累计文本（经 render 处理后）回调
            on_open: 响应头到达后的回调
            on_complete: 成功结束时的回调，参数为未经 render 的最终文本
            **overrides: 覆盖配置中的采样参数，如 model、max_tokens、temperature

        Raises:
            各种 domain.exceptions 中定义的异常
        """

        overrides.setdefault("provider", self._provider.name)
        params = SamplingParameters.from_settings(self._settings, **overrides)

        async with self._lock:
            if not self._initialized:
                await self.start()
            self._conversation.append_user(user_input)
            callbacks = StreamCallbacks(
                on_open=on_open,
                on_update=self._rendered(on_update),
                on_complete=on_complete,
            )
            session = self._provider.create_session(params, callbacks)
            self._current = session
            try:
                result = await self._provider.run_session(session, self._conversation.snapshot(), params)
            except Exception as e:
                logger.error(f"Chat failed: {e}", extra={"extra": {
                    "provider": self._provider.name,
                    "model": params.model,
                    "error": str(e),
                }})
                if isinstance(e, ApiError) and e.http_status == 401:
                    # 密钥被拒绝：丢弃缓存，下次 send() 重新 init() 取得密钥
                    self._provider.reset_credentials()
                    self._initialized = False
                    logger.warning("Discarded rejected API key", extra={"extra": {"provider": self._provider.name}})
                raise
            finally:
                self._current = None
            self._conversation.append_assistant(result.text)
            return result

    def abort(self, reason: str = "Stream aborted by caller") -> bool:
        """中止正在进行的流，返回是否确实有流被中止。"""

        session = self._current
        if session is None:
            return False
        session.abort(reason)
        return True

    def reset(self, system_prompt: Optional[str] = None) -> None:
        self._conversation.reset(system_prompt)

    def _rendered(self, on_update: Optional[Callable[[str], Any]]) -> Optional[Callable[[str], Any]]:
        if on_update is None or self._render is None:
            return on_update
        render = self._render

        def _update(text: str):
            return on_update(render(text))

        return _update


def create_chat_service(
    provider_name: Optional[str] = None,
    credentials: Optional[CredentialProvider] = None,
    render: Optional[Callable[[str], str]] = None,
    transport=None,
) -> ChatService:
    """按配置创建 Provider 与 ChatService。"""

    provider = create_provider(provider_name, credentials=credentials, transport=transport)
    return ChatService(provider=provider, render=render)


_COMMON_HINTS = (
    "- Invalid API key: make sure it was entered correctly.\n"
    "- Invalid model name: your current model is {model}.\n"
    "- Model not available for your API key.\n"
    "- Chat history too long: export the conversation and start a new chat."
)


def describe_error(provider: str, error: BaseException, model: Optional[str] = None) -> str:
    """把异常映射为给用户看的说明文字。"""

    model = model or getattr(settings, "default_model", None) or "No model configured"
    label = {"openai": "OpenAI", "custom": "custom LLM"}.get(provider, "Anthropic" if provider.startswith("anthropic") else provider)

    if isinstance(error, StreamCancelledError):
        return "The response was stopped before it finished."
    if isinstance(error, (ValidationError, NotInitializedError)):
        return f"{label} is not configured correctly: {error.message}"
    if isinstance(error, RateLimitError):
        return f"You're being rate limited by the {label} API. Wait a moment and try again.\nError message: '{error.message}'"
    if isinstance(error, StreamTimeoutError):
        return f"The {label} API stopped responding. Try again later.\nError message: '{error.message}'"
    if isinstance(error, (NetworkError, StreamIncompleteError)):
        return f"The connection to the {label} API was interrupted.\nError message: '{error.message}'"
    if isinstance(error, ApiError):
        return (
            f"The {label} API returned an error.\n"
            f"Error message: '{error.message}'.\n"
            f"Common reasons:\n- {label} might be having issues.\n- Exceeded quota.\n"
            + _COMMON_HINTS.format(model=model)
        )
    if isinstance(error, BusinessError):
        return f"Error: {error.message}"
    return f"Error: {error}"
