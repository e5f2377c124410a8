"""Provider 抽象接口。

上层（ChatService / 编辑器）不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个线路协议实现一个 ProviderClient（如 AnthropicCompleteClient）。
- 负责：init() 取得凭据；把 Message 列表 + SamplingParameters 转成 WireRequest；
  把流中每个 JSON 负载解析为 StreamEvent。
- 流的读取、拼行、累计与回调统一由 StreamSession 完成。

各实现之间没有继承关系，由 create_provider() 按运行时标签选择。
"""

from typing import Any, Dict, List, Optional, Protocol

import httpx

from completion_core.domain.models import CompletionResult, Message, SamplingParameters, StreamEvent, WireRequest
from completion_core.streaming.session import StreamCallbacks, StreamSession


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 标签，用于日志/错误提示。
    - family: "cumulative" 或 "delta"。
    - cumulative / sentinel_terminates: 供 MessageAccumulator 使用。
    """

    name: str
    family: str
    cumulative: bool
    sentinel_terminates: bool

    async def init(self) -> None:
        ...

    def reset_credentials(self) -> None:
        ...

    def build_request(self, messages: List[Message], params: SamplingParameters) -> WireRequest:
        ...

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        ...

    def create_session(self, params: SamplingParameters, callbacks: Optional[StreamCallbacks] = None) -> StreamSession:
        ...

    async def run_session(
        self, session: StreamSession, messages: List[Message], params: SamplingParameters
    ) -> CompletionResult:
        ...

    async def complete_stream(
        self,
        messages: List[Message],
        params: SamplingParameters,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> CompletionResult:
        ...


def stream_timeout(cfg) -> httpx.Timeout:
    """连接/写入使用 http_timeout，读取使用更长的 stream_read_timeout。"""

    base = float(getattr(cfg, "http_timeout", 30.0))
    read = float(getattr(cfg, "stream_read_timeout", 120.0) or base)
    return httpx.Timeout(base, read=read)
