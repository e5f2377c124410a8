"""统一的对话、请求参数与流式事件数据模型。

本模块定义了流式补全核心在不同 Provider 之间共享的标准数据结构：

- Message: 一条对话消息（system/user/assistant）。
- SamplingParameters: 单次请求的采样参数，按请求构造、不可变。
- StreamEvent: 事件解析器产出的流式事件（delta / done / malformed）。
- CompletionResult: 一次流式会话成功结束后的最终结果。
- WireRequest: Provider 适配层生成的 HTTP 请求描述。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

from completion_core.domain.exceptions import ValidationError


# 消息角色（与 OpenAI / Anthropic 的 role 字段对应）
Role = Literal["system", "user", "assistant"]

# 归一化后的停止原因
StopReason = Literal["stop_sequence", "max_tokens", "end_turn"]

ROLES = ("system", "user", "assistant")

# 各厂商停止原因 -> 统一停止原因
_STOP_REASON_ALIASES = {
    "stop_sequence": "stop_sequence",
    "max_tokens": "max_tokens",
    "end_turn": "end_turn",
    "stop": "end_turn",
    "length": "max_tokens",
}


def normalize_stop_reason(raw: Optional[str]) -> Optional[str]:
    """把厂商返回的停止原因映射为 stop_sequence / max_tokens / end_turn。

    未知取值原样保留，避免丢失信息；None 仍为 None。
    """

    if raw is None:
        return None
    return _STOP_REASON_ALIASES.get(raw, raw)


@dataclass
class Message:
    """一条对话消息。

    - role: 消息角色，system/user/assistant。
    - content: 纯文本内容。
    """

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SamplingParameters:
    """单次请求的采样参数。

    每次请求重新构造，生命周期内只由对应的 StreamSession 持有。
    """

    model: str
    max_tokens: int
    temperature: float = 0.7
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Tuple[str, ...] = ()
    stream: bool = True
    provider: Optional[str] = None

    def __post_init__(self):
        if not self.model:
            raise ValidationError(code="MISSING_MODEL", message="No model configured")
        if self.max_tokens is None or self.max_tokens <= 0:
            raise ValidationError(
                code="INVALID_MAX_TOKENS",
                message=f"max_tokens must be positive, got {self.max_tokens!r}",
            )
        if self.temperature is None or not 0.0 <= self.temperature <= 2.0:
            raise ValidationError(
                code="INVALID_TEMPERATURE",
                message=f"temperature must be within [0, 2], got {self.temperature!r}",
            )
        if self.top_p is not None and not 0.0 < self.top_p <= 1.0:
            raise ValidationError(
                code="INVALID_TOP_P",
                message=f"top_p must be within (0, 1], got {self.top_p!r}",
            )

    @classmethod
    def from_settings(cls, cfg, **overrides) -> "SamplingParameters":
        """从配置对象构造参数，overrides 中非 None 的字段优先。"""

        values = {
            "model": getattr(cfg, "default_model", None),
            "max_tokens": getattr(cfg, "max_tokens", None),
            "temperature": getattr(cfg, "temperature", 0.7),
            "top_p": getattr(cfg, "top_p", None),
            "top_k": getattr(cfg, "top_k", None),
            "stop_sequences": tuple(getattr(cfg, "stop_sequences", None) or ()),
            "provider": getattr(cfg, "default_provider", None),
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = tuple(value) if key == "stop_sequences" else value
        return cls(**values)


@dataclass
class StreamEvent:
    """事件解析器的输出。

    kind:
        - "delta": 结构化负载解码成功。text 为增量片段或完整累计文本
          （取决于 Provider 家族），stop_reason/terminal 表示是否到达终止。
        - "done": 收到哨兵 [DONE]。
        - "malformed": 负载无法解码，raw 保存原始字符串。
    """

    kind: Literal["delta", "done", "malformed"]
    text: Optional[str] = None
    stop_reason: Optional[str] = None
    terminal: bool = False
    request_id: Optional[str] = None
    raw: Optional[str] = None

    @classmethod
    def delta(
        cls,
        text: Optional[str] = None,
        stop_reason: Optional[str] = None,
        terminal: bool = False,
        request_id: Optional[str] = None,
    ) -> "StreamEvent":
        return cls(kind="delta", text=text, stop_reason=stop_reason, terminal=terminal, request_id=request_id)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(kind="done")

    @classmethod
    def malformed(cls, raw: str) -> "StreamEvent":
        return cls(kind="malformed", raw=raw)


@dataclass
class CompletionResult:
    """一次流式会话的最终结果，每个会话成功时恰好产生一次。"""

    text: str
    stop_reason: Optional[str] = None
    request_id: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None


@dataclass
class WireRequest:
    """Provider 适配层构造出的 HTTP 请求。"""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any] = field(default_factory=dict)
