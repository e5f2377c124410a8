"""SSE 风格的事件行解析。

每一行的解析结果：

- ``data: [DONE]``            -> StreamEvent.done()
- ``data: <json object>``      -> 交给 Provider 的 decode() 生成 delta 事件
- ``data: <坏 JSON>``          -> StreamEvent.malformed(raw)，流继续
- ``data: <结构不符的 JSON>``   -> 同上，decode() 的结构性错误不会中断会话
- 其他行（空行、注释、event:/id: 等帧字段）直接忽略，返回 None。
"""

import json
from typing import Any, Dict, Optional, Protocol

from completion_core.domain.models import StreamEvent
from completion_core.infrastructure.logging.logger import logger


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class PayloadDecoder(Protocol):
    """把解码后的 JSON 负载转换为 StreamEvent，由各 Provider 实现。"""

    name: str

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        ...


class EventParser:
    def __init__(self, decoder: PayloadDecoder):
        self._decoder = decoder

    def parse(self, line: str) -> Optional[StreamEvent]:
        if line.endswith("\r"):
            line = line[:-1]
        if not line.startswith(DATA_PREFIX):
            return None
        payload = line[len(DATA_PREFIX):]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload == DONE_SENTINEL:
            return StreamEvent.done()
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            # 个别情况下一个 JSON 负载会被拆成两行，丢弃即可
            logger.debug(
                "Skipping undecodable stream payload",
                extra={"extra": {"provider": self._decoder.name, "payload": payload[:200]}},
            )
            return StreamEvent.malformed(payload)
        if not isinstance(data, dict):
            return StreamEvent.malformed(payload)
        try:
            event = self._decoder.decode(data)
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            # JSON 合法但不符合 Provider 的负载结构；ApiError 等业务异常照常抛出
            logger.debug(
                "Skipping stream payload with unexpected shape",
                extra={"extra": {"provider": self._decoder.name, "payload": payload[:200], "error": repr(e)}},
            )
            return StreamEvent.malformed(payload)
        if event.text is not None and not isinstance(event.text, str):
            logger.debug(
                "Skipping stream payload with non-text content",
                extra={"extra": {"provider": self._decoder.name, "payload": payload[:200]}},
            )
            return StreamEvent.malformed(payload)
        return event
