"""把一串流式事件折叠为累计文本，并跟踪是否到达终止状态。

两种 Provider 家族在这里被统一：

- 累计型（cumulative=True）：每个事件携带“到目前为止的完整文本”，直接替换；
  终止信号是负载中非空的 stop_reason，[DONE] 哨兵只是异常情况。
- 增量型（cumulative=False）：每个事件只携带新 token，需要拼接；
  终止信号是 Provider 标记的流结束事件，或 [DONE] 哨兵本身。
"""

from dataclasses import dataclass
from typing import Optional

from completion_core.domain.models import CompletionResult, StreamEvent
from completion_core.infrastructure.logging.logger import logger


@dataclass
class IngestOutcome:
    """单个事件对会话的影响。

    - update: 需要上报给 on_update 的新累计文本；None 表示不上报。
    - halt_chunk: 停止处理当前数据块中剩余的行。
    - terminal: 流已到达终止状态。
    """

    update: Optional[str] = None
    halt_chunk: bool = False
    terminal: bool = False


class MessageAccumulator:
    def __init__(self, cumulative: bool, sentinel_terminates: bool, provider: str = ""):
        self._cumulative = cumulative
        self._sentinel_terminates = sentinel_terminates
        self._provider = provider
        self.text = ""
        self.stop_reason: Optional[str] = None
        self.request_id: Optional[str] = None
        self.finished = False

    def ingest(self, event: Optional[StreamEvent]) -> IngestOutcome:
        if event is None or self.finished or event.kind == "malformed":
            return IngestOutcome()

        if event.kind == "done":
            if self._sentinel_terminates:
                self.finished = True
                return IngestOutcome(terminal=True)
            logger.warning(
                "Unexpected done message before stop_reason has been issued",
                extra={"extra": {"provider": self._provider, "chars": len(self.text)}},
            )
            return IngestOutcome(halt_chunk=True)

        if event.request_id and not self.request_id:
            self.request_id = event.request_id

        update = self._apply_text(event.text)

        if event.stop_reason is not None:
            self.stop_reason = event.stop_reason
        if event.terminal or (self._cumulative and event.stop_reason is not None):
            self.finished = True
        return IngestOutcome(update=update, terminal=self.finished)

    def _apply_text(self, fragment: Optional[str]) -> Optional[str]:
        if not fragment:
            return None
        if self._cumulative:
            if not fragment.startswith(self.text):
                # 已上报的文本不能被回退或改写
                logger.warning(
                    "Ignoring completion that does not extend reported text",
                    extra={"extra": {"provider": self._provider, "chars": len(self.text), "new_chars": len(fragment)}},
                )
                return None
            new_text = fragment
        else:
            new_text = self.text + fragment
        if new_text == self.text:
            return None
        self.text = new_text
        return new_text

    def result(self, provider: Optional[str] = None, model: Optional[str] = None) -> CompletionResult:
        return CompletionResult(
            text=self.text,
            stop_reason=self.stop_reason,
            request_id=self.request_id,
            provider=provider or self._provider or None,
            model=model,
        )
