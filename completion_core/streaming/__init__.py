"""流式协议客户端核心。

- reassembler: 任意文本块 -> 完整行。
- parser: 行 -> StreamEvent。
- accumulator: StreamEvent -> 累计文本与终止状态。
- session: 一次请求的完整生命周期编排。
"""

from completion_core.streaming.accumulator import IngestOutcome, MessageAccumulator
from completion_core.streaming.parser import DONE_SENTINEL, EventParser
from completion_core.streaming.reassembler import LineReassembler
from completion_core.streaming.session import StreamCallbacks, StreamSession

__all__ = [
    "DONE_SENTINEL",
    "EventParser",
    "IngestOutcome",
    "LineReassembler",
    "MessageAccumulator",
    "StreamCallbacks",
    "StreamSession",
]
