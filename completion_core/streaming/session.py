"""流式会话：驱动一次请求从建立连接到最终结果的完整生命周期。

调用方只会看到两种结局之一：run() 返回 CompletionResult，或抛出一个异常。

处理顺序：
1. POST 请求并等待响应头；非 2xx 直接失败，不读取响应体。
2. 触发 on_open(response)。
3. 每收到一段文本：LineReassembler -> EventParser -> MessageAccumulator，
   累计文本有变化时触发 on_update(text)。回调抛出的异常会让整个会话失败。
4. 到达终止状态后立即停止读取（退出 stream 上下文即关闭连接），
   返回结果并触发 on_complete(text)。
5. 连接在终止之前关闭、超时、网络错误、调用方中止时，以对应异常结束，
   on_complete 不会被触发；结束之后不会再有任何回调。
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import httpx

from completion_core.domain.exceptions import (
    ApiError,
    BusinessError,
    NetworkError,
    RateLimitError,
    StreamCancelledError,
    StreamIncompleteError,
    StreamTimeoutError,
)
from completion_core.domain.models import CompletionResult, StreamEvent, WireRequest
from completion_core.infrastructure.logging.logger import logger
from completion_core.streaming.accumulator import MessageAccumulator
from completion_core.streaming.parser import EventParser
from completion_core.streaming.reassembler import LineReassembler


Callback = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass
class StreamCallbacks:
    """调用方（编辑器 / UI 层）提供的回调，均可为普通函数或协程函数。

    - on_open: 响应头到达后触发一次，参数为 httpx.Response。
    - on_update: 每次累计文本增长时触发，参数为完整累计文本。
    - on_complete: 成功结束时触发一次，参数为最终文本。
    """

    on_open: Optional[Callback] = None
    on_update: Optional[Callback] = None
    on_complete: Optional[Callback] = None


class StreamDecoder(Protocol):
    """StreamSession 对 Provider 适配器的最小依赖。"""

    name: str
    cumulative: bool
    sentinel_terminates: bool

    def decode(self, payload: Dict[str, Any]) -> StreamEvent:
        ...


class StreamSession:
    def __init__(
        self,
        decoder: StreamDecoder,
        callbacks: Optional[StreamCallbacks] = None,
        model: Optional[str] = None,
    ):
        self._decoder = decoder
        self._callbacks = callbacks or StreamCallbacks()
        self._provider = decoder.name
        self._model = model
        self._reassembler = LineReassembler()
        self._parser = EventParser(decoder)
        self._accumulator = MessageAccumulator(
            cumulative=decoder.cumulative,
            sentinel_terminates=decoder.sentinel_terminates,
            provider=decoder.name,
        )
        self._task: Optional[asyncio.Task] = None
        self._started = False
        self._resolved = False
        self._aborted = False
        self._abort_reason = ""

    @property
    def text(self) -> str:
        return self._accumulator.text

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self, reason: str = "Stream aborted by caller") -> None:
        """中止会话。

        在回调内部调用时，当前数据块处理完这一行后即停止；
        在其他任务中调用时，会取消正在执行 run() 的任务。
        """

        if self._resolved or self._aborted:
            return
        self._aborted = True
        self._abort_reason = reason
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def run(self, client: httpx.AsyncClient, request: WireRequest) -> CompletionResult:
        if self._started:
            raise RuntimeError("StreamSession.run() may only be called once")
        self._started = True
        self._task = asyncio.current_task()
        self._reassembler.reset()

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"provider": self._provider, "model": self._model, "url": request.url}
        logger.info("Opening completion stream", extra={"extra": log_ctx})

        try:
            result = await self._stream(client, request, log_ctx)
        except asyncio.CancelledError:
            self._resolved = True
            if not self._aborted:
                raise
            if self._task is not None and hasattr(self._task, "uncancel"):
                self._task.uncancel()
            error = self._cancelled()
            self._log_failure(error, log_ctx)
            raise error from None
        except BusinessError as e:
            self._resolved = True
            self._log_failure(e, log_ctx)
            raise
        except Exception as e:
            # 回调等调用方代码抛出的异常原样传播
            self._resolved = True
            logger.error(
                f"Completion stream failed: {e}",
                extra={"extra": {**log_ctx, "error": repr(e)}},
            )
            raise

        self._resolved = True
        logger.info(
            "Completion stream finished",
            extra={"extra": {
                **log_ctx,
                "chars": len(result.text),
                "stop_reason": result.stop_reason,
                "request_id": result.request_id,
                "elapsed_seconds": round(time.time() - start_time, 2),
            }},
        )
        await self._invoke(self._callbacks.on_complete, result.text)
        return result

    async def _stream(self, client: httpx.AsyncClient, request: WireRequest, log_ctx: Dict[str, Any]) -> CompletionResult:
        try:
            async with client.stream("POST", request.url, json=request.body, headers=request.headers) as response:
                self._check_status(response)
                log_ctx["status"] = response.status_code
                await self._invoke(self._callbacks.on_open, response)
                self._raise_if_aborted()
                async for chunk in response.aiter_text():
                    self._raise_if_aborted()
                    if await self._process_chunk(chunk):
                        return self._accumulator.result(self._provider, self._model)
                self._raise_if_aborted()
        except httpx.TimeoutException as e:
            raise StreamTimeoutError(
                code="STREAM_TIMEOUT",
                message=f"Timed out waiting for {self._provider} stream: {e}",
                http_status=504,
                provider=self._provider,
            )
        except httpx.StreamClosed:
            # 调用方在 on_open 等回调里关闭了响应
            raise self._cancelled()
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._aborted:
                raise self._cancelled()
            raise NetworkError(
                code="NETWORK_ERROR",
                message=str(e) or type(e).__name__,
                http_status=502,
                provider=self._provider,
            )

        raise StreamIncompleteError(
            code="STREAM_INCOMPLETE",
            message=f"{self._provider} stream closed before a stop condition was received",
            http_status=502,
            provider=self._provider,
            chars=len(self._accumulator.text),
            pending=self._reassembler.pending[:200],
        )

    async def _process_chunk(self, chunk: str) -> bool:
        """处理一个数据块，返回流是否已到达终止状态。"""

        for line in self._reassembler.feed(chunk):
            outcome = self._accumulator.ingest(self._parser.parse(line))
            if outcome.update is not None:
                await self._invoke(self._callbacks.on_update, outcome.update)
                self._raise_if_aborted()
            if outcome.terminal:
                return True
            if outcome.halt_chunk:
                break
        return False

    def _check_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        status = response.status_code
        message = f"Sampling error: {status} {response.reason_phrase}".strip()
        if status == 429:
            raise RateLimitError(code="RATE_LIMIT", message=message, http_status=status, provider=self._provider)
        raise ApiError(code="API_ERROR", message=message, http_status=status, provider=self._provider)

    def _raise_if_aborted(self) -> None:
        if self._aborted:
            raise self._cancelled()

    def _cancelled(self) -> StreamCancelledError:
        return StreamCancelledError(
            code="STREAM_CANCELLED",
            message=self._abort_reason or "Stream connection was closed by the caller",
            http_status=499,
            provider=self._provider,
            chars=len(self._accumulator.text),
        )

    def _log_failure(self, error: BusinessError, log_ctx: Dict[str, Any]) -> None:
        logger.error(
            f"Completion stream failed: {error.message}",
            extra={"extra": {**log_ctx, "code": error.code, "http_status": error.http_status}},
        )

    @staticmethod
    async def _invoke(callback: Optional[Callback], arg: Any) -> None:
        if callback is None:
            return
        result = callback(arg)
        if inspect.isawaitable(result):
            await result
