"""测试共用的假配置与 SSE 响应构造工具。"""

import json

import httpx


class SettingsStub:
    default_provider = None
    default_model = "claude-3-5-sonnet-latest"
    max_tokens = 256
    temperature = 0.5
    top_p = None
    top_k = None
    stop_sequences = []
    anthropic_api_key = "sk-ant-test-key"
    anthropic_base_url = "https://api.anthropic.com"
    anthropic_version = "2023-06-01"
    openai_api_key = "sk-openai-test-key"
    openai_base_url = "https://api.openai.com/v1"
    custom_base_url = None
    custom_api_key = None
    client_id = "completion-core/test"
    http_timeout = 1.0
    stream_read_timeout = 1.0
    system_prompt_locale = "en"


def sse_transport(chunks, status_code=200, captured=None, after=None):
    """返回一个按给定分块吐出响应体的 MockTransport。

    after: 所有分块发送完之后执行的协程函数（例如挂起或抛出异常）。
    """

    def handler(request):
        if captured is not None:
            captured.append(request)

        async def body():
            for chunk in chunks:
                yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            if after is not None:
                await after()

        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=body(),
        )

    return httpx.MockTransport(handler)


def data_line(payload) -> str:
    if isinstance(payload, str):
        return f"data: {payload}\n"
    return f"data: {json.dumps(payload)}\n"


def completion_payload(text, stop_reason=None, log_id="log-1"):
    return {
        "completion": text,
        "stop": "\n\nHuman:" if stop_reason == "stop_sequence" else None,
        "stop_reason": stop_reason,
        "truncated": False,
        "exception": None,
        "log_id": log_id,
    }


