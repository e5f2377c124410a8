import asyncio
import json

import httpx
import pytest

from completion_core.api.service import ChatService, describe_error
from completion_core.domain.conversation import Conversation
from completion_core.domain.exceptions import (
    ApiError,
    RateLimitError,
    StreamCancelledError,
    StreamTimeoutError,
    ValidationError,
)
from completion_core.infrastructure.credentials.key_provider import SettingsCredentialProvider
from completion_core.providers.anthropic_complete_client import AnthropicCompleteClient
from completion_core.providers.openai_client import OpenAIChatClient
from completion_core.tests.helpers import SettingsStub, completion_payload, data_line, sse_transport


def _service(transport, cfg=None, render=None):
    cfg = cfg or SettingsStub()
    provider = AnthropicCompleteClient(cfg, transport=transport)
    return ChatService(provider, conversation=Conversation(system_prompt="sys"), cfg=cfg, render=render)


@pytest.mark.asyncio
async def test_send_records_user_and_assistant_messages():
    service = _service(sse_transport([
        data_line(completion_payload("Hel")),
        data_line(completion_payload("Hello!", stop_reason="stop_sequence")),
    ]))
    updates = []

    result = await service.send("hi", on_update=updates.append, model="claude-2.1")

    assert result.text == "Hello!"
    assert updates == ["Hel", "Hello!"]
    assert [(m.role, m.content) for m in service.conversation.messages] == [
        ("system", "sys"),
        ("user", "hi"),
        ("assistant", "Hello!"),
    ]
    assert not service.busy


@pytest.mark.asyncio
async def test_render_hook_applies_to_updates_only():
    service = _service(
        sse_transport([data_line(completion_payload("**bold**", stop_reason="stop_sequence"))]),
        render=lambda text: text.replace("**", "<b>", 1).replace("**", "</b>", 1),
    )
    updates, completed = [], []

    await service.send("hi", on_update=updates.append, on_complete=completed.append, model="claude-2.1")

    assert updates == ["<b>bold</b>"]
    assert completed == ["**bold**"]
    assert service.conversation.messages[-1].content == "**bold**"


@pytest.mark.asyncio
async def test_failed_stream_keeps_user_message_only():
    service = _service(sse_transport([], status_code=500))

    with pytest.raises(ApiError):
        await service.send("hi", model="claude-2.1")

    assert [m.role for m in service.conversation.messages] == ["system", "user"]
    assert not service.busy


@pytest.mark.asyncio
async def test_invalid_parameters_fail_before_any_request():
    captured = []
    service = _service(sse_transport([], captured=captured))

    with pytest.raises(ValidationError) as exc:
        await service.send("hi", model="claude-2.1", temperature=5.0)

    assert exc.value.code == "INVALID_TEMPERATURE"
    assert captured == []
    assert len(service.conversation) == 1


@pytest.mark.asyncio
async def test_abort_cancels_running_send():
    release = asyncio.Event()

    async def wait_for_release():
        await release.wait()

    cfg = SettingsStub()
    first = AnthropicCompleteClient(cfg, transport=sse_transport(
        [data_line(completion_payload("one"))],
        after=wait_for_release,
    ))
    service = ChatService(first, conversation=Conversation(system_prompt="sys"), cfg=cfg)

    task = asyncio.create_task(service.send("first", model="claude-2.1"))
    await asyncio.sleep(0.05)
    assert service.busy
    service.abort()
    with pytest.raises(StreamCancelledError):
        await task

    release.set()
    assert not service.busy
    assert service.abort() is False


@pytest.mark.asyncio
async def test_serialized_sends_see_previous_answer():
    captured = []
    cfg = SettingsStub()
    provider = OpenAIChatClient(cfg, transport=sse_transport(
        [data_line({"id": "x", "choices": [{"delta": {"content": "ok"}}]}), "data: [DONE]\n"],
        captured=captured,
    ))
    service = ChatService(provider, conversation=Conversation(system_prompt="sys"), cfg=cfg)

    await asyncio.gather(
        service.send("one", model="gpt-4o"),
        service.send("two", model="gpt-4o"),
    )

    second_body = json.loads(captured[1].content)
    assert [m["content"] for m in second_body["messages"]] == ["sys", "one", "ok", "two"]
    assert len(service.conversation) == 5


@pytest.mark.asyncio
async def test_reset_clears_history():
    service = _service(sse_transport([data_line(completion_payload("a", stop_reason="stop_sequence"))]))
    await service.send("q", model="claude-2.1")
    service.reset("new system")
    assert service.conversation.to_payload() == [{"role": "system", "content": "new system"}]


def test_describe_error_messages():
    assert "rate limited by the OpenAI API" in describe_error(
        "openai", RateLimitError(code="RATE_LIMIT", message="429 Too Many Requests", http_status=429)
    )
    api = describe_error(
        "anthropic", ApiError(code="API_ERROR", message="Sampling error: 401 Unauthorized", http_status=401), model="claude-2.1"
    )
    assert api.startswith("The Anthropic API returned an error.")
    assert "claude-2.1" in api
    assert "custom LLM" in describe_error("custom", StreamTimeoutError(code="STREAM_TIMEOUT", message="t"))
    assert describe_error("openai", StreamCancelledError(code="STREAM_CANCELLED", message="x")).startswith(
        "The response was stopped"
    )
    assert describe_error("openai", KeyError("boom")) == "Error: 'boom'"


@pytest.mark.asyncio
async def test_rejected_key_is_discarded_and_requested_again():
    class NoKeySettings(SettingsStub):
        anthropic_api_key = None

    captured = []
    responses = [
        sse_transport([], status_code=401, captured=captured),
        sse_transport([data_line(completion_payload("ok", stop_reason="stop_sequence"))], captured=captured),
    ]

    def handler(request):
        return responses.pop(0).handler(request)

    entered = iter(["sk-wrong-key-0001", "sk-right-key-0002"])
    cfg = NoKeySettings()
    credentials = SettingsCredentialProvider(cfg, prompt=lambda provider: next(entered))
    provider = AnthropicCompleteClient(cfg, credentials=credentials, transport=httpx.MockTransport(handler))
    service = ChatService(provider, conversation=Conversation(system_prompt="sys"), cfg=cfg)

    with pytest.raises(ApiError):
        await service.send("hi", model="claude-2.1")
    result = await service.send("again", model="claude-2.1")

    assert result.text == "ok"
    assert [r.headers["X-API-Key"] for r in captured] == ["sk-wrong-key-0001", "sk-right-key-0002"]


@pytest.mark.asyncio
async def test_other_errors_keep_the_key():
    class NoKeySettings(SettingsStub):
        anthropic_api_key = None

    asked = []

    def prompt(provider):
        asked.append(provider)
        return "sk-entered-key-0001"

    cfg = NoKeySettings()
    credentials = SettingsCredentialProvider(cfg, prompt=prompt)
    provider = AnthropicCompleteClient(cfg, credentials=credentials, transport=sse_transport([], status_code=500))
    service = ChatService(provider, conversation=Conversation(system_prompt="sys"), cfg=cfg)

    for _ in range(2):
        with pytest.raises(ApiError):
            await service.send("hi", model="claude-2.1")
    assert asked == ["anthropic"]
