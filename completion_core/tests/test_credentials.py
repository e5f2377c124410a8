import pytest

from completion_core.infrastructure.credentials.key_provider import SettingsCredentialProvider
from completion_core.tests.helpers import SettingsStub


class NoKeys(SettingsStub):
    anthropic_api_key = None
    openai_api_key = None


@pytest.mark.asyncio
async def test_key_from_settings():
    creds = SettingsCredentialProvider(SettingsStub())
    assert await creds.get_api_key("anthropic") == "sk-ant-test-key"
    assert await creds.get_api_key("custom") is None


@pytest.mark.asyncio
async def test_prompt_and_persist():
    asked, stored = [], {}

    def prompt(provider):
        asked.append(provider)
        return "sk-from-user-123"

    creds = SettingsCredentialProvider(NoKeys(), prompt=prompt, persist=stored.__setitem__)

    assert await creds.get_api_key("openai") == "sk-from-user-123"
    assert await creds.get_api_key("openai") == "sk-from-user-123"
    assert asked == ["openai"]
    assert stored == {"openai": "sk-from-user-123"}


@pytest.mark.asyncio
async def test_async_prompt_and_forget():
    calls = []

    async def prompt(provider):
        calls.append(provider)
        return f"sk-{provider}-{len(calls)}"

    creds = SettingsCredentialProvider(NoKeys(), prompt=prompt)
    assert await creds.get_api_key("anthropic") == "sk-anthropic-1"
    creds.forget("anthropic")
    assert await creds.get_api_key("anthropic") == "sk-anthropic-2"


@pytest.mark.asyncio
async def test_dismissed_prompt_is_not_persisted():
    stored = {}
    creds = SettingsCredentialProvider(NoKeys(), prompt=lambda provider: "", persist=stored.__setitem__)
    assert await creds.get_api_key("anthropic") is None
    assert stored == {}
