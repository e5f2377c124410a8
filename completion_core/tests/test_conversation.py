import pytest

from completion_core.domain.conversation import Conversation
from completion_core.domain.exceptions import ValidationError
from completion_core.prompts import load_system_prompt


class EnglishSettings:
    system_prompt_locale = "en"


class ChineseSettings:
    system_prompt_locale = "zh"


def test_new_conversation_starts_with_system_prompt(monkeypatch):
    monkeypatch.setattr("completion_core.domain.conversation.settings", EnglishSettings())
    conv = Conversation()
    assert len(conv) == 1
    assert conv.messages[0].role == "system"
    assert conv.messages[0].content == load_system_prompt("en")


def test_default_prompt_follows_configured_locale(monkeypatch):
    monkeypatch.setattr("completion_core.domain.conversation.settings", ChineseSettings())
    zh = load_system_prompt("zh")
    assert zh != load_system_prompt("en")
    assert Conversation().system_prompt == zh
    assert Conversation(locale="en").system_prompt == load_system_prompt("en")
    assert Conversation(system_prompt="explicit", locale="zh").system_prompt == "explicit"


def test_append_and_reset():
    conv = Conversation(system_prompt="Be terse.")
    conv.append_user("hi")
    conv.append_assistant("hello")
    assert [m.role for m in conv.messages] == ["system", "user", "assistant"]

    conv.reset()
    assert len(conv) == 1
    assert conv.messages[0].content == "Be terse."

    conv.reset(system_prompt="Be verbose.")
    assert conv.system_prompt == "Be verbose."
    assert conv.to_payload() == [{"role": "system", "content": "Be verbose."}]


def test_snapshot_is_independent():
    conv = Conversation(system_prompt="sys")
    snap = conv.snapshot()
    snap.append(snap[0])
    snap[0].content = "changed"
    assert len(conv) == 1
    assert conv.messages[0].content == "sys"


def test_payload_round_trip():
    conv = Conversation(system_prompt="sys")
    conv.append_user("q")
    conv.append_assistant("a")
    restored = Conversation.from_payload(conv.to_payload())
    assert restored.to_payload() == conv.to_payload()
    assert restored.system_prompt == "sys"


def test_from_payload_rejects_unknown_role():
    with pytest.raises(ValidationError) as exc:
        Conversation.from_payload([{"role": "system", "content": "s"}, {"role": "tool", "content": "x"}])
    assert exc.value.code == "INVALID_MESSAGE"


def test_unknown_locale_falls_back_to_english():
    assert load_system_prompt("xx") == load_system_prompt("en")
