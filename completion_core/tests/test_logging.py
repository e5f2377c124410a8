import json
import logging

from completion_core.infrastructure.logging import logger as logger_module
from completion_core.infrastructure.logging.logger import JsonFormatter


def _record(msg, extra=None):
    record = logging.LogRecord("completion_core", logging.WARNING, __file__, 1, msg, None, None)
    if extra is not None:
        record.extra = extra
    return record


def test_json_line_merges_extra():
    line = JsonFormatter().format(_record("Opening completion stream", {"provider": "openai", "model": "gpt-4o"}))
    data = json.loads(line)
    assert data["msg"] == "Opening completion stream"
    assert data["level"] == "WARNING"
    assert data["provider"] == "openai"
    assert data["ts"].endswith("Z")


def test_redaction_truncates_content_fields(monkeypatch):
    class RedactingSettings:
        log_redact_content = True

    monkeypatch.setattr(logger_module, "settings", RedactingSettings())
    line = JsonFormatter().format(_record("x" * 100, {"payload": "y" * 100, "provider": "anthropic"}))
    data = json.loads(line)
    assert data["msg"] == "x" * 64
    assert data["payload"] == "y" * 64
    assert data["provider"] == "anthropic"
