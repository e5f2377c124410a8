import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from completion_core.config.settings import settings


# extra 中可能携带模型输出或原始流数据的字段
CONTENT_FIELDS = ("payload", "pending", "exception")
REDACTED_LENGTH = 64


def _redact(value):
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    return text[:REDACTED_LENGTH]


class JsonFormatter(logging.Formatter):
    """每条记录输出一行 JSON，extra={"extra": {...}} 中的字段合并到顶层。"""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        redact = settings.log_redact_content
        if redact:
            msg = (msg or "")[:REDACTED_LENGTH]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                payload[key] = _redact(value) if redact and key in CONTENT_FIELDS and value is not None else value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("completion_core")
    logger.setLevel(getattr(logging, str(settings.log_level).upper(), logging.INFO))
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "completion.log", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
