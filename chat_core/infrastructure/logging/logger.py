import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from chat_core.config.settings import settings


REDACT_LIMIT = 64
# extra 中可能带有用户或上游返回内容的字段
CONTENT_FIELDS = ("error", "detail", "provider_message")


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
            msg = (msg or "")[:REDACT_LIMIT]
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            extra = dict(extra)
            if self._redact_content:
                for key in CONTENT_FIELDS:
                    if isinstance(extra.get(key), str):
                        extra[key] = extra[key][:REDACT_LIMIT]
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(log_dir: str | Path | None = None, redact_content: Optional[bool] = None) -> logging.Logger:
    logger = logging.getLogger("chat_core")
    logger.setLevel(logging.INFO)
    # 重复调用时不叠加 handler
    for handler in list(logger.handlers):
        if getattr(handler, "_chat_core_handler", False):
            logger.removeHandler(handler)
            handler.close()
    if redact_content is None:
        redact_content = settings.log_redact_content
    log_dir = Path(log_dir or settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "chat.log", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact_content=redact_content))
    fh._chat_core_handler = True
    logger.addHandler(fh)
    return logger


logger = setup_logger()
