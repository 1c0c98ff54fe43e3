from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional

from app.core.request_context import get_request_context

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Optional attributes passed through ``extra=`` that become top-level JSON keys.
EXTRA_FIELDS = ("endpoint", "method", "status_code", "duration_ms", "coupon_id", "client_ip")

_MASKED_KEYS = ("admin_session", "password", "secret", "token")
_MASK_PATTERN = re.compile(
    r"(?P<key>\b(?:%s)\w*\s*[:=]\s*)(?P<value>[^\s\",;}]+)" % "|".join(_MASKED_KEYS),
    re.IGNORECASE,
)


def mask_sensitive(value: str) -> str:
    return _MASK_PATTERN.sub(lambda match: f"{match.group('key')}***", value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the request context of the current task."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_sensitive(record.getMessage()),
        }
        for field, value in get_request_context().items():
            payload[field] = getattr(record, field, None) or value
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(logger_name).setLevel(level)
    # One "request completed" line per request already covers access logging.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
