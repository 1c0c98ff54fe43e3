import json
import logging

from app.core.logging_setup import JsonFormatter
from app.core.request_context import clear_request_context, set_request_context


def _record(message: str, *args) -> logging.LogRecord:
    return logging.LogRecord("app.test", logging.INFO, __file__, 1, message, args, None)


def test_json_formatter_includes_request_context():
    set_request_context(request_id="req-1", session_id="sess-1")
    try:
        payload = json.loads(JsonFormatter("%(message)s").format(_record("claimed coupon_id=%s", 5)))
    finally:
        clear_request_context()

    assert payload["message"] == "claimed coupon_id=5"
    assert payload["request_id"] == "req-1"
    assert payload["session_id"] == "sess-1"
    assert payload["level"] == "INFO"
    assert payload["module"] == "app.test"


def test_json_formatter_masks_secrets():
    formatted = JsonFormatter("%(message)s").format(_record("cookie admin_session=abc.def password=hunter2"))

    message = json.loads(formatted)["message"]
    assert "abc.def" not in message
    assert "hunter2" not in message
    assert "admin_session=***" in message
