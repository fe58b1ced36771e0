"""Structured JSON logging to stdout.

One JSON object per line; user identifiers (phone numbers) are redacted to
their last four digits before they are written.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from app.obs.context import request_id_var, message_sid_var, user_var

_USER_KEYS = ("user", "user_id", "from", "from_number")


def redact_user(value: Any) -> Any:
    s = str(value) if value is not None else ""
    if not s:
        return s
    digits = [c for c in s if c.isdigit()]
    if len(digits) < 4:
        return "***"
    tail = "".join(digits[-4:])
    return f"***{tail}"


def log_event(event: str, **fields: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    payload: Dict[str, Any] = {
        "ts": now,
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    payload.setdefault("message_sid", message_sid_var.get())
    if not any(k in fields for k in _USER_KEYS):
        payload["user"] = redact_user(user_var.get())

    for k, v in fields.items():
        if k in _USER_KEYS:
            payload["user"] = redact_user(v)
        else:
            payload[k] = v

    try:
        print(json.dumps(payload, separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        # Never let a bad field take the request down
        pass
