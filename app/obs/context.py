"""Request-scoped identifiers held in ContextVars.

The webhook sets ``message_sid_var`` and ``user_var`` so every log line
emitted while handling a message carries them without threading arguments
through the quiz engine.
"""

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
message_sid_var: ContextVar[Optional[str]] = ContextVar("message_sid", default=None)
user_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


def clear_context() -> None:
    """Reset context variables to defaults."""
    request_id_var.set(None)
    message_sid_var.set(None)
    user_var.set(None)
