"""Observability helpers: structured logging, request context, in-process
metrics and the ASGI middleware that ties them together."""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
