"""Observability helpers."""

from agent_dashboard.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_refresh,
    record_parser_failure,
    record_broadcast,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_refresh",
    "record_parser_failure",
    "record_broadcast",
]
