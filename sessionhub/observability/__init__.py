"""Observability helpers."""

from sessionhub.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_listing,
    record_parser_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_listing",
    "record_parser_failure",
]
