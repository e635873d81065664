"""Observability helpers."""

from gitlog_backend.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_diff_fetch,
    record_report_generation,
    record_llm_cache,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_diff_fetch",
    "record_report_generation",
    "record_llm_cache",
]
