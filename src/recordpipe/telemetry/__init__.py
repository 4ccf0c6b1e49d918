"""
Telemetry module for recordpipe.

Provides structured logging with pipeline-scoped context.
"""

from recordpipe.telemetry.logger import (
    JsonFormatter,
    LogContext,
    LogLevel,
    PipeLogger,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context_scope,
    set_log_context,
)

__all__ = [
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "PipeLogger",
    "SensitiveDataMasker",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "log_context_scope",
    "set_log_context",
]
