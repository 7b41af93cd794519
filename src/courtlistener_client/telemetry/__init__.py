"""
Telemetry - structured logging for the client and resilience layer.
"""

from courtlistener_client.telemetry.logger import (
    ClientLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    reset_log_context,
    set_log_context,
)

__all__ = [
    "ClientLogger",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "reset_log_context",
    "set_log_context",
]
