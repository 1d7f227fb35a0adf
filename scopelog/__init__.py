"""Structured logging with child bindings and async-propagated scopes.

Scopes live in a ContextVar, so the fields bound by ``begin_scope`` follow a
request through its awaits without leaking into concurrent requests.
"""

from scopelog.logger import LOG_LEVELS, Logger, LogLevel, StructLogger, get_logger, reset_logger, set_logger
from scopelog.middleware import DEFAULT_SKIP_PATHS, RequestLoggingMiddleware, add_request_logging
from scopelog.scope import get_current, run_with_scope

__all__ = [
    "DEFAULT_SKIP_PATHS",
    "LOG_LEVELS",
    "LogLevel",
    "Logger",
    "RequestLoggingMiddleware",
    "StructLogger",
    "add_request_logging",
    "get_current",
    "get_logger",
    "reset_logger",
    "run_with_scope",
    "set_logger",
]
