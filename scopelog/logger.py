"""Leveled structured logger with child bindings and async scopes.

Example::

    logger = StructLogger.create(level="info", format="pretty", file="./logs/app.log")

    logger.info("Request processed", {"user_id": 123})
    logger.error("Database failed", db_error)

    # Persistent fields
    payments = logger.child({"service": "payments"})

    # Transient fields for everything the coroutine does, including awaits
    await logger.begin_scope({"requestId": request_id}, handle_request)

Create one root instance per process and derive the rest with ``child()``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Generator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Literal, Protocol, TypeVar, runtime_checkable

from scopelog.backend import DEFAULT_LOGGER_NAME, LogFormat, configure_backend
from scopelog.config import get_settings
from scopelog.scope import ScopeContext, bound_scope, get_current, run_with_scope


T = TypeVar("T")

LogLevel = Literal["error", "info", "debug"]
LOG_LEVELS: tuple[str, ...] = ("error", "info", "debug")

# Lower value = higher priority.
_PRIORITY = {name: rank for rank, name in enumerate(LOG_LEVELS)}

Fields = Mapping[str, Any]

# Keys the backend fills in itself; caller values for them move to "fields.<key>".
RESERVED_KEYS = frozenset({"event", "message", "level", "timestamp"})
RESERVED_PREFIX = "fields."


def _check_level(level: str) -> LogLevel:
    if level not in _PRIORITY:
        raise ValueError(f"Unknown log level {level!r}; expected one of {LOG_LEVELS}")
    return level  # type: ignore[return-value]


def merge_fields(scope: Fields | None, fields: Fields | None, extra: Fields | None = None) -> dict[str, Any]:
    """Overlay call-site fields on scope fields; later arguments win."""

    merged: dict[str, Any] = dict(scope) if scope else {}
    if fields:
        merged.update(fields)
    if extra:
        merged.update(extra)
    return merged


def escape_reserved(fields: dict[str, Any]) -> dict[str, Any]:
    """Rename caller keys that would collide with backend-owned record keys."""

    if RESERVED_KEYS.isdisjoint(fields):
        return fields
    return {(RESERVED_PREFIX + key if key in RESERVED_KEYS else key): value for key, value in fields.items()}


class Backend(Protocol):
    """What StructLogger needs from the record writer (a structlog bound logger)."""

    def bind(self, **new_values: Any) -> Backend: ...

    def info(self, event: str, **kw: Any) -> Any: ...

    def debug(self, event: str, **kw: Any) -> Any: ...

    def error(self, event: str, **kw: Any) -> Any: ...


@runtime_checkable
class Logger(Protocol):
    def level(self) -> LogLevel: ...

    def set_level(self, level: LogLevel) -> None: ...

    def info(self, message: str, fields: Fields | None = None, /, **kw: Any) -> None: ...

    def debug(self, message: str, fields: Fields | None = None, /, **kw: Any) -> None: ...

    def error(self, message: str, fields_or_error: Fields | BaseException | None = None, /, **kw: Any) -> None: ...

    def child(self, bindings: Fields | None = None, /, **kw: Any) -> Logger: ...

    async def begin_scope(self, context: Fields, unit_of_work: Callable[[], Awaitable[T]]) -> T: ...


class StructLogger:
    """structlog-backed ``Logger``.

    The threshold belongs to the instance: ``set_level`` on a child does not
    change its parent or siblings. Children start with their parent's level.
    """

    def __init__(self, backend: Backend, level: LogLevel = "info") -> None:
        self._backend = backend
        self._level = _check_level(level)

    @classmethod
    def create(
        cls,
        level: LogLevel | None = None,
        file: str | Path | None = None,
        format: LogFormat | None = None,
        *,
        stream: IO[str] | None = None,
        name: str = DEFAULT_LOGGER_NAME,
    ) -> StructLogger:
        """Build the process root logger; unset options come from settings.

        Production defaults to ``info``/``json``, everything else to
        ``debug``/``pretty``. The new logger becomes the one ``get_logger()``
        returns.
        """

        settings = get_settings()
        production = settings.is_production

        resolved_level = _check_level(level or settings.log_level or ("info" if production else "debug"))
        resolved_format = format or settings.log_format or ("json" if production else "pretty")
        resolved_file = file if file is not None else settings.log_file

        backend = configure_backend(format=resolved_format, file=resolved_file, stream=stream, name=name)
        root = cls(backend, level=resolved_level)
        set_logger(root)
        return root

    def level(self) -> LogLevel:
        return self._level

    def set_level(self, level: LogLevel) -> None:
        self._level = _check_level(level)

    def is_level_enabled(self, level: LogLevel) -> bool:
        return _PRIORITY[level] <= _PRIORITY[self._level]

    def info(self, message: str, fields: Fields | None = None, /, **kw: Any) -> None:
        if not self.is_level_enabled("info"):
            return
        self._backend.info(message, **escape_reserved(merge_fields(get_current(), fields, kw)))

    def debug(self, message: str, fields: Fields | None = None, /, **kw: Any) -> None:
        if not self.is_level_enabled("debug"):
            return
        self._backend.debug(message, **escape_reserved(merge_fields(get_current(), fields, kw)))

    def error(self, message: str, fields_or_error: Fields | BaseException | None = None, /, **kw: Any) -> None:
        # Every valid threshold includes "error", so there is no enablement check.
        if isinstance(fields_or_error, BaseException):
            fields: Fields | None = {"err": fields_or_error}
        else:
            fields = fields_or_error
        self._backend.error(message, **escape_reserved(merge_fields(get_current(), fields, kw)))

    def child(self, bindings: Fields | None = None, /, **kw: Any) -> StructLogger:
        return StructLogger(self._backend.bind(**escape_reserved(merge_fields(None, bindings, kw))), level=self._level)

    async def begin_scope(self, context: Fields, unit_of_work: Callable[[], Awaitable[T]]) -> T:
        return await run_with_scope(merge_fields(get_current(), context), unit_of_work)

    @contextmanager
    def scope(self, context: Fields | None = None, /, **kw: Any) -> Generator[ScopeContext, None, None]:
        """Synchronous counterpart of ``begin_scope``."""

        with bound_scope(merge_fields(get_current(), context, kw)) as merged:
            yield merged


_ROOT: StructLogger | None = None


def get_logger() -> StructLogger:
    """Return the process root logger, creating it from settings on first use."""

    if _ROOT is None:
        return StructLogger.create()
    return _ROOT


def set_logger(logger: StructLogger) -> None:
    global _ROOT
    _ROOT = logger


def reset_logger() -> None:
    """Forget the root logger (used by tests)."""

    global _ROOT
    _ROOT = None
