"""Render exceptions and HTTP request/response objects into plain log data."""

from __future__ import annotations

import traceback
from collections.abc import Iterable, Mapping
from typing import Any

from starlette.requests import HTTPConnection


REDACTED = "[REDACTED]"

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
    }
)

_MAX_CAUSE_DEPTH = 5


def _safe_headers(items: Iterable[tuple[str, str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for key, value in items:
        name = key.lower()
        headers[name] = REDACTED if name in SENSITIVE_HEADERS else value
    return headers


def serialize_error(exc: BaseException, _depth: int = 0) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": type(exc).__name__,
        "message": str(exc),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip(),
    }

    cause = exc.__cause__
    if cause is None and not exc.__suppress_context__:
        cause = exc.__context__
    if cause is not None and _depth < _MAX_CAUSE_DEPTH:
        payload["cause"] = serialize_error(cause, _depth + 1)
    return payload


def serialize_request(req: HTTPConnection | Mapping[str, Any]) -> dict[str, Any]:
    """Accepts a Starlette request/connection or a raw ASGI scope."""

    conn = req if isinstance(req, HTTPConnection) else HTTPConnection(dict(req))
    client = conn.client
    return {
        "method": conn.scope.get("method"),
        "url": str(conn.url),
        "headers": _safe_headers(conn.headers.items()),
        "remoteAddress": client.host if client else None,
        "remotePort": client.port if client else None,
    }


def serialize_response(res: Any) -> dict[str, Any]:
    headers = getattr(res, "headers", None) or {}
    return {
        "statusCode": getattr(res, "status_code", None),
        "headers": _safe_headers(headers.items()),
    }


def _is_asgi_scope(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get("type") in ("http", "websocket")


def serialize_known_fields(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor for the ``err``, ``req`` and ``res`` keys."""

    err = event_dict.get("err")
    if isinstance(err, BaseException):
        event_dict["err"] = serialize_error(err)

    req = event_dict.get("req")
    if isinstance(req, HTTPConnection) or _is_asgi_scope(req):
        event_dict["req"] = serialize_request(req)

    res = event_dict.get("res")
    if res is not None and hasattr(res, "status_code"):
        event_dict["res"] = serialize_response(res)

    return event_dict


def err_to_exc_info(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Hand an ``err`` exception to the console renderer's traceback formatter."""

    err = event_dict.get("err")
    if isinstance(err, BaseException) and "exc_info" not in event_dict:
        event_dict["exc_info"] = event_dict.pop("err")
    return event_dict
