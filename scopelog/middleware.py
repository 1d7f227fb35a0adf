"""ASGI middleware that logs each request inside its own logging scope.

Usage::

    app = FastAPI()
    add_request_logging(app, logger)                      # skips health checks
    add_request_logging(app, logger, ["/status"])         # custom skip list
    add_request_logging(app, logger, [*DEFAULT_SKIP_PATHS, "/admin/ping"])
    add_request_logging(app, logger, [])                  # log everything
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request

from scopelog.logger import Logger


DEFAULT_SKIP_PATHS: tuple[str, ...] = (
    "/health",
    "/healthz",
    "/up",
    "/ping",
    "/metrics",
    "/favicon.ico",
)

REQUEST_ID_HEADER = "x-request-id"
RESPONSE_ID_HEADER = "X-Request-Id"
REQUEST_ID_FIELD = "requestId"


@dataclass
class ResponseInfo:
    """What is known about a response once its start message has been sent."""

    status_code: int | None = None
    headers: Headers = field(default_factory=Headers)


class RequestLoggingMiddleware:
    """Adds a request id scope, the X-Request-Id header, and request/response logs."""

    def __init__(
        self,
        app: Callable[..., Any],
        logger: Logger,
        skip_paths: Iterable[str] = DEFAULT_SKIP_PATHS,
    ) -> None:
        self.app = app
        self.logger = logger
        self.skip_paths = frozenset(skip_paths)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http" or scope.get("path") in self.skip_paths:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        # An empty header counts as missing.
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        start = perf_counter()
        response = ResponseInfo()

        async def send_wrapper(message: dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[RESPONSE_ID_HEADER] = request_id
                response.status_code = int(message.get("status", 500))
                response.headers = Headers(raw=list(headers.raw))

            await send(message)

            if message.get("type") == "http.response.body" and not message.get("more_body", False):
                duration = (perf_counter() - start) * 1000.0
                self.logger.info("Outgoing response", {"res": response, "duration": duration})

        async def handle() -> None:
            self.logger.info("Incoming request", {"req": request})
            try:
                await self.app(scope, receive, send_wrapper)
            except Exception as exc:
                self.logger.error("Request failed", exc)
                raise

        await self.logger.begin_scope({REQUEST_ID_FIELD: request_id}, handle)


def add_request_logging(app: Any, logger: Logger, skip_paths: Iterable[str] | None = None) -> None:
    """Register ``RequestLoggingMiddleware`` on a Starlette/FastAPI app."""

    app.add_middleware(
        RequestLoggingMiddleware,
        logger=logger,
        skip_paths=DEFAULT_SKIP_PATHS if skip_paths is None else tuple(skip_paths),
    )
