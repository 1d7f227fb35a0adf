from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from scopelog.config import get_settings
from scopelog.logger import StructLogger, reset_logger
from scopelog.middleware import add_request_logging
from scopelog.scope import get_current


_LOG_ENV_VARS = ("ENVIRONMENT", "LOG_LEVEL", "LOG_FILE", "LOG_FORMAT")


@dataclass
class Record:
    level: str
    message: str
    fields: dict[str, Any]


@dataclass
class RecordingBackend:
    """In-memory stand-in for the structlog backend; children share ``records``."""

    records: list[Record] = field(default_factory=list)
    bindings: dict[str, Any] = field(default_factory=dict)

    def bind(self, **new_values: Any) -> RecordingBackend:
        return RecordingBackend(records=self.records, bindings={**self.bindings, **new_values})

    def _emit(self, level: str, event: str, kw: dict[str, Any]) -> None:
        self.records.append(Record(level=level, message=event, fields={**self.bindings, **kw}))

    def info(self, event: str, **kw: Any) -> None:
        self._emit("info", event, kw)

    def debug(self, event: str, **kw: Any) -> None:
        self._emit("debug", event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._emit("error", event, kw)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in _LOG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the working directory out of the settings.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()

    yield

    reset_logger()
    get_settings.cache_clear()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def logger(backend: RecordingBackend) -> StructLogger:
    return StructLogger(backend, level="debug")


@pytest.fixture
def app(logger: StructLogger) -> FastAPI:
    app = FastAPI(title="Orders", version="0.1.0")
    add_request_logging(app, logger)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/orders")
    async def list_orders() -> dict[str, list]:
        return {"orders": []}

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str) -> dict[str, Any]:
        logger.info("Loading order", {"order_id": order_id})
        await asyncio.sleep(0.01)
        scope = get_current() or {}
        return {"id": order_id, "requestId": scope.get("requestId")}

    return app


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
