from __future__ import annotations

import json
from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from demo_service.config import Settings, get_settings
from demo_service.main import create_app
from demo_service.observability.metrics import MetricRegistry
from demo_service.observability.request_log import RequestLogger


class ListSink:
    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.lines: list[str] = []

    def write(self, line: str) -> None:
        self.lines.append(line)

    def records(self) -> list[dict]:
        return [json.loads(line) for line in self.lines]


class FailingSink:
    name = "broken"

    def __init__(self) -> None:
        self.attempts = 0

    def write(self, line: str) -> None:
        self.attempts += 1
        raise OSError("disk full")


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("PORT", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry()


@pytest.fixture
def memory_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def sink_factory() -> type[ListSink]:
    return ListSink


@pytest.fixture
def request_logger(memory_sink: ListSink) -> RequestLogger:
    return RequestLogger([memory_sink])


@pytest.fixture
def app(settings: Settings, registry: MetricRegistry) -> FastAPI:
    return create_app(settings, registry=registry)


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    # Unhandled handler errors should come back as 500 responses, not test failures.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
