"""Shared test fixtures for pytest.

The environment is pinned to ``test`` before any application module is
imported so settings load without an env file and frames are not paced.
Upstreams are faked with ``httpx.MockTransport``; callers with an
in-memory CollectingSink.
"""

import json
import os
from collections.abc import Callable, Generator, Iterable, Iterator
from typing import Any

import httpx
import pytest


os.environ["ENVIRONMENT"] = "test"
os.environ["STREAM_PACING_MS"] = "0"

from deepclaude.core.exceptions import ClientDisconnected
from deepclaude.services.dialog import (
    DialogOrchestrator,
    EndpointTable,
    FailureHandler,
    ModelEndpoint,
    ModelKind,
    PhaseRunner,
    UpstreamStreamReader,
)


REASONER_URL = "https://reasoner.test/chat/completions"
ANSWERER_URL = "https://answerer.test/chat/completions"


class CollectingSink:
    """In-memory FrameSink.

    With ``fail_on_write`` set, that write (1-based) and every later one
    raise ClientDisconnected instead of being stored.
    """

    def __init__(self, fail_on_write: int | None = None) -> None:
        self.frames: list[bytes] = []
        self.attempts = 0
        self._fail_on_write = fail_on_write

    def write(self, data: bytes) -> None:
        self.attempts += 1
        if self._fail_on_write is not None and self.attempts >= self._fail_on_write:
            raise ClientDisconnected()
        self.frames.append(data)


def data_line(event: dict[str, Any] | str) -> str:
    payload = event if isinstance(event, str) else json.dumps(event)
    return f"data: {payload}"


def reasoning_event(text: str | None, **extra: Any) -> dict[str, Any]:
    return {
        "id": "r-1",
        "model": "reasoner-test",
        "choices": [{"index": 0, "delta": {"reasoning_content": text}}],
        **extra,
    }


def answer_event(text: str | None, **extra: Any) -> dict[str, Any]:
    return {
        "id": "a-1",
        "model": "answerer-test",
        "choices": [{"index": 0, "delta": {"content": text}}],
        **extra,
    }


def usage_event(total_tokens: int) -> dict[str, Any]:
    return {"id": "u-1", "choices": [], "usage": {"total_tokens": total_tokens}}


def sse_body(events: Iterable[dict[str, Any] | str], done: bool = True) -> bytes:
    lines = [data_line(e) for e in events]
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")


class BrokenStream(httpx.SyncByteStream):
    """Response body that yields some chunks and then fails mid-read."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = list(chunks)

    def __iter__(self) -> Iterator[bytes]:
        yield from self._chunks
        raise httpx.ReadError("connection reset by peer")


class FakeUpstreams:
    """MockTransport handler serving canned responses per URL.

    Every request is recorded together with its decoded JSON body.
    """

    def __init__(self) -> None:
        self.responses: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def serve(
        self,
        url: str,
        events: Iterable[dict[str, Any] | str] = (),
        *,
        status_code: int = 200,
        done: bool = True,
    ) -> None:
        body = sse_body(events, done=done)
        self.responses[url] = lambda request: httpx.Response(
            status_code,
            content=body,
            headers={"Content-Type": "text/event-stream"},
        )

    def serve_broken(self, url: str, events: Iterable[dict[str, Any] | str]) -> None:
        body = sse_body(events, done=False)
        self.responses[url] = lambda request: httpx.Response(
            200, stream=BrokenStream([body])
        )

    def fail_with(self, url: str, exc: Exception) -> None:
        def raise_error(request: httpx.Request) -> httpx.Response:
            raise exc

        self.responses[url] = raise_error

    def bodies(self, url: str) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if str(r.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.responses.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="no route")
        return handler(request)


@pytest.fixture
def upstreams() -> FakeUpstreams:
    return FakeUpstreams()


@pytest.fixture
def reader(upstreams: FakeUpstreams) -> Generator[UpstreamStreamReader, None, None]:
    client = httpx.Client(transport=httpx.MockTransport(upstreams))
    yield UpstreamStreamReader(client=client)
    client.close()


@pytest.fixture
def reasoner() -> ModelEndpoint:
    return ModelEndpoint(
        kind=ModelKind.REASONER,
        name="reasoner-test",
        api_key="reasoner-placeholder",  # pragma: allowlist secret
        url=REASONER_URL,
    )


@pytest.fixture
def answerer() -> ModelEndpoint:
    return ModelEndpoint(
        kind=ModelKind.ANSWERER,
        name="answerer-test",
        api_key="answerer-placeholder",  # pragma: allowlist secret
        url=ANSWERER_URL,
    )


@pytest.fixture
def endpoints(reasoner: ModelEndpoint, answerer: ModelEndpoint) -> EndpointTable:
    return EndpointTable(reasoner=reasoner, answerer=answerer)


@pytest.fixture
def runner(reader: UpstreamStreamReader) -> PhaseRunner:
    return PhaseRunner(reader, FailureHandler())


@pytest.fixture
def orchestrator(endpoints: EndpointTable, runner: PhaseRunner) -> DialogOrchestrator:
    return DialogOrchestrator(endpoints, runner, FailureHandler())
