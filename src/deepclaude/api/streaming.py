"""ASGI response that runs a dialog and streams its frames to the caller.

The dialog itself is synchronous. It runs on one worker thread per request,
drawn from the limiter given to the response (anyio's default when none), and
hands every frame back to the event loop through ``anyio.from_thread``,
so each write blocks until the server has accepted it. A disconnect is
noticed either by the ``http.disconnect`` watcher or by ``send`` failing,
and is reported to the dialog as ClientDisconnected on its next write.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

import anyio
import anyio.from_thread
import anyio.to_thread
from starlette.requests import ClientDisconnect
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from deepclaude.core.exceptions import ClientDisconnected
from deepclaude.services.dialog.sinks import DEFAULT_PACING_SECONDS, FrameSink, PacedSink


logger = logging.getLogger(__name__)

EVENT_STREAM_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Pragma": "no-cache",
    "X-Accel-Buffering": "no",
}

_SEND_FAILURES = (
    OSError,
    ClientDisconnect,
    anyio.BrokenResourceError,
    anyio.ClosedResourceError,
)


class TransportSink:
    """FrameSink writing body chunks to an ASGI ``send`` from a worker thread."""

    def __init__(self, send: Send, disconnected: threading.Event) -> None:
        self._send = send
        self._disconnected = disconnected

    def write(self, data: bytes) -> None:
        if self._disconnected.is_set():
            raise ClientDisconnected()
        message = {"type": "http.response.body", "body": data, "more_body": True}
        try:
            anyio.from_thread.run(self._send, message)
        except _SEND_FAILURES as exc:
            self._disconnected.set()
            raise ClientDisconnected() from exc


class DialogStreamResponse(Response):
    media_type = "text/event-stream"

    def __init__(
        self,
        producer: Callable[[FrameSink], Any],
        *,
        pacing_seconds: float = DEFAULT_PACING_SECONDS,
        limiter: anyio.CapacityLimiter | None = None,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.producer = producer
        self.pacing_seconds = pacing_seconds
        self.limiter = limiter
        self.status_code = status_code
        self.background = None
        self.init_headers({**EVENT_STREAM_HEADERS, **(headers or {})})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        disconnected = threading.Event()
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            }
        )
        sink = PacedSink(TransportSink(send, disconnected), self.pacing_seconds)

        async def watch_for_disconnect() -> None:
            while True:
                message = await receive()
                if message["type"] == "http.disconnect":
                    disconnected.set()
                    return

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(watch_for_disconnect)
            try:
                await anyio.to_thread.run_sync(
                    self.producer, sink, limiter=self.limiter
                )
            finally:
                task_group.cancel_scope.cancel()

        if disconnected.is_set():
            logger.debug("Caller gone before the stream was closed")
            return
        try:
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        except _SEND_FAILURES:
            logger.debug("Caller gone while closing the stream")
            return
        if self.background is not None:
            await self.background()
