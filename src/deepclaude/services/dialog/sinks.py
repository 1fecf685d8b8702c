"""Downstream sinks that receive encoded frames.

A sink's ``write`` either delivers the bytes or raises
:class:`~deepclaude.core.exceptions.ClientDisconnected`; any other exception
is treated as a fatal failure by the phase runner.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol


DEFAULT_PACING_SECONDS = 0.05


class FrameSink(Protocol):
    """Protocol for the caller's open output channel."""

    def write(self, data: bytes) -> None:
        """Deliver one encoded frame, blocking until it is handed off."""
        ...


class PacedSink:
    """Wraps a sink and sleeps after every write.

    The delay throttles delivery to a token-by-token pace; it blocks the
    request's handling thread, so it also bounds per-request throughput.
    """

    def __init__(
        self,
        inner: FrameSink,
        delay_seconds: float = DEFAULT_PACING_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self._inner = inner
        self._delay = delay_seconds
        self._sleep = sleep

    @property
    def delay_seconds(self) -> float:
        return self._delay

    def write(self, data: bytes) -> None:
        self._inner.write(data)
        if self._delay:
            self._sleep(self._delay)
