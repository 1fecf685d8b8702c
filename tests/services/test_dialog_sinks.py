"""Tests for PacedSink."""

from __future__ import annotations

import pytest

from conftest import CollectingSink
from deepclaude.core.exceptions import ClientDisconnected
from deepclaude.services.dialog.sinks import DEFAULT_PACING_SECONDS, PacedSink


class TestPacedSink:
    def test_default_delay(self) -> None:
        assert PacedSink(CollectingSink()).delay_seconds == DEFAULT_PACING_SECONDS == 0.05

    def test_sleeps_after_every_write(self) -> None:
        inner = CollectingSink()
        sleeps: list[float] = []
        sink = PacedSink(inner, 0.05, sleep=sleeps.append)

        sink.write(b"a")
        sink.write(b"b")

        assert inner.frames == [b"a", b"b"]
        assert sleeps == [0.05, 0.05]

    def test_zero_delay_never_sleeps(self) -> None:
        sleeps: list[float] = []
        sink = PacedSink(CollectingSink(), 0, sleep=sleeps.append)

        sink.write(b"a")

        assert sleeps == []

    def test_negative_delay_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            PacedSink(CollectingSink(), -0.1)

    def test_failed_write_propagates_without_sleeping(self) -> None:
        sleeps: list[float] = []
        sink = PacedSink(CollectingSink(fail_on_write=1), 0.05, sleep=sleeps.append)

        with pytest.raises(ClientDisconnected):
            sink.write(b"a")
        assert sleeps == []
