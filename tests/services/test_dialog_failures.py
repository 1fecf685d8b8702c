"""Tests for failure classification, token estimates and error frames."""

from __future__ import annotations

import base64
import logging

import pytest

from conftest import CollectingSink
from deepclaude.core.exceptions import (
    ClientDisconnected,
    UpstreamConnectionError,
    UpstreamParseError,
)
from deepclaude.schemas.chat import Message
from deepclaude.services.dialog.accumulator import THINK_TAG_START, StreamAccumulator
from deepclaude.services.dialog.failures import (
    FailureHandler,
    FailureKind,
    estimate_tokens,
)


class TestClassify:
    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (ClientDisconnected(), FailureKind.CLIENT_DISCONNECTED),
            (UpstreamConnectionError(), FailureKind.CONNECTION),
            (UpstreamParseError(line="{"), FailureKind.PARSE),
            (RuntimeError("boom"), FailureKind.UNCAUGHT),
        ],
    )
    def test_kinds(self, exc: Exception, kind: FailureKind) -> None:
        assert FailureHandler.classify(exc) is kind

    def test_only_disconnect_is_recoverable(self) -> None:
        handler = FailureHandler()

        assert handler.is_recoverable(ClientDisconnected())
        assert not handler.is_recoverable(UpstreamConnectionError())
        assert not handler.is_recoverable(UpstreamParseError())
        assert not handler.is_recoverable(ValueError())


class TestEstimateTokens:
    def test_words_and_punctuation(self) -> None:
        # "user" ":" "2" "+" "2" "?"
        assert estimate_tokens([Message.user("2+2?")]) == 6

    def test_messages_are_joined(self) -> None:
        history = [Message.user("2+2?"), Message.user("<think>\nLet me ")]

        # user : 2 + 2 ? / user : < think > Let me
        assert estimate_tokens(history) == 13

    def test_empty_history(self) -> None:
        assert estimate_tokens([]) == 0


class TestPartialResult:
    def test_partial_text_is_appended_as_a_message(self) -> None:
        acc = StreamAccumulator(THINK_TAG_START)
        acc.append("Let me ")
        acc.record_usage(99)
        question = [Message.user("2+2?")]

        result = FailureHandler().partial_result(acc, question, model="reasoner-test")

        assert result.was_aborted
        assert result.text == "<think>\nLet me "
        assert result.history == (
            Message.user("2+2?"),
            Message.user("<think>\nLet me "),
        )
        assert result.tokens == 13
        assert result.model == "reasoner-test"

    def test_nothing_delivered_yet(self) -> None:
        result = FailureHandler().partial_result(
            StreamAccumulator(THINK_TAG_START), [Message.user("hi")]
        )

        assert result.text == ""
        assert result.history[-1] == Message.user("")
        assert result.was_aborted

    def test_partial_text_is_logged_at_debug(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        acc = StreamAccumulator(THINK_TAG_START)
        acc.append("Let me ")

        with caplog.at_level(logging.DEBUG, logger="deepclaude.services.dialog.failures"):
            FailureHandler().partial_result(acc, [Message.user("2+2?")], model="m")

        record = next(r for r in caplog.records if r.levelno == logging.DEBUG)
        assert record.context["partial_text"] == "<think>\nLet me "
        assert record.context["model"] == "m"


class TestReportFatal:
    def test_writes_one_default_error_frame(self) -> None:
        sink = CollectingSink()

        FailureHandler().report_fatal(UpstreamParseError(line="{"), sink)

        assert len(sink.frames) == 1
        raw = base64.b64decode(sink.frames[0]).decode("utf-8")
        assert raw.startswith('data: {"error":{"errCode":500,"errMsg":"')
        assert raw.endswith('"}}\n\n')
        assert "contact the administrator" in raw

    def test_configured_code_and_message(self) -> None:
        sink = CollectingSink()

        FailureHandler(error_code=503, error_message="busy").report_fatal(
            UpstreamConnectionError(), sink
        )

        raw = base64.b64decode(sink.frames[0]).decode("utf-8")
        assert raw == 'data: {"error":{"errCode":503,"errMsg":"busy"}}\n\n'

    def test_without_sink_only_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="deepclaude.services.dialog.failures"):
            FailureHandler().report_fatal(UpstreamConnectionError("down"), None)

        assert "Dialog failed" in caplog.text

    def test_uncaught_error_is_logged_with_traceback(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as exc:
            with caplog.at_level(logging.ERROR):
                FailureHandler().report_fatal(exc, CollectingSink())

        record = next(r for r in caplog.records if "unexpected error" in r.getMessage())
        assert record.exc_info is not None

    def test_gone_caller_is_tolerated(self) -> None:
        sink = CollectingSink(fail_on_write=1)

        FailureHandler().report_fatal(UpstreamParseError(), sink)

        assert sink.frames == []
        assert sink.attempts == 1
