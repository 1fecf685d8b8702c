"""Classification of phase-time failures.

A failed write to the caller is the only recoverable failure: the phase ends
with what the caller already received. Everything else terminates the
request with a single error frame.
"""

from __future__ import annotations

import re
import string
from collections.abc import Iterable, Sequence
from enum import StrEnum

from deepclaude.core.config import DEFAULT_ERROR_MESSAGE
from deepclaude.core.error_handler import StructuredLogger
from deepclaude.core.exceptions import (
    ClientDisconnected,
    UpstreamConnectionError,
    UpstreamParseError,
)
from deepclaude.schemas.chat import Message
from deepclaude.services.dialog.accumulator import StreamAccumulator
from deepclaude.services.dialog.codec import encode_error_frame
from deepclaude.services.dialog.models import PhaseResult
from deepclaude.services.dialog.sinks import FrameSink


logger = StructuredLogger(__name__)

_PUNCT = re.escape(string.punctuation)
_TOKEN_RE = re.compile(rf"[^\s{_PUNCT}]+|[{_PUNCT}]")


class FailureKind(StrEnum):
    CLIENT_DISCONNECTED = "client_disconnected"
    CONNECTION = "connection"
    PARSE = "parse"
    UNCAUGHT = "uncaught"


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Rough token count: words split on whitespace, punctuation counted alone."""
    rendered = "\n".join(f"{m.role}: {m.content}" for m in messages)
    return len(_TOKEN_RE.findall(rendered))


class FailureHandler:
    def __init__(
        self, error_code: int = 500, error_message: str = DEFAULT_ERROR_MESSAGE
    ) -> None:
        self.error_code = error_code
        self.error_message = error_message

    @staticmethod
    def classify(exc: BaseException) -> FailureKind:
        if isinstance(exc, ClientDisconnected):
            return FailureKind.CLIENT_DISCONNECTED
        if isinstance(exc, UpstreamConnectionError):
            return FailureKind.CONNECTION
        if isinstance(exc, UpstreamParseError):
            return FailureKind.PARSE
        return FailureKind.UNCAUGHT

    def is_recoverable(self, exc: BaseException) -> bool:
        return self.classify(exc) is FailureKind.CLIENT_DISCONNECTED

    def partial_result(
        self,
        accumulator: StreamAccumulator,
        messages: Sequence[Message],
        model: str | None = None,
    ) -> PhaseResult:
        """Build the aborted result of a phase whose caller went away.

        The partial text is appended to the history as a trailing message and
        the token figure is estimated from that history, since no usage data
        arrives for the part that was never sent.
        """
        partial = accumulator.text
        history = (*messages, Message.user(partial))
        usage_estimate = estimate_tokens(history)
        logger.warning(
            "Caller disconnected mid-phase; keeping partial output",
            model=model,
            partial_chars=len(partial),
            usage_estimate=usage_estimate,
        )
        logger.debug("Partial output kept", model=model, partial_text=partial)
        return PhaseResult(
            text=partial,
            tokens=usage_estimate,
            was_aborted=True,
            history=history,
            model=model,
        )

    def report_fatal(self, exc: BaseException, sink: FrameSink | None) -> None:
        """Log a fatal failure and send the single error frame, best effort."""
        kind = self.classify(exc)
        if kind is FailureKind.UNCAUGHT:
            logger.exception(
                "Dialog failed with an unexpected error",
                exception_type=exc.__class__.__name__,
                error=str(exc),
            )
        else:
            logger.error(
                "Dialog failed",
                failure_kind=kind.value,
                error=str(exc),
            )

        if sink is None:
            return
        try:
            sink.write(encode_error_frame(self.error_code, self.error_message))
        except ClientDisconnected:
            logger.info("Caller already gone; error frame not delivered")
