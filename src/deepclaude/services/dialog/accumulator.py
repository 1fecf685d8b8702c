"""Per-phase text and token buffers."""

from __future__ import annotations

from collections.abc import Iterable

from deepclaude.schemas.chat import Message
from deepclaude.services.dialog.endpoints import ModelKind
from deepclaude.services.dialog.models import PhaseResult


THINK_TAG_START = "<think>\n"
THINK_TAG_END = "\n</think>\n"

WRAPPING_MARKERS: dict[ModelKind, str] = {
    ModelKind.REASONER: THINK_TAG_START,
    ModelKind.ANSWERER: THINK_TAG_END,
}


def marker_for(kind: ModelKind) -> str:
    return WRAPPING_MARKERS[kind]


class StreamAccumulator:
    """Collects the increments of one phase.

    The wrapping marker is written once, right before the first non-empty
    increment, so a phase that produced nothing stays empty.
    """

    def __init__(self, marker: str = "") -> None:
        self._marker = marker
        self._parts: list[str] = []
        self._tokens = 0
        self._started = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def tokens(self) -> int:
        return self._tokens

    def append(self, increment: str) -> None:
        if not increment:
            return
        if not self._started:
            self._started = True
            if self._marker:
                self._parts.append(self._marker)
        self._parts.append(increment)

    def record_usage(self, total_tokens: int) -> None:
        self._tokens = total_tokens

    def result(
        self, history: Iterable[Message] = (), model: str | None = None
    ) -> PhaseResult:
        return PhaseResult(
            text=self.text,
            tokens=self._tokens,
            was_aborted=False,
            history=tuple(history),
            model=model,
        )
