"""Result objects returned by the phase runner and the dialog orchestrator.

* PhaseResult  - outcome of one upstream call: accumulated text (marker
  included), token count, abort flag and the message history it was
  computed from.
* DialogResult - the two phases of a completed request.

Both are frozen; the orchestrator owns them once a phase returns.
"""

from __future__ import annotations

from dataclasses import dataclass

from deepclaude.schemas.chat import Message


@dataclass(frozen=True, slots=True)
class PhaseResult:
    text: str
    tokens: int
    was_aborted: bool = False
    history: tuple[Message, ...] = ()
    model: str | None = None


@dataclass(frozen=True, slots=True)
class DialogResult:
    reasoning_phase: PhaseResult
    answer_phase: PhaseResult

    @property
    def reasoning(self) -> str:
        return self.reasoning_phase.text

    @property
    def answer(self) -> str:
        return self.answer_phase.text

    @property
    def total_tokens(self) -> int:
        return self.reasoning_phase.tokens + self.answer_phase.tokens

    @property
    def was_aborted(self) -> bool:
        return self.reasoning_phase.was_aborted or self.answer_phase.was_aborted
