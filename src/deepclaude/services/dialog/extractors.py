"""Per-kind extraction of incremental text from upstream events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from deepclaude.services.dialog.endpoints import ModelKind


@dataclass(frozen=True)
class Delta:
    text: str | None = None
    total_tokens: int | None = None

    @property
    def has_usage(self) -> bool:
        return self.total_tokens is not None


class DeltaExtractor(Protocol):
    """Protocol for reading one phase's increment out of an upstream event."""

    def extract(self, event: dict[str, Any]) -> Delta:
        """Return the increment (if any) and the reported usage total (if any)."""
        ...


def _first_choice_delta(event: dict[str, Any]) -> dict[str, Any] | None:
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    return delta if isinstance(delta, dict) else None


def _usage_total(event: dict[str, Any]) -> int | None:
    usage = event.get("usage")
    if not isinstance(usage, dict):
        return None
    total = usage.get("total_tokens")
    if isinstance(total, bool):
        return None
    if isinstance(total, int):
        return total
    if isinstance(total, str) and total.strip().isdigit():
        return int(total)
    return None


class _FieldExtractor:
    field_name: str

    def extract(self, event: dict[str, Any]) -> Delta:
        delta = _first_choice_delta(event)
        text = delta.get(self.field_name) if delta is not None else None
        return Delta(
            text=text if isinstance(text, str) else None,
            total_tokens=_usage_total(event),
        )


class ReasonerExtractor(_FieldExtractor):
    field_name = "reasoning_content"


class AnswererExtractor(_FieldExtractor):
    field_name = "content"


_EXTRACTORS: dict[ModelKind, DeltaExtractor] = {
    ModelKind.REASONER: ReasonerExtractor(),
    ModelKind.ANSWERER: AnswererExtractor(),
}


def extractor_for(kind: ModelKind) -> DeltaExtractor:
    return _EXTRACTORS[kind]
