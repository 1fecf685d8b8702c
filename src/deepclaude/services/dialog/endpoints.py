"""Upstream model endpoints.

Each configured endpoint carries an explicit :class:`ModelKind` so the phase
runner knows which delta field to read without looking at the model name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ModelKind(StrEnum):
    REASONER = "reasoner"
    ANSWERER = "answerer"


@dataclass(frozen=True)
class ModelEndpoint:
    kind: ModelKind
    name: str
    api_key: str = field(repr=False)
    url: str

    @property
    def authorization(self) -> str:
        return f"Bearer {self.api_key}"


@dataclass(frozen=True)
class EndpointTable:
    """The reasoning and answering endpoints, loaded once at startup."""

    reasoner: ModelEndpoint
    answerer: ModelEndpoint

    def __post_init__(self) -> None:
        for slot, expected in (
            ("reasoner", ModelKind.REASONER),
            ("answerer", ModelKind.ANSWERER),
        ):
            endpoint: ModelEndpoint = getattr(self, slot)
            if endpoint.kind is not expected:
                raise ValueError(
                    f"{slot} endpoint must be of kind {expected.value!r}, "
                    f"got {endpoint.kind.value!r}"
                )
            if not endpoint.url.strip():
                raise ValueError(f"{slot} endpoint URL must not be empty")
