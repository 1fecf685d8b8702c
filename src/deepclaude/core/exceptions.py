"""Domain exceptions for the two-phase dialog relay.

Each exception carries a stable ``error_code`` so the failure handler and
the logs can tag failures without string matching on messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from deepclaude.services.dialog.failures import FailureKind


class DialogError(Exception):
    """Base class for domain-specific errors."""

    error_code: str = "dialog_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class UpstreamConnectionError(DialogError):
    """An upstream could not be reached, answered non-2xx, or broke mid-body."""

    error_code = "upstream_unavailable"

    def __init__(
        self,
        message: str = "Upstream model service unavailable",
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UpstreamParseError(DialogError):
    """An upstream event line was not a valid JSON object."""

    error_code = "upstream_malformed"

    def __init__(
        self, message: str = "Malformed upstream event", *, line: str = ""
    ) -> None:
        super().__init__(message)
        self.line = line

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message} (line={self.line!r})"


class ClientDisconnected(DialogError):
    """Writing to the caller failed because the caller went away."""

    error_code = "client_disconnected"

    def __init__(self, message: str = "Caller closed the connection") -> None:
        super().__init__(message)


class OrchestrationError(DialogError):
    """A phase failed non-recoverably and the dialog was terminated."""

    error_code = "orchestration_failed"

    def __init__(self, message: str, *, kind: FailureKind, phase: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.phase = phase
