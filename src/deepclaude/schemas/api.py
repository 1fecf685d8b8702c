"""JSON envelopes for everything outside the event stream."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for health checks and other plain JSON endpoints."""

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Envelope returned by the global exception handler."""

    success: bool = False
    message: str = "An error occurred"
