"""Dialog dependencies.

The orchestrator (and its endpoint table and httpx pool) is built once per
process from settings and shared read-only by every request. Dialogs run on
worker threads drawn from their own capacity limiter, separate from the
anyio default limiter that sync endpoints and dependencies use.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

import anyio
from fastapi import Depends, Request

from deepclaude.core.config import get_settings
from deepclaude.services.dialog import DialogOrchestrator, build_dialog_orchestrator


@lru_cache
def get_dialog_orchestrator() -> DialogOrchestrator:
    """FastAPI dependency returning the process-wide orchestrator."""
    return build_dialog_orchestrator(get_settings())


def close_dialog_orchestrator() -> None:
    """Close the shared orchestrator if it was ever built."""
    if get_dialog_orchestrator.cache_info().currsize:
        get_dialog_orchestrator().close()
        get_dialog_orchestrator.cache_clear()


async def get_dialog_limiter(request: Request) -> anyio.CapacityLimiter:
    """Per-application limiter for dialog worker threads.

    Created on first use inside the running event loop and kept on
    ``app.state``.
    """
    limiter: anyio.CapacityLimiter | None = getattr(
        request.app.state, "dialog_limiter", None
    )
    if limiter is None:
        limiter = anyio.CapacityLimiter(get_settings().MAX_CONCURRENT_DIALOGS)
        request.app.state.dialog_limiter = limiter
    return limiter


Orchestrator = Annotated[DialogOrchestrator, Depends(get_dialog_orchestrator)]
DialogLimiter = Annotated[anyio.CapacityLimiter, Depends(get_dialog_limiter)]
