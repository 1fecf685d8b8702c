"""Chat relay endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from deepclaude.api.streaming import DialogStreamResponse
from deepclaude.core.config import get_settings
from deepclaude.core.error_handler import StructuredLogger
from deepclaude.core.exceptions import OrchestrationError
from deepclaude.dependencies.dialog import DialogLimiter, Orchestrator
from deepclaude.schemas.chat import ChatSendRequest
from deepclaude.services.dialog import FrameSink


logger = StructuredLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/chatSend", response_class=DialogStreamResponse)
async def chat_send(
    payload: ChatSendRequest,
    orchestrator: Orchestrator,
    limiter: DialogLimiter,
) -> DialogStreamResponse:
    """Stream the reasoning and then the answer for one question.

    The body is a run of base64-encoded JSON frames with no delimiter.
    Failures after the stream has started arrive as a single base64-encoded
    error frame instead of an HTTP error status.
    """
    settings = get_settings()

    def produce(sink: FrameSink) -> None:
        try:
            orchestrator.handle(payload.question, sink)
        except OrchestrationError as exc:
            # The error frame has already been written by the failure handler.
            logger.info(
                "Dialog terminated", phase=exc.phase, failure_kind=exc.kind.value
            )

    return DialogStreamResponse(
        produce, pacing_seconds=settings.stream_pacing_seconds, limiter=limiter
    )
