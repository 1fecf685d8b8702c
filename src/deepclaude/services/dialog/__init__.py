"""Two-phase reasoning/answer relay over streaming chat-completion upstreams."""

from deepclaude.services.dialog.endpoints import EndpointTable, ModelEndpoint, ModelKind
from deepclaude.services.dialog.failures import FailureHandler, FailureKind
from deepclaude.services.dialog.models import DialogResult, PhaseResult
from deepclaude.services.dialog.orchestrator import DialogOrchestrator, build_dialog_orchestrator
from deepclaude.services.dialog.phase import PhaseRunner
from deepclaude.services.dialog.sinks import FrameSink, PacedSink
from deepclaude.services.dialog.upstream import UpstreamStreamReader


__all__ = [
    "DialogOrchestrator",
    "DialogResult",
    "EndpointTable",
    "FailureHandler",
    "FailureKind",
    "FrameSink",
    "ModelEndpoint",
    "ModelKind",
    "PacedSink",
    "PhaseResult",
    "PhaseRunner",
    "UpstreamStreamReader",
    "build_dialog_orchestrator",
]
