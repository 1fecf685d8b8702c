"""Two-phase dialog orchestration: reasoning first, then the answer."""

from __future__ import annotations

import httpx

from deepclaude.core.config import Settings
from deepclaude.core.error_handler import StructuredLogger
from deepclaude.core.exceptions import OrchestrationError
from deepclaude.schemas.chat import Message
from deepclaude.services.dialog.endpoints import EndpointTable, ModelEndpoint, ModelKind
from deepclaude.services.dialog.failures import FailureHandler
from deepclaude.services.dialog.models import DialogResult
from deepclaude.services.dialog.phase import PhaseRunner
from deepclaude.services.dialog.sinks import FrameSink
from deepclaude.services.dialog.upstream import UpstreamStreamReader


logger = StructuredLogger(__name__)


class DialogOrchestrator:
    """Runs the reasoning phase, then feeds its text to the answering phase.

    The answer phase sends the reasoning text as its only user message and
    the caller's question as its ``system`` field; the reasoning phase sends
    an empty ``system``. A reasoning phase cut short by a disconnect still
    feeds its partial text to the answerer.
    """

    def __init__(
        self,
        endpoints: EndpointTable,
        runner: PhaseRunner,
        failures: FailureHandler | None = None,
    ) -> None:
        self._endpoints = endpoints
        self._runner = runner
        self._failures = failures or FailureHandler()

    @property
    def endpoints(self) -> EndpointTable:
        return self._endpoints

    def close(self) -> None:
        """Release the upstream connection pool."""
        self._runner.close()

    def handle(self, question: str, sink: FrameSink | None = None) -> DialogResult:
        logger.info(
            "Dialog started",
            reasoner=self._endpoints.reasoner.name,
            answerer=self._endpoints.answerer.name,
            question_chars=len(question),
        )
        phase = "reasoning"
        try:
            reasoning = self._runner.run(
                self._endpoints.reasoner,
                [Message.user(question)],
                system_text="",
                sink=sink,
            )
            if reasoning.was_aborted:
                logger.info(
                    "Reasoning phase aborted; answering from partial reasoning",
                    partial_chars=len(reasoning.text),
                )

            phase = "answer"
            answer = self._runner.run(
                self._endpoints.answerer,
                [Message.user(reasoning.text)],
                system_text=question,
                sink=sink,
            )
        except Exception as exc:
            self._failures.report_fatal(exc, sink)
            raise OrchestrationError(
                f"{phase} phase failed: {exc}",
                kind=self._failures.classify(exc),
                phase=phase,
            ) from exc

        result = DialogResult(reasoning_phase=reasoning, answer_phase=answer)
        logger.info(
            "Dialog finished",
            reasoning_chars=len(result.reasoning),
            answer_chars=len(result.answer),
            reasoning_usage=reasoning.tokens,
            answer_usage=answer.tokens,
            aborted=result.was_aborted,
        )
        return result


def build_dialog_orchestrator(
    settings: Settings, reader: UpstreamStreamReader | None = None
) -> DialogOrchestrator:
    """Wire an orchestrator from settings; the endpoint table is fixed here."""
    if reader is None:
        reader = UpstreamStreamReader(
            timeout=httpx.Timeout(
                settings.UPSTREAM_READ_TIMEOUT_SECONDS,
                connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
            )
        )
    failures = FailureHandler(
        error_code=settings.ERROR_CODE, error_message=settings.ERROR_MESSAGE
    )
    return DialogOrchestrator(
        endpoints=endpoint_table_from_settings(settings),
        runner=PhaseRunner(reader, failures),
        failures=failures,
    )


def endpoint_table_from_settings(settings: Settings) -> EndpointTable:
    return EndpointTable(
        reasoner=ModelEndpoint(
            kind=ModelKind.REASONER,
            name=settings.REASONER_MODEL_NAME,
            api_key=settings.REASONER_API_KEY,
            url=settings.REASONER_API_URL,
        ),
        answerer=ModelEndpoint(
            kind=ModelKind.ANSWERER,
            name=settings.ANSWERER_MODEL_NAME,
            api_key=settings.ANSWERER_API_KEY,
            url=settings.ANSWERER_API_URL,
        ),
    )
