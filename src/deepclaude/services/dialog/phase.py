"""Drives one upstream call from request to completed PhaseResult."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import closing

from deepclaude.core.exceptions import UpstreamConnectionError
from deepclaude.schemas.chat import Message, UpstreamRequest
from deepclaude.services.dialog.accumulator import StreamAccumulator, marker_for
from deepclaude.services.dialog.codec import (
    build_frame,
    decode_event,
    encode_frame,
    is_sentinel,
    wire_payload,
)
from deepclaude.services.dialog.endpoints import ModelEndpoint
from deepclaude.services.dialog.extractors import extractor_for
from deepclaude.services.dialog.failures import FailureHandler
from deepclaude.services.dialog.models import PhaseResult
from deepclaude.services.dialog.sinks import FrameSink
from deepclaude.services.dialog.upstream import UpstreamStreamReader


logger = logging.getLogger(__name__)


class PhaseRunner:
    """Runs a single phase against one endpoint.

    Increments are forwarded to the sink in upstream order, one frame per
    increment, and appended to the phase text only once the caller has been
    handed the frame. A ClientDisconnected from the sink ends forwarding;
    the rest of the upstream body is drained without being parsed. Any other
    failure propagates.
    """

    def __init__(
        self, reader: UpstreamStreamReader, failures: FailureHandler | None = None
    ) -> None:
        self._reader = reader
        self._failures = failures or FailureHandler()

    def close(self) -> None:
        self._reader.close()

    def run(
        self,
        endpoint: ModelEndpoint,
        messages: Sequence[Message],
        system_text: str = "",
        sink: FrameSink | None = None,
    ) -> PhaseResult:
        request = UpstreamRequest(
            messages=list(messages), model=endpoint.name, system=system_text
        )
        extractor = extractor_for(endpoint.kind)
        accumulator = StreamAccumulator(marker_for(endpoint.kind))

        with closing(iter(self._reader.open(endpoint, request))) as lines:
            for line in lines:
                payload = wire_payload(line)
                if payload is None:
                    continue
                if is_sentinel(payload):
                    break

                event = decode_event(payload)
                delta = extractor.extract(event)
                if delta.total_tokens is not None:
                    accumulator.record_usage(delta.total_tokens)
                if not delta.text:
                    continue

                if sink is not None:
                    try:
                        sink.write(encode_frame(build_frame(event, delta.text)))
                    except Exception as exc:
                        if not self._failures.is_recoverable(exc):
                            raise
                        self._drain(lines, endpoint)
                        return self._failures.partial_result(
                            accumulator, messages, model=endpoint.name
                        )
                accumulator.append(delta.text)

        logger.debug(
            "Phase %s finished: %d chars, usage=%d",
            endpoint.kind.value,
            len(accumulator.text),
            accumulator.tokens,
        )
        return accumulator.result(history=messages, model=endpoint.name)

    @staticmethod
    def _drain(lines: Iterator[str], endpoint: ModelEndpoint) -> None:
        drained = 0
        try:
            for _ in lines:
                drained += 1
        except UpstreamConnectionError as exc:
            # Nobody is listening any more; the partial result stands.
            logger.warning(
                "Upstream %s failed while draining after disconnect: %s",
                endpoint.kind.value,
                exc,
            )
        logger.debug("Drained %d upstream lines after disconnect", drained)
