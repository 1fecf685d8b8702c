"""Streaming HTTP reader for upstream chat-completion services."""

from __future__ import annotations

import logging
from collections.abc import Generator

import httpx

from deepclaude.core.exceptions import UpstreamConnectionError
from deepclaude.schemas.chat import UpstreamRequest
from deepclaude.services.dialog.endpoints import ModelEndpoint


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class UpstreamStream:
    """Lazy, restartable iterable over the raw lines of one upstream call.

    Nothing is sent until iteration starts; every new iteration issues a
    fresh POST. Transport and status failures surface as
    UpstreamConnectionError from the iterator.
    """

    def __init__(
        self, client: httpx.Client, endpoint: ModelEndpoint, request: UpstreamRequest
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._request = request

    def __iter__(self) -> Generator[str, None, None]:
        url = self._endpoint.url
        headers = {
            "Authorization": self._endpoint.authorization,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        logger.debug("Opening upstream stream to %s (model=%s)", url, self._request.model)
        try:
            with self._client.stream(
                "POST", url, json=self._request.to_payload(), headers=headers
            ) as response:
                if response.is_error:
                    response.read()
                    raise UpstreamConnectionError(
                        f"Upstream returned HTTP {response.status_code}: "
                        f"{response.text[:200]}",
                        url=url,
                        status_code=response.status_code,
                    )
                yield from response.iter_lines()
        except httpx.TimeoutException as exc:
            raise UpstreamConnectionError(
                f"Upstream timed out: {exc}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamConnectionError(
                f"Upstream request failed: {exc}", url=url
            ) from exc


class UpstreamStreamReader:
    """Opens upstream streams over a shared httpx client."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def open(self, endpoint: ModelEndpoint, request: UpstreamRequest) -> UpstreamStream:
        return UpstreamStream(self._client, endpoint, request)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
