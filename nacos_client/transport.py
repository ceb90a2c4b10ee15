"""HTTP transport: pooled connections, no retry, no status interpretation."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from .config import ClientConfig
from .errors import ClientClosedError, TransportError
from .request import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Response:
    """Raw server answer."""
    status_code: int
    content: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Transport:
    """
    Executes :class:`Request` objects against the configured server.

    One ``httpx.Client`` (and therefore one connection pool) is shared by all
    calls and threads. After :meth:`close` every call fails fast with
    :class:`ClientClosedError`.
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self._closed = False
        self._lock = threading.Lock()
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive_connections,
            ),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, request: Request) -> Response:
        """
        Send one request.

        Returns:
            Response with status, body and headers, whatever the status

        Raises:
            ClientClosedError: If the transport was closed
            TransportError: On connection, protocol or timeout failures
        """
        if self._closed:
            raise ClientClosedError(
                f"Transport closed, cannot execute {request}",
                method=request.method.value,
                endpoint=request.endpoint,
            )

        kwargs: dict[str, Any] = {}
        if request.query_params:
            kwargs["params"] = dict(request.query_params)
        if request.form_params:
            kwargs["data"] = dict(request.form_params)
        if request.json_body is not None:
            kwargs["json"] = request.json_body
        if request.headers:
            kwargs["headers"] = dict(request.headers)

        logger.debug(f"{request.method.value} {request.endpoint} params={kwargs.get('params')}")

        try:
            response = self._client.request(request.method.value, request.endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{request.method.value} {request.endpoint} failed: {type(e).__name__}: {e}",
                method=request.method.value,
                endpoint=request.endpoint,
            ) from e
        except RuntimeError as e:
            # httpx raises RuntimeError when the pool was closed mid-flight
            if self._closed:
                raise ClientClosedError(
                    f"Transport closed during {request}",
                    method=request.method.value,
                    endpoint=request.endpoint,
                ) from e
            raise

        return Response(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        """Release pooled connections. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._client.close()
        logger.debug("Transport closed")

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
