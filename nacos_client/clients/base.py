"""Base class shared by the per-domain Open API clients."""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from ..decoding import decode, decode_list, get_int, get_string, parse_json
from ..errors import DecodeError, ServerError, ValidationError
from ..models import MAX_PAGE_SIZE, MIN_PAGE_SIZE
from ..request import Request

if TYPE_CHECKING:
    from ..auth import AuthManager
    from ..config import ClientConfig
    from ..transport import Response

logger = logging.getLogger(__name__)

# v2 envelope codes meaning "the resource does not exist"
NOT_FOUND_CODES = frozenset({20004, 21008, 22001})

# v1 endpoints report some missing resources as a 400/500 with a message
_NOT_FOUND_MARKERS = ("not found", "not exist", "no ips found")
_NOT_FOUND_STATUS_CODES = frozenset({400, 500})


def validate_page(page_number: int, page_size: int) -> None:
    """
    Reject invalid paging before any request is sent.

    Raises:
        ValidationError: If page_number < 1 or page_size is outside [1, 500]
    """
    if page_number < 1:
        raise ValidationError(f"page_number must be >= 1, got {page_number}")
    if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}, got {page_size}"
        )


def require(value: Any, name: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{name} is required")


class BaseClient:
    """
    Sends requests through the auth manager and interprets responses.

    Endpoints under ``/v2/`` answer with a ``{code, message, data}`` envelope;
    ``/v1/`` endpoints answer with plain text or bare JSON. A missing
    resource becomes ``None`` rather than an exception.
    """

    api_version = "v1"

    def __init__(self, auth: AuthManager, config: ClientConfig):
        self.auth = auth
        self.config = config

    def _execute(self, request: Request) -> Response:
        return self.auth.execute(request)

    def _payload(self, request: Request, as_json: bool = True) -> Any:
        """
        Execute ``request`` and return its payload, or None if not found.

        Raises:
            ServerError: Non-success status or envelope code
            DecodeError: Malformed response body
        """
        response = self._execute(request)
        if request.endpoint.startswith("/v2/"):
            return self._unwrap_envelope(request, response)
        return self._unwrap_plain(request, response, as_json)

    def _unwrap_plain(self, request: Request, response: Response, as_json: bool) -> Any:
        if response.status_code == 404:
            logger.debug(f"{request} -> not found")
            return None
        if not response.ok:
            text = response.text.strip()
            if response.status_code in _NOT_FOUND_STATUS_CODES and any(
                marker in text.lower() for marker in _NOT_FOUND_MARKERS
            ):
                logger.debug(f"{request} -> not found: {text}")
                return None
            raise ServerError(
                f"{request} failed with HTTP {response.status_code}: {text}",
                status_code=response.status_code,
                endpoint=request.endpoint,
            )
        if not as_json:
            return response.text
        if not response.content.strip():
            return None
        return parse_json(response.content, context=str(request))

    def _unwrap_envelope(self, request: Request, response: Response) -> Any:
        if response.status_code == 404 and not response.content.strip():
            return None
        try:
            body = parse_json(response.content, context=str(request))
        except DecodeError:
            if not response.ok:
                raise ServerError(
                    f"{request} failed with HTTP {response.status_code}: {response.text.strip()}",
                    status_code=response.status_code,
                    endpoint=request.endpoint,
                ) from None
            raise
        if not isinstance(body, dict):
            raise DecodeError(f"{request}: expected a response envelope, got {type(body).__name__}")

        code = get_int(body, "code")
        message = get_string(body, "message")
        if code in NOT_FOUND_CODES or response.status_code == 404:
            logger.debug(f"{request} -> not found ({code}: {message})")
            return None
        if code != 0 or not response.ok:
            raise ServerError(
                f"{request} failed with code {code} (HTTP {response.status_code}): {message}",
                status_code=response.status_code,
                code=code,
                endpoint=request.endpoint,
            )
        return body.get("data")

    def _decode(self, request: Request, target: type) -> Any:
        payload = self._payload(request)
        if payload is None:
            return None
        return decode(payload, target, context=str(request))

    def _decode_list(self, request: Request, target: type) -> list[Any]:
        payload = self._payload(request)
        if payload is None:
            return []
        return decode_list(payload, target, context=str(request))

    def _succeeded(self, request: Request) -> bool:
        """Execute a write operation; True when the server acknowledged it."""
        payload = self._payload(request, as_json=request.endpoint.startswith("/v2/"))
        if isinstance(payload, bool):
            return payload
        if isinstance(payload, str):
            return payload.strip().lower() in ("true", "ok")
        return False
