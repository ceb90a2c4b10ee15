"""
Access-token lifecycle for the Nacos client.

The manager logs in with username/password, caches the resulting
:class:`Credential`, attaches the token to every outgoing request and
re-authenticates transparently when the token is about to expire or the
server rejects it.

State machine::

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED -> (EXPIRING | REJECTED) -> AUTHENTICATING
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .decoding import get_bool, get_int, get_string, parse_json
from .errors import AuthError, DecodeError, TransportError
from .request import HttpMethod, Request, RequestBuilder

if TYPE_CHECKING:
    from .config import ClientConfig
    from .transport import Response, Transport

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/v1/auth/login"
ACCESS_TOKEN = "accessToken"

# Statuses the server uses for missing, expired or revoked tokens
REJECTED_STATUS_CODES = frozenset({401, 403})


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRING = "expiring"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Credential:
    """Result of a successful login. Replaced, never mutated."""
    access_token: str
    token_ttl: int
    global_admin: bool = False
    issued_at: float = field(default=0.0, compare=False)

    def remaining(self, now: float) -> float:
        """Seconds of validity left at local clock ``now``."""
        return self.token_ttl - (now - self.issued_at)


class AuthManager:
    """
    Owns the credential of one client instance.

    Thread safety: the current credential is swapped atomically (a single
    attribute assignment of an immutable object). Logins run inside
    ``_login_lock`` with a double-checked read, so concurrent callers that
    all need a token trigger exactly one login and share its result.
    """

    def __init__(
        self,
        transport: Transport,
        config: ClientConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.config = config
        self._clock = clock
        self._username = config.username
        self._password = config.password
        self._credential: Credential | None = None
        self._state = AuthState.UNAUTHENTICATED
        self._login_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self._username)

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def _low_water_mark(self, credential: Credential) -> float:
        return credential.token_ttl * self.config.token_refresh_ratio

    def _is_usable(self, credential: Credential | None) -> bool:
        if credential is None:
            return False
        return credential.remaining(self._clock()) > self._low_water_mark(credential)

    def authenticate(self, username: str | None = None, password: str | None = None) -> Credential:
        """
        Log in and cache the resulting credential.

        Args:
            username: Overrides (and replaces) the configured username
            password: Overrides (and replaces) the configured password

        Raises:
            AuthError: If the server refuses the credentials or cannot be reached
        """
        with self._login_lock:
            if username is not None:
                self._username = username
                self._password = password
            return self._login()

    def _login(self) -> Credential:
        """Perform the login call. Caller must hold ``_login_lock``."""
        if not self._username:
            raise AuthError("No username configured for authentication")

        self._state = AuthState.AUTHENTICATING
        request = (
            RequestBuilder.create(LOGIN_ENDPOINT)
            .method(HttpMethod.POST)
            .form_param("username", self._username)
            .form_param("password", self._password)
            .build()
        )
        try:
            response = self.transport.execute(request)
        except TransportError as e:
            self._fail()
            raise AuthError(f"Login as '{self._username}' failed: {e}") from e

        if not response.ok:
            self._fail()
            raise AuthError(
                f"Login as '{self._username}' rejected (HTTP {response.status_code}): {response.text.strip()}"
            )

        try:
            data = parse_json(response.content, context=LOGIN_ENDPOINT)
            token = get_string(data, ACCESS_TOKEN) if isinstance(data, dict) else None
            ttl = get_int(data, "tokenTtl") if token else None
            global_admin = get_bool(data, "globalAdmin") if token else None
        except DecodeError as e:
            self._fail()
            raise AuthError(f"Unexpected login response: {e}") from e

        if not token or ttl is None:
            self._fail()
            raise AuthError("Login response carries no access token")

        credential = Credential(
            access_token=token,
            token_ttl=ttl,
            global_admin=bool(global_admin),
            issued_at=self._clock(),
        )
        self._credential = credential
        self._state = AuthState.AUTHENTICATED
        logger.info(f"Authenticated as '{self._username}' (token ttl {ttl}s)")
        return credential

    def _fail(self) -> None:
        self._credential = None
        self._state = AuthState.UNAUTHENTICATED

    def current_credential(self) -> Credential:
        """
        Return a credential with enough remaining TTL, logging in if needed.

        Raises:
            AuthError: If (re-)authentication fails
        """
        credential = self._credential
        if self._is_usable(credential):
            return credential

        with self._login_lock:
            # Another thread may have refreshed while we waited
            credential = self._credential
            if self._is_usable(credential):
                return credential
            if credential is not None:
                self._state = AuthState.EXPIRING
                logger.debug("Access token below refresh threshold, re-authenticating")
            return self._login()

    def invalidate(self, credential: Credential | None = None) -> None:
        """
        Discard the cached credential after the server rejected it.

        When ``credential`` is given, only that exact credential is dropped so a
        fresh one obtained concurrently by another thread survives.
        """
        with self._login_lock:
            if credential is None or self._credential is credential:
                self._credential = None
                self._state = AuthState.REJECTED

    def attach_token(self, request: Request) -> Request:
        """Return ``request`` carrying a valid access token (unchanged if auth is disabled)."""
        if not self.enabled:
            return request
        return self._attach(request, self.current_credential())

    def _attach(self, request: Request, credential: Credential) -> Request:
        if self.config.api_version == "v1":
            return request.with_query_param(ACCESS_TOKEN, credential.access_token)
        return request.with_header(ACCESS_TOKEN, credential.access_token)

    def execute(self, request: Request) -> Response:
        """
        Attach a token, send the request, and recover once from a rejected token.

        Raises:
            AuthError: If authentication fails or the retried call is rejected again
            TransportError: On network failures (never retried here)
        """
        if not self.enabled:
            return self.transport.execute(request)

        credential = self.current_credential()
        response = self.transport.execute(self._attach(request, credential))
        if response.status_code not in REJECTED_STATUS_CODES:
            return response

        logger.warning(
            f"{request} rejected with HTTP {response.status_code}, re-authenticating once"
        )
        self.invalidate(credential)
        credential = self.current_credential()
        response = self.transport.execute(self._attach(request, credential))
        if response.status_code in REJECTED_STATUS_CODES:
            self.invalidate(credential)
            raise AuthError(
                f"{request} rejected with HTTP {response.status_code} after re-authentication: "
                f"{response.text.strip()}"
            )
        return response
