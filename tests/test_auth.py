"""Tests for the access-token lifecycle."""

from __future__ import annotations

import threading

import httpx
import pytest

from nacos_client.auth import ACCESS_TOKEN, AuthState
from nacos_client.errors import AuthError
from nacos_client.request import RequestBuilder

from tests.fixtures.mock_service import MockNacosServer


def _config_request():
    return (
        RequestBuilder.create("/v1/cs/configs")
        .query_param("dataId", "app.properties")
        .query_param("group", "DEFAULT_GROUP")
        .build()
    )


class TestAuthenticate:
    """Test explicit login."""

    def test_login_records_credential(self, auth_server, make_auth):
        auth = make_auth(auth_server)
        credential = auth.authenticate()
        assert credential.access_token == "token-nacos-1"
        assert credential.token_ttl == 18000
        assert credential.global_admin is True
        assert auth.state is AuthState.AUTHENTICATED
        assert auth.credential is credential

    def test_bad_password_raises(self, auth_server, make_auth):
        auth = make_auth(auth_server, password="wrong")
        with pytest.raises(AuthError):
            auth.authenticate()
        assert auth.state is AuthState.UNAUTHENTICATED
        assert auth.credential is None

    def test_explicit_credentials_enable_auth(self, auth_server, make_auth):
        """authenticate(username, password) replaces the configured user."""
        auth = make_auth(auth_server, username=None, password=None)
        assert not auth.enabled
        auth.authenticate("nacos", "nacos")
        assert auth.enabled

    def test_unreachable_server_is_auth_error(self, auth_server, make_auth):
        def _refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        auth_server.add_custom_handler(r"/v1/auth/login", _refuse)
        auth = make_auth(auth_server)
        with pytest.raises(AuthError) as exc_info:
            auth.authenticate()
        assert exc_info.value.__cause__ is not None


class TestTokenReuse:
    """Test low-water-mark refresh with an injected clock."""

    def test_token_reused_while_above_low_water_mark(self, auth_server, make_auth, clock):
        auth = make_auth(auth_server)
        first = auth.current_credential()
        clock.advance(18000 * 0.85)
        assert auth.current_credential() is first
        assert auth_server.login_count == 1

    def test_token_refreshed_below_low_water_mark(self, auth_server, make_auth, clock):
        """Refresh happens before expiry, once remaining TTL drops under 10%."""
        auth = make_auth(auth_server)
        first = auth.current_credential()
        clock.advance(18000 * 0.95)
        second = auth.current_credential()
        assert second is not first
        assert auth_server.login_count == 2

    def test_refresh_ratio_is_configurable(self, auth_server, make_auth, clock):
        auth = make_auth(auth_server, token_refresh_ratio=0.5)
        auth.current_credential()
        clock.advance(18000 * 0.6)
        auth.current_credential()
        assert auth_server.login_count == 2

    def test_attach_disabled_auth_is_noop(self, nacos_server, make_auth):
        auth = make_auth(nacos_server, username=None, password=None)
        request = _config_request()
        assert auth.attach_token(request) is request
        assert nacos_server.login_count == 0


class TestTokenPlacement:
    """v1 sends the token as a query parameter, v2 as a header."""

    def test_v1_query_parameter(self, auth_server, make_auth):
        auth = make_auth(auth_server, api_version="v1")
        request = auth.attach_token(_config_request())
        assert request.query_params[ACCESS_TOKEN] == "token-nacos-1"
        assert ACCESS_TOKEN not in request.headers

    def test_v2_header(self, auth_server, make_auth):
        auth = make_auth(auth_server, api_version="v2")
        request = auth.attach_token(_config_request())
        assert request.headers[ACCESS_TOKEN] == "token-nacos-1"
        assert ACCESS_TOKEN not in request.query_params


class TestRejectedToken:
    """Test transparent recovery from a rejected token."""

    def test_rejected_token_retried_once(self, auth_server, make_auth):
        auth = make_auth(auth_server)
        auth.authenticate()
        auth_server.revoke_tokens()

        response = auth.execute(_config_request())

        assert response.status_code == 200
        assert response.text == "a=1"
        assert auth_server.login_count == 2
        assert auth.state is AuthState.AUTHENTICATED

    def test_second_rejection_raises(self, auth_server, make_auth):
        auth_server.add_custom_handler(
            r"/v1/cs/configs", lambda request: httpx.Response(403, text="forbidden")
        )
        auth = make_auth(auth_server)

        with pytest.raises(AuthError):
            auth.execute(_config_request())
        assert auth_server.login_count == 2
        assert len(auth_server.get_calls("/v1/cs/configs")) == 2

    def test_second_rejection_discards_credential(self, auth_server, make_auth):
        """A token rejected after re-login is never sent again."""
        auth_server.add_custom_handler(
            r"/v1/cs/configs", lambda request: httpx.Response(403, text="forbidden")
        )
        auth = make_auth(auth_server)

        with pytest.raises(AuthError):
            auth.execute(_config_request())

        assert auth.credential is None
        assert auth.state is AuthState.REJECTED
        rejected = {f"token-nacos-{n}" for n in range(1, auth_server.login_count + 1)}

        auth.attach_token(_config_request())
        assert auth.credential.access_token not in rejected

    def test_authenticate_swaps_user_under_lock(self, auth_server, make_auth):
        """Explicit credentials replace the configured pair as a unit."""
        auth_server.users["admin"] = "secret"
        auth = make_auth(auth_server)
        auth.authenticate("admin", "secret")
        auth.invalidate()
        assert auth.current_credential().access_token.startswith("token-admin-")

    def test_invalidate_keeps_newer_credential(self, auth_server, make_auth):
        """A stale rejection does not discard a token obtained meanwhile."""
        auth = make_auth(auth_server)
        stale = auth.authenticate()
        fresh = auth.authenticate()
        auth.invalidate(stale)
        assert auth.credential is fresh


class TestConcurrentLogin:
    """Concurrent callers needing a token trigger exactly one login."""

    def test_single_login_for_many_threads(self, make_auth):
        server = MockNacosServer(users={"nacos": "nacos"}, login_delay=0.05)
        auth = make_auth(server)
        start = threading.Event()
        results = []
        errors = []

        def _worker():
            start.wait()
            try:
                results.append(auth.current_credential())
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        start.set()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert len(results) == 8
        assert server.login_count == 1
        assert all(credential is results[0] for credential in results)
