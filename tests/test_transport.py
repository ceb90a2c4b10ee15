"""Tests for request building and the HTTP transport."""

from __future__ import annotations

import json

import httpx
import pytest

from nacos_client.config import ClientConfig
from nacos_client.errors import ClientClosedError, TransportError
from nacos_client.models import ConfigType
from nacos_client.request import HttpMethod, RequestBuilder
from nacos_client.transport import Transport

from tests.fixtures.mock_service import MockNacosServer


class TestRequestBuilder:
    """Test immutable request construction."""

    def test_none_params_are_omitted(self):
        request = (
            RequestBuilder.create("/v1/cs/configs")
            .query_param("dataId", "app.properties")
            .query_param("tenant", None)
            .build()
        )
        assert dict(request.query_params) == {"dataId": "app.properties"}

    def test_values_rendered_for_the_wire(self):
        """Booleans, enums and mappings use the server's textual forms."""
        request = (
            RequestBuilder.create("/v2/ns/instance")
            .method(HttpMethod.POST)
            .form_param("healthy", False)
            .form_param("type", ConfigType.YAML)
            .form_param("metadata", {"zone": "a"})
            .form_param("port", 8080)
            .build()
        )
        assert request.form_params["healthy"] == "false"
        assert request.form_params["type"] == "yaml"
        assert json.loads(request.form_params["metadata"]) == {"zone": "a"}
        assert request.form_params["port"] == "8080"
        assert str(request) == "POST /v2/ns/instance"

    def test_requests_are_immutable(self):
        request = RequestBuilder.create("/v1/cs/configs").build()
        derived = request.with_query_param("accessToken", "t").with_header("X-Trace", "1")
        assert dict(request.query_params) == {}
        assert dict(request.headers) == {}
        assert derived.query_params["accessToken"] == "t"
        assert derived.headers["X-Trace"] == "1"
        with pytest.raises(TypeError):
            request.query_params["x"] = "y"


class TestTransport:
    """Test Transport against a mock server."""

    def _transport(self, server: MockNacosServer) -> Transport:
        with server.patch_httpx():
            return Transport(ClientConfig(server_address="http://mock"))

    def test_context_path_prefixes_endpoints(self):
        server = MockNacosServer()
        server.add_config("app.properties", "a=1")
        with self._transport(server) as transport:
            response = transport.execute(
                RequestBuilder.create("/v1/cs/configs")
                .query_param("dataId", "app.properties")
                .query_param("group", "DEFAULT_GROUP")
                .build()
            )
        assert response.ok
        assert response.text == "a=1"
        assert server.get_calls()[0][1].startswith("http://mock/nacos/v1/cs/configs?")

    def test_no_status_interpretation(self):
        """Error statuses come back as responses, not exceptions."""
        server = MockNacosServer()
        with self._transport(server) as transport:
            response = transport.execute(RequestBuilder.create("/v1/unknown").build())
        assert response.status_code == 404
        assert not response.ok

    def test_network_failure_raises_transport_error(self):
        server = MockNacosServer()

        def _refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        server.add_custom_handler(r"/v1/cs/configs", _refuse)
        with self._transport(server) as transport:
            with pytest.raises(TransportError) as exc_info:
                transport.execute(RequestBuilder.create("/v1/cs/configs").build())
        assert exc_info.value.endpoint == "/v1/cs/configs"
        assert exc_info.value.method == "GET"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_execute_after_close_fails_fast(self):
        server = MockNacosServer()
        transport = self._transport(server)
        transport.close()
        transport.close()  # idempotent
        with pytest.raises(ClientClosedError):
            transport.execute(RequestBuilder.create("/v1/cs/configs").build())
        assert server.get_calls() == []
