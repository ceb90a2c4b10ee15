"""Immutable request descriptions consumed by the transport."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


_EMPTY: Mapping[str, str] = MappingProxyType({})


def _format_param(value: Any) -> str:
    """Render a parameter the way the server expects it on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


@dataclass(frozen=True)
class Request:
    """
    One Open API call: endpoint, method, parameters and headers.

    Parameters are stored pre-rendered as strings; ``None`` values are
    dropped when the request is built so "absent" always means "omit".
    """
    endpoint: str
    method: HttpMethod = HttpMethod.GET
    query_params: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    form_params: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    json_body: Any = None
    headers: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    def with_query_param(self, name: str, value: Any) -> Request:
        params = dict(self.query_params)
        params[name] = _format_param(value)
        return replace(self, query_params=MappingProxyType(params))

    def with_header(self, name: str, value: str) -> Request:
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=MappingProxyType(headers))

    def __str__(self) -> str:
        return f"{self.method.value} {self.endpoint}"


class RequestBuilder:
    """
    Fluent builder for :class:`Request`.

    Usage:
        request = (
            RequestBuilder("/v1/cs/configs")
            .method(HttpMethod.POST)
            .form_param("dataId", "app.properties")
            .form_param("tenant", None)  # omitted
            .build()
        )
    """

    def __init__(self, endpoint: str):
        self._endpoint = endpoint
        self._method = HttpMethod.GET
        self._query: dict[str, str] = {}
        self._form: dict[str, str] = {}
        self._json: Any = None
        self._headers: dict[str, str] = {}

    @classmethod
    def create(cls, endpoint: str) -> RequestBuilder:
        return cls(endpoint)

    def method(self, method: HttpMethod) -> RequestBuilder:
        self._method = method
        return self

    def query_param(self, name: str, value: Any) -> RequestBuilder:
        if value is not None:
            self._query[name] = _format_param(value)
        return self

    def form_param(self, name: str, value: Any) -> RequestBuilder:
        if value is not None:
            self._form[name] = _format_param(value)
        return self

    def json(self, body: Any) -> RequestBuilder:
        self._json = body
        return self

    def header(self, name: str, value: str | None) -> RequestBuilder:
        if value is not None:
            self._headers[name] = value
        return self

    def build(self) -> Request:
        return Request(
            endpoint=self._endpoint,
            method=self._method,
            query_params=MappingProxyType(dict(self._query)),
            form_params=MappingProxyType(dict(self._form)),
            json_body=self._json,
            headers=MappingProxyType(dict(self._headers)),
        )
