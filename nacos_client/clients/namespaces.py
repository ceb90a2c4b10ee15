"""Namespace management through the console API."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from ..decoding import decode, decode_list
from ..models import Namespace
from ..request import HttpMethod, Request, RequestBuilder
from .base import BaseClient, require

logger = logging.getLogger(__name__)


class NamespaceClient(BaseClient, ABC):
    """List, fetch, create, update and delete namespaces."""

    @abstractmethod
    def _list_request(self) -> Request:
        ...

    @abstractmethod
    def _get_request(self, namespace_id: str) -> Request:
        ...

    @abstractmethod
    def _create_request(self, namespace_id: str, name: str, description: str | None) -> Request:
        ...

    @abstractmethod
    def _update_request(self, namespace_id: str, name: str, description: str | None) -> Request:
        ...

    @abstractmethod
    def _delete_request(self, namespace_id: str) -> Request:
        ...

    def _unwrap(self, payload: Any) -> Any:
        return payload

    def get_all_namespaces(self) -> list[Namespace]:
        request = self._list_request()
        payload = self._unwrap(self._payload(request))
        if payload is None:
            return []
        return decode_list(payload, Namespace, context=str(request))

    def get_namespace(self, namespace_id: str) -> Namespace | None:
        """Return the namespace, or None if it does not exist."""
        require(namespace_id, "namespace_id")
        request = self._get_request(namespace_id)
        payload = self._unwrap(self._payload(request))
        if payload is None:
            return None
        namespace = decode(payload, Namespace, context=str(request))
        if namespace.namespace_id is None:
            namespace.namespace_id = namespace_id
        return namespace

    def create_namespace(self, namespace_id: str, name: str, description: str | None = None) -> bool:
        require(namespace_id, "namespace_id")
        require(name, "name")
        created = self._succeeded(self._create_request(namespace_id, name, description))
        logger.info(f"Created namespace {namespace_id} ({name}): {created}")
        return created

    def update_namespace(self, namespace_id: str, name: str, description: str | None = None) -> bool:
        require(namespace_id, "namespace_id")
        require(name, "name")
        return self._succeeded(self._update_request(namespace_id, name, description))

    def delete_namespace(self, namespace_id: str) -> bool:
        require(namespace_id, "namespace_id")
        return self._succeeded(self._delete_request(namespace_id))


class NamespaceClientV1(NamespaceClient):
    api_version = "v1"
    namespaces_endpoint = "/v1/console/namespaces"

    def _unwrap(self, payload):
        # The console answers lists as {"code": 200, "message": ..., "data": [...]}
        if isinstance(payload, dict) and "data" in payload and "code" in payload:
            return payload["data"]
        return payload

    def _list_request(self):
        return RequestBuilder.create(self.namespaces_endpoint).build()

    def _get_request(self, namespace_id):
        return (
            RequestBuilder.create(self.namespaces_endpoint)
            .query_param("show", "all")
            .query_param("namespaceId", namespace_id)
            .build()
        )

    def _create_request(self, namespace_id, name, description):
        return (
            RequestBuilder.create(self.namespaces_endpoint)
            .method(HttpMethod.POST)
            .form_param("customNamespaceId", namespace_id)
            .form_param("namespaceName", name)
            .form_param("namespaceDesc", description)
            .build()
        )

    def _update_request(self, namespace_id, name, description):
        return (
            RequestBuilder.create(self.namespaces_endpoint)
            .method(HttpMethod.PUT)
            .form_param("namespace", namespace_id)
            .form_param("namespaceShowName", name)
            .form_param("namespaceDesc", description)
            .build()
        )

    def _delete_request(self, namespace_id):
        return (
            RequestBuilder.create(self.namespaces_endpoint)
            .method(HttpMethod.DELETE)
            .query_param("namespaceId", namespace_id)
            .build()
        )


class NamespaceClientV2(NamespaceClient):
    api_version = "v2"
    namespace_endpoint = "/v2/console/namespace"
    namespace_list_endpoint = "/v2/console/namespace/list"

    def _list_request(self):
        return RequestBuilder.create(self.namespace_list_endpoint).build()

    def _get_request(self, namespace_id):
        return (
            RequestBuilder.create(self.namespace_endpoint)
            .query_param("namespaceId", namespace_id)
            .build()
        )

    def _create_request(self, namespace_id, name, description):
        return (
            RequestBuilder.create(self.namespace_endpoint)
            .method(HttpMethod.POST)
            .form_param("namespaceId", namespace_id)
            .form_param("namespaceName", name)
            .form_param("namespaceDesc", description)
            .build()
        )

    def _update_request(self, namespace_id, name, description):
        return (
            RequestBuilder.create(self.namespace_endpoint)
            .method(HttpMethod.PUT)
            .form_param("namespaceId", namespace_id)
            .form_param("namespaceName", name)
            .form_param("namespaceDesc", description)
            .build()
        )

    def _delete_request(self, namespace_id):
        return (
            RequestBuilder.create(self.namespace_endpoint)
            .method(HttpMethod.DELETE)
            .query_param("namespaceId", namespace_id)
            .build()
        )
