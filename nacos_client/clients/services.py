"""Service management on the naming surface."""

from __future__ import annotations

import logging

from ..decoding import decode_page
from ..models import (
    DEFAULT_GROUP_NAME,
    DEFAULT_NAMESPACE_ID,
    DEFAULT_PAGE_NUMBER,
    DEFAULT_PAGE_SIZE,
    Page,
    Service,
)
from ..request import HttpMethod, RequestBuilder
from .base import BaseClient, require, validate_page

logger = logging.getLogger(__name__)


class ServiceClient(BaseClient):
    """Create, update, delete, fetch and list services."""

    service_endpoint: str
    service_list_endpoint: str
    # Key of the name array in the list payload
    service_names_key: str

    def _service_request(
        self,
        method: HttpMethod,
        service_name: str,
        group_name: str | None,
        namespace_id: str | None,
    ) -> RequestBuilder:
        require(service_name, "service_name")
        return (
            RequestBuilder.create(self.service_endpoint)
            .method(method)
            .query_param("serviceName", service_name)
            .query_param("groupName", group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", namespace_id or DEFAULT_NAMESPACE_ID)
        )

    def _write_service(self, method: HttpMethod, service: Service) -> bool:
        builder = (
            self._service_request(method, service.name, service.group_name, service.namespace_id)
            .query_param("protectThreshold", service.protect_threshold)
            .query_param("metadata", service.metadata or None)
            .query_param("selector", service.selector)
        )
        self._with_ephemeral(builder, service.ephemeral)
        return self._succeeded(builder.build())

    def _with_ephemeral(self, builder: RequestBuilder, ephemeral: bool | None) -> None:
        """Only the v2 surface accepts the ephemeral flag on services."""

    def create_service(self, service: Service) -> bool:
        created = self._write_service(HttpMethod.POST, service)
        logger.debug(f"Created service {service.group_name}@@{service.name}: {created}")
        return created

    def update_service(self, service: Service) -> bool:
        return self._write_service(HttpMethod.PUT, service)

    def delete_service(
        self,
        service_name: str,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> bool:
        request = self._service_request(HttpMethod.DELETE, service_name, group_name, namespace_id).build()
        return self._succeeded(request)

    def get_service(
        self,
        service_name: str,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Service | None:
        """Return the service, or None if it is not registered."""
        request = self._service_request(HttpMethod.GET, service_name, group_name, namespace_id).build()
        return self._decode(request, Service)

    def get_service_names(
        self,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[str]:
        """
        List service names of a group, one page at a time.

        Raises:
            ValidationError: On invalid paging, before any request is sent
        """
        validate_page(page_number, page_size)
        request = (
            RequestBuilder.create(self.service_list_endpoint)
            .query_param("namespaceId", namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("groupName", group_name or DEFAULT_GROUP_NAME)
            .query_param("pageNo", page_number)
            .query_param("pageSize", page_size)
            .build()
        )
        payload = self._payload(request)
        if payload is None:
            return Page(items=[], page_number=page_number, page_size=page_size)
        return decode_page(
            payload,
            str,
            page_number,
            page_size,
            item_keys=(self.service_names_key,),
            total_keys=("count",),
        )


class ServiceClientV1(ServiceClient):
    api_version = "v1"
    service_endpoint = "/v1/ns/service"
    service_list_endpoint = "/v1/ns/service/list"
    service_names_key = "doms"


class ServiceClientV2(ServiceClient):
    api_version = "v2"
    service_endpoint = "/v2/ns/service"
    service_list_endpoint = "/v2/ns/service/list"
    service_names_key = "services"

    def _with_ephemeral(self, builder, ephemeral):
        builder.query_param("ephemeral", ephemeral)
