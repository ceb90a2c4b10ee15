"""Client connection introspection, available on the v2 surface only."""

from __future__ import annotations

from ..errors import UnsupportedOperationError
from ..models import (
    DEFAULT_GROUP_NAME,
    DEFAULT_NAMESPACE_ID,
    ClientDetail,
    ClientInfo,
    ClientInstance,
    ClientSubscriber,
    ConsistencyType,
)
from ..request import Request, RequestBuilder
from .base import BaseClient, require

CLIENT_ENDPOINT = "/v2/ns/client"
CLIENT_LIST_ENDPOINT = CLIENT_ENDPOINT + "/list"
CLIENT_REGISTERED_INSTANCES_ENDPOINT = CLIENT_ENDPOINT + "/publish/list"
CLIENT_SUBSCRIBERS_ENDPOINT = CLIENT_ENDPOINT + "/subscribe/list"
REGISTERED_CLIENTS_ENDPOINT = CLIENT_ENDPOINT + "/service/publisher/list"
SUBSCRIBED_CLIENTS_ENDPOINT = CLIENT_ENDPOINT + "/service/subscriber/list"


class ConnectionClient(BaseClient):
    """
    Who is connected, what they registered and what they subscribe to.

    Raises:
        UnsupportedOperationError: From every method when the client speaks v1
    """

    api_version = "v2"
    supported = True

    def _check_supported(self, operation: str) -> None:
        if not self.supported:
            raise UnsupportedOperationError(
                f"{operation} requires the v2 Open API (configured: {self.config.api_version})"
            )

    def _client_request(self, endpoint: str, client_id: str) -> Request:
        require(client_id, "client_id")
        return RequestBuilder.create(endpoint).query_param("clientId", client_id).build()

    def get_all_client_ids(self) -> list[str]:
        self._check_supported("get_all_client_ids")
        return self._decode_list(RequestBuilder.create(CLIENT_LIST_ENDPOINT).build(), str)

    def get_client_detail(self, client_id: str) -> ClientDetail | None:
        self._check_supported("get_client_detail")
        return self._decode(self._client_request(CLIENT_ENDPOINT, client_id), ClientDetail)

    def get_registered_instances(self, client_id: str) -> list[ClientInstance]:
        self._check_supported("get_registered_instances")
        return self._decode_list(
            self._client_request(CLIENT_REGISTERED_INSTANCES_ENDPOINT, client_id), ClientInstance
        )

    def get_subscribers(self, client_id: str) -> list[ClientSubscriber]:
        self._check_supported("get_subscribers")
        return self._decode_list(self._client_request(CLIENT_SUBSCRIBERS_ENDPOINT, client_id), ClientSubscriber)

    def get_registered_clients(
        self,
        service_name: str,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
        ip: str | None = None,
        port: int | None = None,
    ) -> list[ClientInfo]:
        """Clients that registered instances of a service."""
        self._check_supported("get_registered_clients")
        return self._clients(
            REGISTERED_CLIENTS_ENDPOINT, service_name, namespace_id, group_name, consistency_type, ip, port
        )

    def get_subscribed_clients(
        self,
        service_name: str,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
        ip: str | None = None,
        port: int | None = None,
    ) -> list[ClientInfo]:
        """Clients subscribed to a service."""
        self._check_supported("get_subscribed_clients")
        return self._clients(
            SUBSCRIBED_CLIENTS_ENDPOINT, service_name, namespace_id, group_name, consistency_type, ip, port
        )

    def _clients(self, endpoint, service_name, namespace_id, group_name, consistency_type, ip, port):
        require(service_name, "service_name")
        request = (
            RequestBuilder.create(endpoint)
            .query_param("namespaceId", namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("groupName", group_name or DEFAULT_GROUP_NAME)
            .query_param("serviceName", service_name)
            .query_param("ephemeral", consistency_type == ConsistencyType.EPHEMERAL)
            .query_param("ip", ip)
            .query_param("port", port)
            .build()
        )
        return self._decode_list(request, ClientInfo)


class UnsupportedConnectionClient(ConnectionClient):
    """Stand-in used by v1 clients."""

    api_version = "v1"
    supported = False
