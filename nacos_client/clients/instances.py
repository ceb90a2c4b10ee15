"""Instance registration, discovery, heartbeats and metadata."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from ..errors import ValidationError
from ..models import (
    DEFAULT_CLUSTER_NAME,
    DEFAULT_GROUP_NAME,
    DEFAULT_NAMESPACE_ID,
    BaseInstance,
    BatchMetadataResult,
    ConsistencyType,
    Heartbeat,
    Instance,
    InstanceQuery,
    InstancesList,
    NewInstance,
)
from ..request import HttpMethod, RequestBuilder
from .base import BaseClient, require

logger = logging.getLogger(__name__)


def _require_address(instance: BaseInstance) -> None:
    require(instance.service_name, "service_name")
    require(instance.ip, "ip")
    if instance.port is None or not 0 < instance.port < 65536:
        raise ValidationError(f"port must be between 1 and 65535, got {instance.port}")


class InstanceClient(BaseClient, ABC):
    """
    Instance lifecycle and lookup.

    Canonical operations take a :class:`NewInstance`, :class:`BaseInstance` or
    :class:`InstanceQuery`; ``get_instance`` and ``get_instances_list`` are
    keyword-argument conveniences.
    """

    instance_endpoint: str
    instance_list_endpoint: str
    beat_endpoint: str
    health_endpoint: str
    metadata_batch_endpoint: str
    # Query parameter naming the cluster on instance lookups
    cluster_param: str = "clusterName"

    def _instance_request(self, endpoint: str, method: HttpMethod, instance: BaseInstance) -> RequestBuilder:
        _require_address(instance)
        return (
            RequestBuilder.create(endpoint)
            .method(method)
            .query_param("serviceName", instance.service_name)
            .query_param("groupName", instance.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", instance.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("clusterName", instance.cluster_name or DEFAULT_CLUSTER_NAME)
            .query_param("ip", instance.ip)
            .query_param("port", instance.port)
            .query_param("ephemeral", instance.ephemeral)
        )

    def _write_instance(self, method: HttpMethod, instance: NewInstance) -> bool:
        request = (
            self._instance_request(self.instance_endpoint, method, instance)
            .query_param("weight", instance.weight)
            .query_param("enabled", instance.enabled)
            .query_param("healthy", instance.healthy)
            .query_param("metadata", instance.metadata or None)
            .build()
        )
        return self._succeeded(request)

    def register(self, instance: NewInstance) -> bool:
        """
        Register an instance of a service.

        Raises:
            ValidationError: If service_name, ip or port is missing
        """
        registered = self._write_instance(HttpMethod.POST, instance)
        logger.debug(f"Registered {instance.ip}:{instance.port} in {instance.service_name}: {registered}")
        return registered

    def deregister(self, instance: BaseInstance) -> bool:
        request = self._instance_request(self.instance_endpoint, HttpMethod.DELETE, instance).build()
        return self._succeeded(request)

    def refresh(self, instance: NewInstance) -> bool:
        """Update weight, flags or metadata of a registered instance."""
        return self._write_instance(HttpMethod.PUT, instance)

    def find_instance(self, query: InstanceQuery) -> Instance | None:
        """Return one instance, or None if it is not registered."""
        require(query.service_name, "service_name")
        require(query.ip, "ip")
        require(query.port, "port")
        request = (
            RequestBuilder.create(self.instance_endpoint)
            .query_param("serviceName", query.service_name)
            .query_param("groupName", query.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", query.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param(self.cluster_param, query.cluster_name or DEFAULT_CLUSTER_NAME)
            .query_param("ip", query.ip)
            .query_param("port", query.port)
            .query_param("healthyOnly", query.healthy_only)
            .query_param("ephemeral", query.ephemeral)
            .build()
        )
        return self._decode(request, Instance)

    @abstractmethod
    def list_instances(self, query: InstanceQuery) -> InstancesList | None:
        ...

    def get_instance(
        self,
        service_name: str,
        ip: str,
        port: int,
        cluster_name: str = DEFAULT_CLUSTER_NAME,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Instance | None:
        return self.find_instance(
            InstanceQuery(
                service_name=service_name,
                namespace_id=namespace_id,
                group_name=group_name,
                cluster_name=cluster_name,
                ip=ip,
                port=port,
            )
        )

    def get_instances_list(
        self,
        service_name: str,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        cluster_name: str = DEFAULT_CLUSTER_NAME,
        ip: str | None = None,
        port: int | None = None,
        healthy_only: bool = False,
        app: str | None = None,
    ) -> InstancesList | None:
        """
        Return the instances of a service.

        Usage:
            instances = client.get_instances_list("orders", healthy_only=True)
            for host in instances.hosts:
                print(host.address)
        """
        return self.list_instances(
            InstanceQuery(
                service_name=service_name,
                namespace_id=namespace_id,
                group_name=group_name,
                cluster_name=cluster_name,
                ip=ip,
                port=port,
                healthy_only=healthy_only,
                app=app,
            )
        )

    def send_heartbeat(self, instance: NewInstance) -> Heartbeat | None:
        _require_address(instance)
        beat = {
            "serviceName": instance.service_name,
            "ip": instance.ip,
            "port": instance.port,
            "cluster": instance.cluster_name or DEFAULT_CLUSTER_NAME,
            "weight": instance.weight if instance.weight is not None else 1.0,
            "metadata": instance.metadata or {},
            "scheduled": True,
        }
        request = (
            RequestBuilder.create(self.beat_endpoint)
            .method(HttpMethod.PUT)
            .query_param("serviceName", instance.service_name)
            .query_param("groupName", instance.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", instance.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("ephemeral", instance.ephemeral)
            .query_param("beat", beat)
            .build()
        )
        return self._decode(request, Heartbeat)

    def update_health(self, instance: BaseInstance, healthy: bool) -> bool:
        """Mark a persistent instance healthy or unhealthy."""
        request = (
            self._instance_request(self.health_endpoint, HttpMethod.PUT, instance)
            .query_param("healthy", healthy)
            .build()
        )
        return self._succeeded(request)

    def batch_update_metadata(
        self,
        instances: Iterable[BaseInstance],
        metadata: dict[str, str],
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
    ) -> BatchMetadataResult | None:
        return self._batch_metadata(HttpMethod.PUT, instances, metadata, consistency_type)

    def batch_delete_metadata(
        self,
        instances: Iterable[BaseInstance],
        metadata: dict[str, str],
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
    ) -> BatchMetadataResult | None:
        return self._batch_metadata(HttpMethod.DELETE, instances, metadata, consistency_type)

    def _batch_metadata(
        self,
        method: HttpMethod,
        instances: Iterable[BaseInstance],
        metadata: dict[str, str],
        consistency_type: ConsistencyType,
    ) -> BatchMetadataResult | None:
        """
        Apply a metadata change to several instances of one service.

        Raises:
            ValidationError: If no instance is given or they span several services
        """
        instances = list(instances)
        if not instances:
            raise ValidationError("at least one instance is required")
        first = instances[0]
        service = (first.namespace_id, first.group_name, first.service_name)
        for instance in instances:
            if (instance.namespace_id, instance.group_name, instance.service_name) != service:
                raise ValidationError(
                    "batch metadata operations require instances of a single service, "
                    f"got {instance.group_name}@@{instance.service_name} and {first.group_name}@@{first.service_name}"
                )
        require(first.service_name, "service_name")

        targets = [
            {
                "ip": instance.ip,
                "port": instance.port,
                "clusterName": instance.cluster_name or DEFAULT_CLUSTER_NAME,
            }
            for instance in instances
        ]
        request = (
            RequestBuilder.create(self.metadata_batch_endpoint)
            .method(method)
            .query_param("serviceName", first.service_name)
            .query_param("groupName", first.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", first.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("consistencyType", consistency_type)
            .query_param("instances", targets)
            .query_param("metadata", metadata)
            .build()
        )
        return self._decode(request, BatchMetadataResult)


class InstanceClientV1(InstanceClient):
    api_version = "v1"
    instance_endpoint = "/v1/ns/instance"
    instance_list_endpoint = "/v1/ns/instance/list"
    beat_endpoint = "/v1/ns/instance/beat"
    health_endpoint = "/v1/ns/health/instance"
    metadata_batch_endpoint = "/v1/ns/instance/metadata/batch"
    cluster_param = "cluster"

    def list_instances(self, query):
        require(query.service_name, "service_name")
        request = (
            RequestBuilder.create(self.instance_list_endpoint)
            .query_param("serviceName", query.service_name)
            .query_param("groupName", query.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", query.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("clusters", query.cluster_name)
            .query_param("clientIP", query.ip)
            .query_param("udpPort", query.port)
            .query_param("healthyOnly", query.healthy_only)
            .query_param("app", query.app)
            .build()
        )
        return self._decode(request, InstancesList)


class InstanceClientV2(InstanceClient):
    api_version = "v2"
    instance_endpoint = "/v2/ns/instance"
    instance_list_endpoint = "/v2/ns/instance/list"
    beat_endpoint = "/v2/ns/instance/beat"
    health_endpoint = "/v2/ns/health/instance"
    metadata_batch_endpoint = "/v2/ns/instance/metadata/batch"

    def list_instances(self, query):
        require(query.service_name, "service_name")
        request = (
            RequestBuilder.create(self.instance_list_endpoint)
            .query_param("serviceName", query.service_name)
            .query_param("groupName", query.group_name or DEFAULT_GROUP_NAME)
            .query_param("namespaceId", query.namespace_id or DEFAULT_NAMESPACE_ID)
            .query_param("clusterName", query.cluster_name)
            .query_param("ip", query.ip)
            .query_param("port", query.port)
            .query_param("healthyOnly", query.healthy_only)
            .query_param("app", query.app)
            .build()
        )
        return self._decode(request, InstancesList)
