"""Server operator endpoints, cluster membership and raft state."""

from __future__ import annotations

from ..decoding import decode_list
from ..models import ClusterMember, RaftLeader, ServerMetrics, ServerSwitches
from ..request import RequestBuilder
from .base import BaseClient


class ServerClient(BaseClient):
    metrics_endpoint: str
    switches_endpoint: str
    cluster_members_endpoint: str

    def get_server_metrics(self) -> ServerMetrics | None:
        return self._decode(RequestBuilder.create(self.metrics_endpoint).build(), ServerMetrics)

    def get_server_switches(self) -> ServerSwitches | None:
        return self._decode(RequestBuilder.create(self.switches_endpoint).build(), ServerSwitches)

    def get_cluster_members(self) -> list[ClusterMember]:
        return self._decode_list(RequestBuilder.create(self.cluster_members_endpoint).build(), ClusterMember)


class ServerClientV1(ServerClient):
    api_version = "v1"
    metrics_endpoint = "/v1/ns/operator/metrics"
    switches_endpoint = "/v1/ns/operator/switches"
    cluster_members_endpoint = "/v1/core/cluster/nodes"

    def get_cluster_members(self):
        request = RequestBuilder.create(self.cluster_members_endpoint).build()
        payload = self._payload(request)
        # {"code": 200, "message": ..., "data": [...]}
        if isinstance(payload, dict):
            payload = payload.get("data")
        if payload is None:
            return []
        return decode_list(payload, ClusterMember, context=str(request))


class ServerClientV2(ServerClient):
    api_version = "v2"
    metrics_endpoint = "/v2/ns/operator/metrics"
    switches_endpoint = "/v2/ns/operator/switches"
    cluster_members_endpoint = "/v2/core/cluster/node/list"


class RaftClient(BaseClient):
    """Raft leader lookup; only the v1 surface exposes it."""

    leader_endpoint = "/v1/ns/raft/leader"

    def get_leader(self) -> RaftLeader | None:
        return self._decode(RequestBuilder.create(self.leader_endpoint).build(), RaftLeader)
