"""Per-domain Open API clients, one implementation per API version."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ValidationError
from .base import BaseClient
from .configs import ConfigClient, ConfigClientV1, ConfigClientV2
from .connections import ConnectionClient, UnsupportedConnectionClient
from .instances import InstanceClient, InstanceClientV1, InstanceClientV2
from .namespaces import NamespaceClient, NamespaceClientV1, NamespaceClientV2
from .server import RaftClient, ServerClient, ServerClientV1, ServerClientV2
from .services import ServiceClient, ServiceClientV1, ServiceClientV2

if TYPE_CHECKING:
    from ..auth import AuthManager
    from ..config import ClientConfig

SUPPORTED_VERSIONS = ("v1", "v2")

_CLIENTS: dict[str, dict[str, type[BaseClient]]] = {
    "config": {"v1": ConfigClientV1, "v2": ConfigClientV2},
    "service": {"v1": ServiceClientV1, "v2": ServiceClientV2},
    "instance": {"v1": InstanceClientV1, "v2": InstanceClientV2},
    "namespace": {"v1": NamespaceClientV1, "v2": NamespaceClientV2},
    "server": {"v1": ServerClientV1, "v2": ServerClientV2},
    "raft": {"v1": RaftClient, "v2": RaftClient},
    "connection": {"v1": UnsupportedConnectionClient, "v2": ConnectionClient},
}


def get_client_class(domain: str, api_version: str) -> type[BaseClient]:
    """
    Look up the client class serving ``domain`` on ``api_version``.

    Raises:
        ValidationError: If the domain or version is unknown
    """
    try:
        versions = _CLIENTS[domain]
    except KeyError:
        raise ValidationError(f"Unknown client domain: {domain}") from None
    try:
        return versions[api_version]
    except KeyError:
        raise ValidationError(
            f"Unsupported API version '{api_version}', expected one of {', '.join(SUPPORTED_VERSIONS)}"
        ) from None


def create_client(domain: str, auth: AuthManager, config: ClientConfig) -> BaseClient:
    return get_client_class(domain, config.api_version)(auth, config)


__all__ = [
    "BaseClient",
    "ConfigClient",
    "ConfigClientV1",
    "ConfigClientV2",
    "ConnectionClient",
    "InstanceClient",
    "InstanceClientV1",
    "InstanceClientV2",
    "NamespaceClient",
    "NamespaceClientV1",
    "NamespaceClientV2",
    "RaftClient",
    "ServerClient",
    "ServerClientV1",
    "ServerClientV2",
    "ServiceClient",
    "ServiceClientV1",
    "ServiceClientV2",
    "UnsupportedConnectionClient",
    "create_client",
    "get_client_class",
]
