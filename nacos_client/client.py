"""Main client class and convenience functions."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from .auth import AuthManager, Credential
from .clients import (
    ConfigClient,
    ConnectionClient,
    InstanceClient,
    NamespaceClient,
    RaftClient,
    ServerClient,
    ServiceClient,
    create_client,
)
from .config import ClientConfig
from .errors import ClientClosedError
from .models import (
    DEFAULT_CLUSTER_NAME,
    DEFAULT_GROUP_NAME,
    DEFAULT_NAMESPACE_ID,
    DEFAULT_PAGE_NUMBER,
    DEFAULT_PAGE_SIZE,
    BaseInstance,
    BatchMetadataResult,
    ClientDetail,
    ClientInfo,
    ClientInstance,
    ClientSubscriber,
    ClusterMember,
    Config,
    ConfigIdentity,
    ConfigSnapshot,
    ConfigType,
    ConsistencyType,
    Heartbeat,
    HistoryConfig,
    Instance,
    InstanceQuery,
    InstancesList,
    Namespace,
    NewConfig,
    NewInstance,
    Page,
    RaftLeader,
    ServerMetrics,
    ServerSwitches,
    Service,
)
from .transport import Transport
from .watcher import ConfigChangedListener, ListenerHandle

logger = logging.getLogger(__name__)


class NacosClient:
    """
    Client for the Nacos Open API.

    Every domain client shares one transport (one connection pool) and one
    auth manager (one access token).

    Usage:
        client = NacosClient()
        content = client.get_config_content("app.properties")

        # Or with custom config
        with NacosClient(config=ClientConfig(
            server_address="http://nacos:8848",
            api_version="v1",
            username="nacos",
            password="nacos",
        )) as client:
            client.publish_config_content("app.properties", "a=1")
    """

    def __init__(self, config: ClientConfig | None = None):
        self.config = config if config is not None else ClientConfig()
        self.transport = Transport(self.config)
        self.auth = AuthManager(self.transport, self.config)
        self.configs: ConfigClient = create_client("config", self.auth, self.config)
        self.services: ServiceClient = create_client("service", self.auth, self.config)
        self.instances: InstanceClient = create_client("instance", self.auth, self.config)
        self.namespaces: NamespaceClient = create_client("namespace", self.auth, self.config)
        self.server: ServerClient = create_client("server", self.auth, self.config)
        self.raft: RaftClient = create_client("raft", self.auth, self.config)
        self.connections: ConnectionClient = create_client("connection", self.auth, self.config)
        self._closed = False
        self._close_lock = threading.Lock()
        logger.info(f"Nacos client for {self.config.base_url} ({self.config.api_version}) started")

    @property
    def api_version(self) -> str:
        return self.config.api_version

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Nacos client is closed")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def authenticate(self, username: str | None = None, password: str | None = None) -> Credential:
        """
        Log in explicitly. Later calls reuse and silently refresh the token.

        Raises:
            AuthError: If the server refuses the credentials
        """
        self._check_open()
        return self.auth.authenticate(username, password)

    def close(self) -> None:
        """Stop config listeners and release the connection pool. Idempotent."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self.configs.close()
        self.transport.close()
        logger.info(f"Nacos client for {self.config.base_url} closed")

    def __enter__(self) -> NacosClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config_content(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> str | None:
        """
        Get the raw content of a config.

        Returns:
            The content, or None if the config does not exist
        """
        self._check_open()
        return self.configs.get_config_content(data_id, group, namespace_id, tag)

    def get_config(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Config | None:
        """Get a config with its metadata (md5, type, timestamps, ...)."""
        self._check_open()
        return self.configs.get_config(data_id, group, namespace_id)

    def get_snapshot(self, identity: ConfigIdentity) -> ConfigSnapshot | None:
        self._check_open()
        return self.configs.get_snapshot(identity)

    def publish_config(self, new_config: NewConfig) -> bool:
        self._check_open()
        return self.configs.publish_config(new_config)

    def publish_config_content(
        self,
        data_id: str,
        content: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
        config_type: ConfigType | None = None,
    ) -> bool:
        """
        Create a config or replace the content of an existing one.

        Args:
            data_id: Config data id
            content: New content
            group: Config group
            namespace_id: Namespace, "public" by default
            tag: Optional tag
            config_type: Content type; an existing config keeps its own if None

        Returns:
            True if the server accepted the change
        """
        self._check_open()
        return self.configs.publish_config_content(data_id, content, group, namespace_id, tag, config_type)

    def delete_config(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> bool:
        self._check_open()
        return self.configs.delete_config(data_id, group, namespace_id, tag)

    def get_history_configs(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[HistoryConfig]:
        """
        Page through the revisions of a config, newest first.

        Raises:
            ValidationError: If page_number < 1 or page_size is outside [1, 500]
        """
        self._check_open()
        return self.configs.get_history_configs(data_id, group, namespace_id, page_number, page_size)

    def get_history_config(
        self,
        data_id: str,
        revision: int,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> HistoryConfig | None:
        self._check_open()
        return self.configs.get_history_config(data_id, revision, group, namespace_id)

    def get_previous_history_config(
        self,
        data_id: str,
        id: int | str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> HistoryConfig | None:
        self._check_open()
        return self.configs.get_previous_history_config(data_id, id, group, namespace_id)

    def add_event_listener(
        self,
        data_id: str,
        listener: ConfigChangedListener,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> ListenerHandle:
        """
        Call ``listener`` whenever the content of a config changes.

        The current content is fetched before this returns, so the first
        notification always reflects a real change.

        Returns:
            Handle to pass to remove_event_listener
        """
        self._check_open()
        return self.configs.add_event_listener(data_id, listener, group, namespace_id, tag)

    def remove_event_listener(self, handle: ListenerHandle) -> bool:
        self._check_open()
        return self.configs.remove_event_listener(handle)

    # =========================================================================
    # Services
    # =========================================================================

    def create_service(self, service: Service) -> bool:
        self._check_open()
        return self.services.create_service(service)

    def update_service(self, service: Service) -> bool:
        self._check_open()
        return self.services.update_service(service)

    def delete_service(
        self,
        service_name: str,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> bool:
        self._check_open()
        return self.services.delete_service(service_name, group_name, namespace_id)

    def get_service(
        self,
        service_name: str,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Service | None:
        self._check_open()
        return self.services.get_service(service_name, group_name, namespace_id)

    def get_service_names(
        self,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[str]:
        self._check_open()
        return self.services.get_service_names(namespace_id, group_name, page_number, page_size)

    # =========================================================================
    # Instances
    # =========================================================================

    def register(self, instance: NewInstance) -> bool:
        self._check_open()
        return self.instances.register(instance)

    def deregister(self, instance: BaseInstance) -> bool:
        self._check_open()
        return self.instances.deregister(instance)

    def refresh(self, instance: NewInstance) -> bool:
        self._check_open()
        return self.instances.refresh(instance)

    def find_instance(self, query: InstanceQuery) -> Instance | None:
        self._check_open()
        return self.instances.find_instance(query)

    def get_instance(
        self,
        service_name: str,
        ip: str,
        port: int,
        cluster_name: str = DEFAULT_CLUSTER_NAME,
        group_name: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Instance | None:
        self._check_open()
        return self.instances.get_instance(service_name, ip, port, cluster_name, group_name, namespace_id)

    def list_instances(self, query: InstanceQuery) -> InstancesList | None:
        self._check_open()
        return self.instances.list_instances(query)

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
        self._check_open()
        return self.instances.get_instances_list(
            service_name, namespace_id, group_name, cluster_name, ip, port, healthy_only, app
        )

    def send_heartbeat(self, instance: NewInstance) -> Heartbeat | None:
        self._check_open()
        return self.instances.send_heartbeat(instance)

    def update_health(self, instance: BaseInstance, healthy: bool) -> bool:
        self._check_open()
        return self.instances.update_health(instance, healthy)

    def batch_update_metadata(
        self,
        instances: Iterable[BaseInstance],
        metadata: dict[str, str],
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
    ) -> BatchMetadataResult | None:
        self._check_open()
        return self.instances.batch_update_metadata(instances, metadata, consistency_type)

    def batch_delete_metadata(
        self,
        instances: Iterable[BaseInstance],
        metadata: dict[str, str],
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
    ) -> BatchMetadataResult | None:
        self._check_open()
        return self.instances.batch_delete_metadata(instances, metadata, consistency_type)

    # =========================================================================
    # Namespaces
    # =========================================================================

    def get_all_namespaces(self) -> list[Namespace]:
        self._check_open()
        return self.namespaces.get_all_namespaces()

    def get_namespace(self, namespace_id: str) -> Namespace | None:
        self._check_open()
        return self.namespaces.get_namespace(namespace_id)

    def create_namespace(self, namespace_id: str, name: str, description: str | None = None) -> bool:
        self._check_open()
        return self.namespaces.create_namespace(namespace_id, name, description)

    def update_namespace(self, namespace_id: str, name: str, description: str | None = None) -> bool:
        self._check_open()
        return self.namespaces.update_namespace(namespace_id, name, description)

    def delete_namespace(self, namespace_id: str) -> bool:
        self._check_open()
        return self.namespaces.delete_namespace(namespace_id)

    # =========================================================================
    # Server and cluster
    # =========================================================================

    def get_server_metrics(self) -> ServerMetrics | None:
        self._check_open()
        return self.server.get_server_metrics()

    def get_server_switches(self) -> ServerSwitches | None:
        self._check_open()
        return self.server.get_server_switches()

    def get_cluster_members(self) -> list[ClusterMember]:
        self._check_open()
        return self.server.get_cluster_members()

    def get_leader(self) -> RaftLeader | None:
        self._check_open()
        return self.raft.get_leader()

    # =========================================================================
    # Client connections (v2)
    # =========================================================================

    def get_all_client_ids(self) -> list[str]:
        self._check_open()
        return self.connections.get_all_client_ids()

    def get_client_detail(self, client_id: str) -> ClientDetail | None:
        self._check_open()
        return self.connections.get_client_detail(client_id)

    def get_registered_instances(self, client_id: str) -> list[ClientInstance]:
        self._check_open()
        return self.connections.get_registered_instances(client_id)

    def get_subscribers(self, client_id: str) -> list[ClientSubscriber]:
        self._check_open()
        return self.connections.get_subscribers(client_id)

    def get_registered_clients(
        self,
        service_name: str,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        group_name: str = DEFAULT_GROUP_NAME,
        consistency_type: ConsistencyType = ConsistencyType.EPHEMERAL,
        ip: str | None = None,
        port: int | None = None,
    ) -> list[ClientInfo]:
        self._check_open()
        return self.connections.get_registered_clients(
            service_name, namespace_id, group_name, consistency_type, ip, port
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
        self._check_open()
        return self.connections.get_subscribed_clients(
            service_name, namespace_id, group_name, consistency_type, ip, port
        )


# Module-level default client
_default_client: NacosClient | None = None
_default_client_lock = threading.Lock()


def _get_client() -> NacosClient:
    """Get or create the default client."""
    global _default_client
    with _default_client_lock:
        if _default_client is None or _default_client.closed:
            _default_client = NacosClient(ClientConfig.load())
        return _default_client


def get_config_content(
    data_id: str,
    group: str = DEFAULT_GROUP_NAME,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
    tag: str | None = None,
) -> str | None:
    """
    Get config content using the default client.

    Usage:
        from nacos_client import get_config_content
        content = get_config_content("app.properties")
    """
    return _get_client().get_config_content(data_id, group, namespace_id, tag)


def get_config(
    data_id: str,
    group: str = DEFAULT_GROUP_NAME,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
) -> Config | None:
    """Get a config with its metadata using the default client."""
    return _get_client().get_config(data_id, group, namespace_id)


def publish_config_content(
    data_id: str,
    content: str,
    group: str = DEFAULT_GROUP_NAME,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
    tag: str | None = None,
    config_type: ConfigType | None = None,
) -> bool:
    """
    Publish config content using the default client.

    Usage:
        from nacos_client import publish_config_content, ConfigType
        publish_config_content("app.yaml", "a: 1", config_type=ConfigType.YAML)
    """
    return _get_client().publish_config_content(data_id, content, group, namespace_id, tag, config_type)


def delete_config(
    data_id: str,
    group: str = DEFAULT_GROUP_NAME,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
    tag: str | None = None,
) -> bool:
    """Delete a config using the default client."""
    return _get_client().delete_config(data_id, group, namespace_id, tag)


def add_event_listener(
    data_id: str,
    listener: ConfigChangedListener,
    group: str = DEFAULT_GROUP_NAME,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
    tag: str | None = None,
) -> ListenerHandle:
    """
    Watch a config using the default client.

    Usage:
        from nacos_client import add_event_listener, remove_event_listener
        handle = add_event_listener("app.properties", lambda event: print(event.content))
        ...
        remove_event_listener(handle)
    """
    return _get_client().add_event_listener(data_id, listener, group, namespace_id, tag)


def remove_event_listener(handle: ListenerHandle) -> bool:
    """Stop a listener registered with add_event_listener."""
    return _get_client().remove_event_listener(handle)


def get_instances_list(
    service_name: str,
    namespace_id: str = DEFAULT_NAMESPACE_ID,
    group_name: str = DEFAULT_GROUP_NAME,
    healthy_only: bool = False,
) -> InstancesList | None:
    """
    List the instances of a service using the default client.

    Usage:
        from nacos_client import get_instances_list
        instances = get_instances_list("orders", healthy_only=True)
        print([host.address for host in instances.hosts])
    """
    return _get_client().get_instances_list(
        service_name, namespace_id=namespace_id, group_name=group_name, healthy_only=healthy_only
    )


def close() -> None:
    """Close the default client, if one was created."""
    global _default_client
    with _default_client_lock:
        client, _default_client = _default_client, None
    if client is not None:
        client.close()
