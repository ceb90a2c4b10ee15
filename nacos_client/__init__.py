"""Python client for the Nacos configuration and service discovery Open API."""

from .auth import AuthManager, AuthState, Credential
from .client import (
    NacosClient,
    add_event_listener,
    close,
    delete_config,
    get_config,
    get_config_content,
    get_instances_list,
    publish_config_content,
    remove_event_listener,
)
from .config import ClientConfig
from .errors import (
    AuthError,
    ClientClosedError,
    DecodeError,
    NacosError,
    ServerError,
    TransportError,
    UnsupportedOperationError,
    ValidationError,
)
from .models import (
    BaseInstance,
    BatchMetadataResult,
    ClientDetail,
    ClientInfo,
    ClientInstance,
    ClientSubscriber,
    ClusterMember,
    Config,
    ConfigChangedEvent,
    ConfigIdentity,
    ConfigOperationType,
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
from .watcher import ConfigWatcher, ListenerHandle

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "AuthManager",
    "AuthState",
    "BaseInstance",
    "BatchMetadataResult",
    "ClientClosedError",
    "ClientConfig",
    "ClientDetail",
    "ClientInfo",
    "ClientInstance",
    "ClientSubscriber",
    "ClusterMember",
    "Config",
    "ConfigChangedEvent",
    "ConfigIdentity",
    "ConfigOperationType",
    "ConfigSnapshot",
    "ConfigType",
    "ConfigWatcher",
    "ConsistencyType",
    "Credential",
    "DecodeError",
    "Heartbeat",
    "HistoryConfig",
    "Instance",
    "InstanceQuery",
    "InstancesList",
    "ListenerHandle",
    "NacosClient",
    "NacosError",
    "Namespace",
    "NewConfig",
    "NewInstance",
    "Page",
    "RaftLeader",
    "ServerError",
    "ServerMetrics",
    "ServerSwitches",
    "Service",
    "TransportError",
    "UnsupportedOperationError",
    "ValidationError",
    "add_event_listener",
    "close",
    "delete_config",
    "get_config",
    "get_config_content",
    "get_instances_list",
    "publish_config_content",
    "remove_event_listener",
]
