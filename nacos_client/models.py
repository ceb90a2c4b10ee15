"""Data model for the Nacos Open API."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import ValidationError

T = TypeVar("T")

DEFAULT_NAMESPACE_ID = "public"
DEFAULT_GROUP_NAME = "DEFAULT_GROUP"
DEFAULT_CLUSTER_NAME = "DEFAULT"
GROUP_SERVICE_NAME_SEPARATOR = "@@"

DEFAULT_PAGE_NUMBER = 1
DEFAULT_PAGE_SIZE = 100
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 500


class ConfigType(str, Enum):
    """Content type of a configuration entry."""
    TEXT = "text"
    JSON = "json"
    XML = "xml"
    YAML = "yaml"
    HTML = "html"
    PROPERTIES = "properties"

    @classmethod
    def of(cls, value: str | None) -> ConfigType | None:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ConfigOperationType(str, Enum):
    """Operation recorded in a configuration history entry."""
    INSERT = "I"
    UPDATE = "U"
    DELETE = "D"

    @classmethod
    def of(cls, value: str | None) -> ConfigOperationType | None:
        # The server pads the code with trailing spaces ("U   ")
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class ConsistencyType(str, Enum):
    EPHEMERAL = "ephemeral"
    PERSISTENT = "persist"


@dataclass(frozen=True)
class ConfigIdentity:
    """
    Address of a configuration entry.

    ``None`` for group or namespace is normalised to the default sentinel so
    that two spellings of the same resource compare (and hash) equal.
    """
    data_id: str
    group: str = DEFAULT_GROUP_NAME
    namespace_id: str = DEFAULT_NAMESPACE_ID
    tag: str | None = None

    def __post_init__(self) -> None:
        if not self.data_id or not self.data_id.strip():
            raise ValidationError("data_id is required")
        if not self.group:
            object.__setattr__(self, "group", DEFAULT_GROUP_NAME)
        if not self.namespace_id:
            object.__setattr__(self, "namespace_id", DEFAULT_NAMESPACE_ID)
        if self.tag == "":
            object.__setattr__(self, "tag", None)

    def __str__(self) -> str:
        suffix = f"#{self.tag}" if self.tag else ""
        return f"{self.namespace_id}/{self.group}/{self.data_id}{suffix}"


@dataclass
class Page(Generic[T]):
    """One page of a paged listing. Page numbers are 1-based."""
    items: list[T] = field(default_factory=list)
    page_number: int = DEFAULT_PAGE_NUMBER
    page_size: int = DEFAULT_PAGE_SIZE
    total_elements: int = 0
    total_pages: int | None = None

    def __post_init__(self) -> None:
        if self.total_pages is None:
            self.total_pages = math.ceil(self.total_elements / self.page_size) if self.page_size else 0

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def has_next(self) -> bool:
        return self.page_number < (self.total_pages or 0)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class NewConfig:
    """Payload for publishing a configuration."""
    data_id: str | None = None
    group: str | None = DEFAULT_GROUP_NAME
    namespace_id: str | None = DEFAULT_NAMESPACE_ID
    content: str | None = None
    tag: str | None = None
    app_name: str | None = None
    operator: str | None = None
    tags: str | None = None
    description: str | None = None
    type: ConfigType | None = None
    schema: str | None = None

    @property
    def identity(self) -> ConfigIdentity:
        return ConfigIdentity(
            data_id=self.data_id or "",
            group=self.group or DEFAULT_GROUP_NAME,
            namespace_id=self.namespace_id or DEFAULT_NAMESPACE_ID,
            tag=self.tag,
        )


@dataclass
class Config(NewConfig):
    """Stored configuration with server-side bookkeeping."""
    id: str | None = None
    md5: str | None = None
    encrypted_data_key: str | None = None
    created_time: datetime | None = None
    last_modified_time: datetime | None = None
    create_user: str | None = None
    create_ip: str | None = None
    operator_ip: str | None = None


@dataclass
class HistoryConfig(Config):
    """A revision of a configuration entry."""
    revision: int | None = None
    last_revision: int | None = None
    operation_type: ConfigOperationType | None = None


@dataclass(frozen=True)
class ConfigSnapshot:
    """What the watcher compares between polls."""
    content: str
    fingerprint: str


@dataclass(frozen=True)
class ConfigChangedEvent:
    """Delivered to listeners when watched content changes."""
    identity: ConfigIdentity
    content: str
    previous_content: str | None
    fingerprint: str


# =============================================================================
# Discovery
# =============================================================================


@dataclass
class Service:
    name: str | None = None
    group_name: str | None = DEFAULT_GROUP_NAME
    namespace_id: str | None = DEFAULT_NAMESPACE_ID
    protect_threshold: float | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    selector: dict[str, Any] | None = None
    clusters: list[dict[str, Any]] = field(default_factory=list)
    ephemeral: bool | None = None


@dataclass
class BaseInstance:
    service_name: str | None = None
    ip: str | None = None
    port: int | None = None
    namespace_id: str | None = DEFAULT_NAMESPACE_ID
    group_name: str | None = DEFAULT_GROUP_NAME
    cluster_name: str | None = DEFAULT_CLUSTER_NAME
    ephemeral: bool | None = None


@dataclass
class NewInstance(BaseInstance):
    """Payload for registering or updating an instance."""
    weight: float | None = None
    enabled: bool | None = None
    healthy: bool | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class Instance(NewInstance):
    instance_id: str | None = None
    heart_beat_interval: int | None = None
    heart_beat_timeout: int | None = None
    ip_delete_timeout: int | None = None

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"


@dataclass
class InstanceQuery:
    """Selector for instance lookups; unset fields fall back to defaults."""
    service_name: str
    namespace_id: str = DEFAULT_NAMESPACE_ID
    group_name: str = DEFAULT_GROUP_NAME
    cluster_name: str = DEFAULT_CLUSTER_NAME
    ip: str | None = None
    port: int | None = None
    healthy_only: bool = False
    app: str | None = None
    ephemeral: bool | None = None


@dataclass
class InstancesList:
    name: str | None = None
    namespace_id: str | None = None
    group_name: str | None = None
    service_name: str | None = None
    clusters: str | None = None
    cache_millis: int | None = None
    hosts: list[Instance] = field(default_factory=list)
    last_ref_time: int | None = None
    checksum: str | None = None
    all_ips: bool | None = None
    reach_protection_threshold: bool | None = None
    valid: bool | None = None


@dataclass
class Heartbeat:
    client_beat_interval: int | None = None
    code: int | None = None
    light_beat_enabled: bool | None = None


@dataclass
class BatchMetadataResult:
    updated: list[str] = field(default_factory=list)


# =============================================================================
# Namespaces, server, cluster
# =============================================================================


@dataclass
class Namespace:
    namespace_id: str | None = None
    name: str | None = None
    description: str | None = None
    quota: int | None = None
    config_count: int | None = None
    type: int | None = None


@dataclass
class ServerMetrics:
    status: str | None = None
    service_count: int | None = None
    load: float | None = None
    mem: float | None = None
    cpu: float | None = None
    responsible_service_count: int | None = None
    instance_count: int | None = None
    responsible_instance_count: int | None = None
    client_count: int | None = None
    connection_based_client_count: int | None = None
    ephemeral_ip_port_client_count: int | None = None
    persistent_ip_port_client_count: int | None = None


@dataclass
class ServerSwitches:
    name: str | None = None
    default_push_cache_millis: int | None = None
    client_beat_interval: int | None = None
    default_cache_millis: int | None = None
    distro_threshold: float | None = None
    health_check_enabled: bool | None = None
    distro_enabled: bool | None = None
    push_enabled: bool | None = None
    check_times: int | None = None
    light_beat_enabled: bool | None = None


@dataclass
class ClusterMember:
    ip: str | None = None
    port: int | None = None
    state: str | None = None
    address: str | None = None
    fail_access_count: int | None = None
    extend_info: dict[str, Any] = field(default_factory=dict)
    abilities: dict[str, Any] = field(default_factory=dict)


@dataclass
class RaftLeader:
    ip: str | None = None
    state: str | None = None
    term: int | None = None
    vote_for: str | None = None
    heartbeat_due_ms: int | None = None
    leader_due_ms: int | None = None


# =============================================================================
# Client connections (v2)
# =============================================================================


@dataclass
class ClientDetail:
    client_id: str | None = None
    ephemeral: bool | None = None
    last_updated_time: datetime | None = None
    client_type: str | None = None
    connect_type: str | None = None
    app_name: str | None = None
    version: str | None = None
    client_ip: str | None = None
    client_port: int | None = None


@dataclass
class ClientInstance:
    namespace_id: str | None = None
    group_name: str | None = None
    service_name: str | None = None
    ip: str | None = None
    port: int | None = None
    cluster_name: str | None = None


@dataclass
class ClientSubscriber:
    namespace_id: str | None = None
    group_name: str | None = None
    service_name: str | None = None
    app: str | None = None
    agent: str | None = None
    address: str | None = None


@dataclass
class ClientInfo:
    client_id: str | None = None
    ip: str | None = None
    port: int | None = None
