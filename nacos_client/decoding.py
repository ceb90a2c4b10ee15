"""
Tolerant JSON decoding.

The server has renamed many payload members across releases ("tenant" became
"namespaceId", "service" became "serviceName", ...). Every logical field is
therefore described by an ordered list of candidate keys: the first key that
is present with a non-null value wins. JSON ``null`` is treated exactly like a
missing key.

Decoders are declarative::

    @register_decoder
    class NamespaceDecoder(ObjectDecoder):
        target = Namespace
        fields = (
            Field("namespace_id", "namespace", "namespaceId"),
            Field("quota", kind=int),
        )

``decode(data, Namespace)`` then default-constructs a ``Namespace``,
overwrites every field found in ``data`` and returns it. Any coercion
failure raises a single :class:`DecodeError`; no partially filled object
escapes.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, Iterable, TypeVar

from .errors import DecodeError
from .models import (
    DEFAULT_NAMESPACE_ID,
    GROUP_SERVICE_NAME_SEPARATOR,
    BatchMetadataResult,
    ClientDetail,
    ClientInfo,
    ClientInstance,
    ClientSubscriber,
    ClusterMember,
    Config,
    ConfigOperationType,
    ConfigType,
    Heartbeat,
    HistoryConfig,
    Instance,
    InstancesList,
    Namespace,
    Page,
    RaftLeader,
    ServerMetrics,
    ServerSwitches,
    Service,
)

T = TypeVar("T")

# Fixed timestamp format used by history payloads, e.g. 2024-03-01T10:15:30.000+08:00
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"

# Field kinds that are not plain Python types
DATETIME = "datetime"
TIMESTAMP = "timestamp"


# =============================================================================
# Primitive extraction
# =============================================================================


def _lookup(obj: dict[str, Any], name: str, aliases: Iterable[str]) -> tuple[str, Any] | None:
    for key in (name, *aliases):
        value = obj.get(key)
        if value is not None:
            return key, value
    return None


def get_value(
    obj: dict[str, Any],
    name: str,
    *aliases: str,
    coerce: Callable[[Any, str], Any] | None = None,
) -> Any:
    """Return the first non-null value among ``name`` and ``aliases``, coerced."""
    found = _lookup(obj, name, aliases)
    if found is None:
        return None
    key, value = found
    return coerce(value, key) if coerce else value


def _to_str(value: Any, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise DecodeError(f"Field '{key}' expected a string, got {type(value).__name__}", field=key)


def _to_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' expected an integer, got a boolean", field=key)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise DecodeError(f"Field '{key}' expected an integer, got {value!r}", field=key)


def _to_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' expected a number, got a boolean", field=key)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise DecodeError(f"Field '{key}' expected a number, got {value!r}", field=key)


def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise DecodeError(f"Field '{key}' expected a boolean, got {value!r}", field=key)


def _to_datetime(value: Any, key: str) -> datetime:
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' expected a date string, got {value!r}", field=key)
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError as e:
        raise DecodeError(f"Field '{key}' is not a valid date ({DATE_FORMAT}): {value!r}", field=key) from e


def _to_timestamp(value: Any, key: str) -> datetime:
    millis = _to_int(value, key)
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(f"Field '{key}' is not a valid epoch timestamp: {value!r}", field=key) from e


def _to_dict(value: Any, key: str) -> dict[str, Any]:
    if isinstance(value, str):
        # Some endpoints ship nested objects as JSON text
        value = parse_json(value, context=f"field '{key}'")
    if not isinstance(value, dict):
        raise DecodeError(f"Field '{key}' expected an object, got {type(value).__name__}", field=key)
    return value


def _to_list(value: Any, key: str) -> list[Any]:
    if not isinstance(value, list):
        raise DecodeError(f"Field '{key}' expected an array, got {type(value).__name__}", field=key)
    return value


def get_string(obj: dict[str, Any], name: str, *aliases: str) -> str | None:
    return get_value(obj, name, *aliases, coerce=_to_str)


def get_int(obj: dict[str, Any], name: str, *aliases: str) -> int | None:
    return get_value(obj, name, *aliases, coerce=_to_int)


def get_float(obj: dict[str, Any], name: str, *aliases: str) -> float | None:
    return get_value(obj, name, *aliases, coerce=_to_float)


def get_bool(obj: dict[str, Any], name: str, *aliases: str) -> bool | None:
    return get_value(obj, name, *aliases, coerce=_to_bool)


def get_datetime(obj: dict[str, Any], name: str, *aliases: str) -> datetime | None:
    return get_value(obj, name, *aliases, coerce=_to_datetime)


_COERCERS: dict[Any, Callable[[Any, str], Any]] = {
    str: _to_str,
    int: _to_int,
    float: _to_float,
    bool: _to_bool,
    dict: _to_dict,
    list: _to_list,
    DATETIME: _to_datetime,
    TIMESTAMP: _to_timestamp,
}


def parse_json(content: bytes | str, context: str | None = None) -> Any:
    """Parse JSON text, raising DecodeError instead of JSONDecodeError."""
    try:
        return json.loads(content)
    except (TypeError, ValueError) as e:
        where = f" in {context}" if context else ""
        raise DecodeError(f"Malformed JSON{where}: {e}") from e


# =============================================================================
# Object decoders
# =============================================================================


class Field:
    """
    One logical field of a decoded object.

    Args:
        attr: Attribute name on the target object
        *keys: Candidate JSON keys, tried in order (defaults to ``attr``)
        kind: str, int, float, bool, dict, list, DATETIME, TIMESTAMP,
              an Enum with an ``of`` constructor, or a decodable model class
        item: Element type when ``kind`` is list
    """

    __slots__ = ("attr", "keys", "kind", "item")

    def __init__(self, attr: str, *keys: str, kind: Any = str, item: Any = None):
        self.attr = attr
        self.keys = keys or (attr,)
        self.kind = kind
        self.item = item

    def extract(self, data: dict[str, Any]) -> Any:
        found = _lookup(data, self.keys[0], self.keys[1:])
        if found is None:
            return None
        key, value = found

        if self.kind is list and self.item is not None:
            return decode_list(_to_list(value, key), self.item, context=key)
        if isinstance(self.kind, type) and issubclass(self.kind, Enum):
            return self.kind.of(_to_str(value, key))
        coerce = _COERCERS.get(self.kind)
        if coerce is not None:
            return coerce(value, key)
        return decode(value, self.kind, context=key)


class ObjectDecoder(Generic[T]):
    """Default-construct ``target``, overwrite it from JSON, then run ``complete``."""

    target: type
    fields: tuple[Field, ...] = ()

    def new(self) -> T:
        return self.target()

    def prepare(self, data: dict[str, Any]) -> dict[str, Any]:
        """Reshape the raw object before field extraction."""
        return data

    def complete(self, data: dict[str, Any], obj: T) -> None:
        """Per-type fix-ups after the declared fields are set."""

    def decode(self, data: Any) -> T:
        if not isinstance(data, dict):
            raise DecodeError(
                f"Expected a JSON object for {self.target.__name__}, got {type(data).__name__}"
            )
        try:
            data = self.prepare(data)
            obj = self.new()
            for f in self.fields:
                value = f.extract(data)
                if value is not None:
                    setattr(obj, f.attr, value)
            self.complete(data, obj)
        except DecodeError:
            raise
        except (TypeError, ValueError, KeyError) as e:
            raise DecodeError(f"Failed to decode {self.target.__name__}: {e}") from e
        return obj


_DECODERS: dict[type, ObjectDecoder] = {}


def register_decoder(decoder_cls: type[ObjectDecoder]) -> type[ObjectDecoder]:
    """Class decorator registering a decoder for its ``target`` type."""
    _DECODERS[decoder_cls.target] = decoder_cls()
    return decoder_cls


def get_decoder(target: type) -> ObjectDecoder:
    try:
        return _DECODERS[target]
    except KeyError:
        raise TypeError(f"No decoder registered for {target.__name__}") from None


def decode(value: Any, target: Any, context: str | None = None) -> Any:
    """Decode one JSON value into ``target`` (a primitive type or a registered model)."""
    coerce = _COERCERS.get(target)
    if coerce is not None:
        return coerce(value, context or getattr(target, "__name__", str(target)))
    return get_decoder(target).decode(value)


def decode_list(value: Any, target: Any, context: str | None = None) -> list[Any]:
    if not isinstance(value, list):
        raise DecodeError(f"Expected a JSON array{f' for {context}' if context else ''}, got {type(value).__name__}")
    return [decode(item, target, context=context) for item in value]


def decode_page(
    data: Any,
    target: Any,
    page_number: int,
    page_size: int,
    item_keys: tuple[str, ...] = ("pageItems",),
    total_keys: tuple[str, ...] = ("totalCount",),
) -> Page:
    """
    Decode a paged listing.

    The returned page always reports the requested page number and size; a
    server returning more items than ``page_size`` is a protocol mismatch.
    """
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object for Page, got {type(data).__name__}")
    raw_items = get_value(data, *item_keys) or []
    items = decode_list(raw_items, target, context=item_keys[0])
    if len(items) > page_size:
        raise DecodeError(f"Server returned {len(items)} items for page size {page_size}")
    total = get_int(data, *total_keys)
    return Page(
        items=items,
        page_number=page_number,
        page_size=page_size,
        total_elements=total if total is not None else len(items),
        total_pages=get_int(data, "pagesAvailable", "totalPages"),
    )


def _split_group_service(name: str | None) -> tuple[str | None, str | None]:
    """'group@@service' -> ('group', 'service'); plain names have no group."""
    if name and GROUP_SERVICE_NAME_SEPARATOR in name:
        group, _, service = name.partition(GROUP_SERVICE_NAME_SEPARATOR)
        return group, service
    return None, name


# =============================================================================
# Configuration
# =============================================================================

_CONFIG_IDENTITY_FIELDS = (
    Field("data_id", "dataId"),
    Field("group", "group", "groupName"),
    Field("namespace_id", "tenant", "namespaceId", "namespace"),
    Field("content", "content"),
    Field("md5", "md5"),
    Field("app_name", "appName"),
    Field("type", "type", kind=ConfigType),
    Field("encrypted_data_key", "encryptedDataKey"),
)


@register_decoder
class ConfigDecoder(ObjectDecoder[Config]):
    target = Config
    fields = _CONFIG_IDENTITY_FIELDS + (
        Field("id", "id"),
        Field("tags", "configTags"),
        Field("description", "desc"),
        Field("schema", "schema"),
        Field("created_time", "createTime", kind=TIMESTAMP),
        Field("last_modified_time", "modifyTime", kind=TIMESTAMP),
        Field("create_user", "createUser"),
        Field("create_ip", "createIp"),
    )

    def complete(self, data, obj):
        # The public namespace is stored as an empty tenant
        if not obj.namespace_id:
            obj.namespace_id = DEFAULT_NAMESPACE_ID


@register_decoder
class HistoryConfigDecoder(ConfigDecoder):
    target = HistoryConfig
    fields = _CONFIG_IDENTITY_FIELDS + (
        Field("id", "id", "nid"),
        Field("revision", "id", "nid", kind=int),
        Field("last_revision", "lastId", kind=int),
        Field("operator", "srcUser"),
        Field("operator_ip", "srcIp"),
        Field("operation_type", "opType", kind=ConfigOperationType),
        Field("created_time", "createdTime", kind=DATETIME),
        Field("last_modified_time", "lastModifiedTime", kind=DATETIME),
    )

    def complete(self, data, obj):
        super().complete(data, obj)
        if obj.last_revision is not None and obj.last_revision < 0:
            obj.last_revision = None


# =============================================================================
# Discovery
# =============================================================================


@register_decoder
class ServiceDecoder(ObjectDecoder[Service]):
    target = Service
    fields = (
        Field("name", "name", "serviceName"),
        Field("group_name", "groupName"),
        Field("namespace_id", "namespaceId", "namespace"),
        Field("protect_threshold", "protectThreshold", kind=float),
        Field("metadata", "metadata", kind=dict),
        Field("selector", "selector", kind=dict),
        Field("clusters", "clusters", kind=list),
        Field("ephemeral", "ephemeral", kind=bool),
    )

    def complete(self, data, obj):
        group, name = _split_group_service(obj.name)
        if group:
            obj.group_name, obj.name = group, name


@register_decoder
class InstanceDecoder(ObjectDecoder[Instance]):
    target = Instance
    fields = (
        Field("instance_id", "instanceId"),
        Field("ip", "ip"),
        Field("port", "port", kind=int),
        Field("weight", "weight", kind=float),
        Field("healthy", "healthy", kind=bool),
        Field("enabled", "enabled", kind=bool),
        Field("ephemeral", "ephemeral", kind=bool),
        Field("cluster_name", "clusterName", "cluster"),
        Field("service_name", "serviceName", "service"),
        Field("group_name", "groupName"),
        Field("namespace_id", "namespaceId"),
        Field("metadata", "metadata", kind=dict),
        Field("heart_beat_interval", "instanceHeartBeatInterval", kind=int),
        Field("heart_beat_timeout", "instanceHeartBeatTimeOut", kind=int),
        Field("ip_delete_timeout", "ipDeleteTimeout", kind=int),
    )

    def complete(self, data, obj):
        group, service = _split_group_service(obj.service_name)
        if group:
            obj.group_name, obj.service_name = group, service


@register_decoder
class InstancesListDecoder(ObjectDecoder[InstancesList]):
    target = InstancesList
    fields = (
        Field("name", "name", "dom"),
        Field("group_name", "groupName"),
        Field("namespace_id", "namespaceId"),
        Field("clusters", "clusters"),
        Field("cache_millis", "cacheMillis", kind=int),
        Field("hosts", "hosts", kind=list, item=Instance),
        Field("last_ref_time", "lastRefTime", kind=int),
        Field("checksum", "checksum"),
        Field("all_ips", "allIPs", kind=bool),
        Field("reach_protection_threshold", "reachProtectionThreshold", kind=bool),
        Field("valid", "valid", kind=bool),
    )

    def complete(self, data, obj):
        group, service = _split_group_service(obj.name)
        obj.service_name = service
        if group and not obj.group_name:
            obj.group_name = group
        for host in obj.hosts:
            host.service_name = host.service_name or obj.service_name
            if obj.group_name:
                host.group_name = obj.group_name
            if obj.namespace_id:
                host.namespace_id = obj.namespace_id


@register_decoder
class HeartbeatDecoder(ObjectDecoder[Heartbeat]):
    target = Heartbeat
    fields = (
        Field("client_beat_interval", "clientBeatInterval", kind=int),
        Field("code", "code", kind=int),
        Field("light_beat_enabled", "lightBeatEnabled", kind=bool),
    )


@register_decoder
class BatchMetadataResultDecoder(ObjectDecoder[BatchMetadataResult]):
    target = BatchMetadataResult
    fields = (Field("updated", "updated", kind=list, item=str),)


# =============================================================================
# Namespaces, server, cluster
# =============================================================================


@register_decoder
class NamespaceDecoder(ObjectDecoder[Namespace]):
    target = Namespace
    fields = (
        Field("namespace_id", "namespace", "namespaceId"),
        Field("name", "namespaceShowName", "namespaceName"),
        Field("description", "namespaceDesc"),
        Field("quota", "quota", kind=int),
        Field("config_count", "configCount", kind=int),
        Field("type", "type", kind=int),
    )

    def complete(self, data, obj):
        if obj.namespace_id == "":
            obj.namespace_id = DEFAULT_NAMESPACE_ID


@register_decoder
class ServerMetricsDecoder(ObjectDecoder[ServerMetrics]):
    target = ServerMetrics
    fields = (
        Field("status", "status"),
        Field("service_count", "serviceCount", kind=int),
        Field("load", "load", kind=float),
        Field("mem", "mem", kind=float),
        Field("cpu", "cpu", kind=float),
        Field("responsible_service_count", "responsibleServiceCount", kind=int),
        Field("instance_count", "instanceCount", kind=int),
        Field("responsible_instance_count", "responsibleInstanceCount", kind=int),
        Field("client_count", "clientCount", kind=int),
        Field("connection_based_client_count", "connectionBasedClientCount", kind=int),
        Field("ephemeral_ip_port_client_count", "ephemeralIpPortClientCount", kind=int),
        Field("persistent_ip_port_client_count", "persistentIpPortClientCount", kind=int),
    )


@register_decoder
class ServerSwitchesDecoder(ObjectDecoder[ServerSwitches]):
    target = ServerSwitches
    fields = (
        Field("name", "name"),
        Field("default_push_cache_millis", "defaultPushCacheMillis", kind=int),
        Field("client_beat_interval", "clientBeatInterval", kind=int),
        Field("default_cache_millis", "defaultCacheMillis", kind=int),
        Field("distro_threshold", "distroThreshold", kind=float),
        Field("health_check_enabled", "healthCheckEnabled", kind=bool),
        Field("distro_enabled", "distroEnabled", kind=bool),
        Field("push_enabled", "pushEnabled", kind=bool),
        Field("check_times", "checkTimes", kind=int),
        Field("light_beat_enabled", "lightBeatEnabled", kind=bool),
    )


@register_decoder
class ClusterMemberDecoder(ObjectDecoder[ClusterMember]):
    target = ClusterMember
    fields = (
        Field("ip", "ip"),
        Field("port", "port", kind=int),
        Field("state", "state"),
        Field("address", "address"),
        Field("fail_access_count", "failAccessCnt", kind=int),
        Field("extend_info", "extendInfo", kind=dict),
        Field("abilities", "abilities", kind=dict),
    )


@register_decoder
class RaftLeaderDecoder(ObjectDecoder[RaftLeader]):
    target = RaftLeader
    fields = (
        Field("ip", "ip"),
        Field("state", "state"),
        Field("term", "term", kind=int),
        Field("vote_for", "voteFor"),
        Field("heartbeat_due_ms", "heartbeatDueMs", kind=int),
        Field("leader_due_ms", "leaderDueMs", kind=int),
    )

    def prepare(self, data):
        # {"leader": "<json text>"} wraps the actual peer
        leader = data.get("leader")
        if leader is None:
            return data
        return _to_dict(leader, "leader")


# =============================================================================
# Client connections (v2)
# =============================================================================


@register_decoder
class ClientDetailDecoder(ObjectDecoder[ClientDetail]):
    target = ClientDetail
    fields = (
        Field("client_id", "clientId"),
        Field("ephemeral", "ephemeral", kind=bool),
        Field("last_updated_time", "lastUpdatedTime", kind=TIMESTAMP),
        Field("client_type", "clientType"),
        Field("connect_type", "connectType"),
        Field("app_name", "appName"),
        Field("version", "version"),
        Field("client_ip", "clientIp"),
        Field("client_port", "clientPort", kind=int),
    )


def _flatten(data: dict[str, Any], nested_key: str) -> dict[str, Any]:
    nested = data.get(nested_key)
    if nested is None:
        return data
    merged = dict(data)
    merged.update(_to_dict(nested, nested_key))
    return merged


@register_decoder
class ClientInstanceDecoder(ObjectDecoder[ClientInstance]):
    target = ClientInstance
    fields = (
        Field("namespace_id", "namespace", "namespaceId"),
        Field("group_name", "group", "groupName"),
        Field("service_name", "serviceName"),
        Field("ip", "ip"),
        Field("port", "port", kind=int),
        Field("cluster_name", "cluster", "clusterName"),
    )

    def prepare(self, data):
        return _flatten(data, "registeredInstance")


@register_decoder
class ClientSubscriberDecoder(ObjectDecoder[ClientSubscriber]):
    target = ClientSubscriber
    fields = (
        Field("namespace_id", "namespace", "namespaceId"),
        Field("group_name", "group", "groupName"),
        Field("service_name", "serviceName"),
        Field("app", "app"),
        Field("agent", "agent"),
        Field("address", "addr", "address"),
    )

    def prepare(self, data):
        return _flatten(data, "subscriberInfo")


@register_decoder
class ClientInfoDecoder(ObjectDecoder[ClientInfo]):
    target = ClientInfo
    fields = (
        Field("client_id", "clientId"),
        Field("ip", "ip"),
        Field("port", "port", kind=int),
    )
