"""Tests for the alias-aware JSON decoding framework."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nacos_client.decoding import (
    decode,
    decode_list,
    decode_page,
    get_bool,
    get_datetime,
    get_int,
    get_string,
    parse_json,
)
from nacos_client.errors import DecodeError
from nacos_client.models import (
    ClientInstance,
    ClientSubscriber,
    Config,
    ConfigOperationType,
    ConfigType,
    HistoryConfig,
    Instance,
    InstancesList,
    Namespace,
    RaftLeader,
    Service,
)


class TestExtraction:
    """Test the primitive get_* helpers."""

    def test_primary_name_wins(self):
        """The primary key is preferred over aliases."""
        obj = {"serviceName": "orders", "service": "legacy"}
        assert get_string(obj, "serviceName", "service") == "orders"

    def test_alias_used_when_primary_missing(self):
        """Aliases are tried in order."""
        assert get_string({"service": "orders"}, "serviceName", "service") == "orders"

    def test_null_is_treated_as_absent(self):
        """A JSON null falls through to the next alias."""
        obj = {"namespaceId": None, "tenant": "dev"}
        assert get_string(obj, "namespaceId", "tenant") == "dev"
        assert get_string({"namespaceId": None}, "namespaceId") is None

    def test_numeric_strings_coerce(self):
        """Numbers shipped as strings are accepted."""
        assert get_int({"port": "8848"}, "port") == 8848
        assert get_bool({"healthy": "true"}, "healthy") is True

    def test_non_numeric_int_raises(self):
        """A non-numeric value for an int field names the field."""
        with pytest.raises(DecodeError) as exc_info:
            get_int({"port": "eighty"}, "port")
        assert exc_info.value.field == "port"

    def test_boolean_is_not_an_int(self):
        """Booleans are not silently read as 0/1."""
        with pytest.raises(DecodeError):
            get_int({"port": True}, "port")

    def test_object_where_string_expected_raises(self):
        with pytest.raises(DecodeError):
            get_string({"ip": {"v4": "1.2.3.4"}}, "ip")

    def test_datetime_fixed_format(self):
        """Dates use ISO-like format with milliseconds and offset."""
        value = get_datetime({"createdTime": "2024-03-01T10:15:30.000+08:00"}, "createdTime")
        assert value == datetime(2024, 3, 1, 10, 15, 30, tzinfo=timezone(timedelta(hours=8)))

    def test_bad_date_raises_not_zeroed(self):
        """An unparsable date is an error, never a default value."""
        with pytest.raises(DecodeError) as exc_info:
            get_datetime({"createdTime": "01/03/2024"}, "createdTime")
        assert exc_info.value.field == "createdTime"

    def test_invalid_json_raises(self):
        with pytest.raises(DecodeError):
            parse_json(b"{not json")


class TestObjectDecoders:
    """Test declarative per-type decoders."""

    def test_instance_aliases_and_group_split(self):
        """Legacy 'service'/'cluster' keys and 'group@@name' are understood."""
        instance = decode(
            {
                "instanceId": "10.0.0.1#8080#DEFAULT#DEFAULT_GROUP@@orders",
                "ip": "10.0.0.1",
                "port": 8080,
                "service": "DEFAULT_GROUP@@orders",
                "cluster": "DEFAULT",
                "weight": 1,
                "healthy": True,
                "metadata": {"zone": "a"},
            },
            Instance,
        )
        assert instance.service_name == "orders"
        assert instance.group_name == "DEFAULT_GROUP"
        assert instance.cluster_name == "DEFAULT"
        assert instance.weight == 1.0
        assert instance.address == "10.0.0.1:8080"
        assert instance.metadata == {"zone": "a"}

    def test_missing_fields_keep_defaults(self):
        instance = decode({"ip": "10.0.0.1", "port": 80, "healthy": None}, Instance)
        assert instance.healthy is None
        assert instance.cluster_name == "DEFAULT"
        assert instance.metadata == {}

    def test_failed_field_raises_single_error(self):
        """No partially decoded object escapes."""
        with pytest.raises(DecodeError) as exc_info:
            decode({"ip": "10.0.0.1", "port": "x"}, Instance)
        assert exc_info.value.field == "port"

    def test_non_object_rejected(self):
        with pytest.raises(DecodeError):
            decode(["not", "an", "object"], Instance)

    def test_instances_list_propagates_service(self):
        """Hosts inherit group and service from the enclosing list."""
        result = decode(
            {
                "dom": "ORDERS@@orders",
                "cacheMillis": "3000",
                "hosts": [{"ip": "10.0.0.1", "port": 80}, {"ip": "10.0.0.2", "port": 81}],
            },
            InstancesList,
        )
        assert result.service_name == "orders"
        assert result.group_name == "ORDERS"
        assert result.cache_millis == 3000
        assert [h.service_name for h in result.hosts] == ["orders", "orders"]
        assert all(h.group_name == "ORDERS" for h in result.hosts)

    def test_namespace_aliases(self):
        """v1 console keys and v2 keys decode to the same model."""
        v1 = decode({"namespace": "dev", "namespaceShowName": "Dev", "quota": 200}, Namespace)
        v2 = decode({"namespaceId": "dev", "namespaceName": "Dev", "quota": 200}, Namespace)
        assert v1 == v2
        assert v1.name == "Dev"

    def test_public_namespace_normalised(self):
        assert decode({"namespace": "", "namespaceShowName": "public"}, Namespace).namespace_id == "public"

    def test_config_detail(self):
        config = decode(
            {
                "id": "42",
                "dataId": "app.yaml",
                "group": "DEFAULT_GROUP",
                "tenant": "",
                "content": "a: 1",
                "md5": "abc",
                "type": "yaml",
                "createTime": 1709259330000,
            },
            Config,
        )
        assert config.namespace_id == "public"
        assert config.type is ConfigType.YAML
        assert config.created_time == datetime(2024, 3, 1, 2, 15, 30, tzinfo=timezone.utc)
        assert config.identity.data_id == "app.yaml"

    def test_out_of_range_timestamp_raises_decode_error(self):
        """Overflowing epoch millis surface as a DecodeError naming the field."""
        with pytest.raises(DecodeError) as exc_info:
            decode({"dataId": "x", "createTime": 10**20}, Config)
        assert exc_info.value.field == "createTime"

    def test_unknown_config_type_is_none(self):
        assert decode({"dataId": "x", "type": "toml"}, Config).type is None

    def test_history_config(self):
        history = decode(
            {
                "id": "7",
                "lastId": -1,
                "dataId": "app.properties",
                "group": "DEFAULT_GROUP",
                "opType": "I         ",
                "srcUser": "nacos",
                "createdTime": "2024-03-01T10:15:30.000+08:00",
            },
            HistoryConfig,
        )
        assert history.revision == 7
        assert history.last_revision is None
        assert history.operation_type is ConfigOperationType.INSERT
        assert history.operator == "nacos"
        assert history.created_time.year == 2024

    def test_history_bad_date_raises(self):
        with pytest.raises(DecodeError):
            decode({"id": "7", "createdTime": "yesterday"}, HistoryConfig)

    def test_service_metadata_as_json_text(self):
        """Nested objects shipped as JSON strings are parsed."""
        service = decode({"name": "G@@orders", "metadata": '{"team": "a"}'}, Service)
        assert service.name == "orders"
        assert service.group_name == "G"
        assert service.metadata == {"team": "a"}

    def test_raft_leader_unwraps_json_text(self):
        leader = decode(
            {"leader": '{"ip": "10.0.0.1:8848", "state": "LEADER", "term": 3}'},
            RaftLeader,
        )
        assert leader.ip == "10.0.0.1:8848"
        assert leader.term == 3

    def test_client_connection_payloads_flattened(self):
        instance = decode(
            {"namespace": "public", "group": "G", "serviceName": "orders",
             "registeredInstance": {"ip": "10.0.0.1", "port": 80, "cluster": "DEFAULT"}},
            ClientInstance,
        )
        subscriber = decode(
            {"namespace": "public", "group": "G", "serviceName": "orders",
             "subscriberInfo": {"app": "shop", "agent": "Nacos-Java-Client", "addr": "10.0.0.9"}},
            ClientSubscriber,
        )
        assert (instance.ip, instance.port, instance.cluster_name) == ("10.0.0.1", 80, "DEFAULT")
        assert subscriber.address == "10.0.0.9"
        assert subscriber.app == "shop"

    def test_decode_list(self):
        assert decode_list(["a", "b"], str) == ["a", "b"]
        with pytest.raises(DecodeError):
            decode_list({"a": 1}, str)


class TestDecodePage:
    """Test paged listings."""

    def test_page_reports_requested_number_and_size(self):
        page = decode_page(
            {"totalCount": 7, "pageItems": [{"dataId": "a"}, {"dataId": "b"}]},
            HistoryConfig,
            page_number=2,
            page_size=5,
        )
        assert page.page_number == 2
        assert page.page_size == 5
        assert page.total_elements == 7
        assert page.total_pages == 2
        assert len(page) == 2
        assert not page.has_next

    def test_alternate_item_and_total_keys(self):
        page = decode_page({"count": 3, "doms": ["a", "b", "c"]}, str, 1, 10, item_keys=("doms",), total_keys=("count",))
        assert list(page) == ["a", "b", "c"]

    def test_more_items_than_page_size_raises(self):
        with pytest.raises(DecodeError):
            decode_page({"pageItems": ["a", "b", "c"]}, str, 1, 2)

    def test_missing_items_is_empty_page(self):
        page = decode_page({"totalCount": 0}, str, 1, 10)
        assert page.items == []
        assert page.total_pages == 0
