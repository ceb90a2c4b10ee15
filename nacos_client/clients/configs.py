"""Configuration management: content, publishing, history and change listeners."""

from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..decoding import decode, decode_page
from ..errors import ValidationError
from ..models import (
    DEFAULT_GROUP_NAME,
    DEFAULT_NAMESPACE_ID,
    DEFAULT_PAGE_NUMBER,
    DEFAULT_PAGE_SIZE,
    Config,
    ConfigIdentity,
    ConfigSnapshot,
    ConfigType,
    HistoryConfig,
    NewConfig,
    Page,
)
from ..request import HttpMethod, Request, RequestBuilder
from ..watcher import ConfigChangedListener, ConfigWatcher, ListenerHandle
from .base import BaseClient, validate_page

if TYPE_CHECKING:
    from ..auth import AuthManager
    from ..config import ClientConfig

logger = logging.getLogger(__name__)

# Full config details are only exposed by the v1 surface (show=all)
CONFIG_DETAIL_ENDPOINT = "/v1/cs/configs"


def fingerprint(content: str) -> str:
    """MD5 of the content, the same digest the server keeps per config."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class ConfigClient(BaseClient, ABC):
    """
    Shared behaviour of the v1 and v2 config clients.

    Canonical operations take a :class:`ConfigIdentity`; the ``*_config*``
    methods are keyword-argument conveniences that build one.
    """

    config_endpoint: str
    history_list_endpoint: str
    history_endpoint: str
    previous_history_endpoint: str

    def __init__(self, auth: AuthManager, config: ClientConfig):
        super().__init__(auth, config)
        self._watcher: ConfigWatcher | None = None
        self._watcher_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Version-specific request shapes
    # ------------------------------------------------------------------

    @abstractmethod
    def _identity_request(self, endpoint: str, identity: ConfigIdentity) -> RequestBuilder:
        ...

    @abstractmethod
    def _publish_request(self, new_config: NewConfig) -> Request:
        ...

    @abstractmethod
    def _history_list_request(self, identity: ConfigIdentity, page_number: int, page_size: int) -> Request:
        ...

    def _content(self, payload) -> str | None:
        return payload

    # ------------------------------------------------------------------
    # Canonical operations
    # ------------------------------------------------------------------

    def get_content(self, identity: ConfigIdentity) -> str | None:
        """Return the raw content of a config, or None if it does not exist."""
        request = (
            self._identity_request(self.config_endpoint, identity)
            .query_param("tag", identity.tag)
            .build()
        )
        return self._content(self._payload(request, as_json=False))

    def get_snapshot(self, identity: ConfigIdentity) -> ConfigSnapshot | None:
        content = self.get_content(identity)
        if content is None:
            return None
        return ConfigSnapshot(content=content, fingerprint=fingerprint(content))

    def get_detail(self, identity: ConfigIdentity) -> Config | None:
        """Return the full config record, or None if it does not exist."""
        request = (
            RequestBuilder.create(CONFIG_DETAIL_ENDPOINT)
            .query_param("dataId", identity.data_id)
            .query_param("group", identity.group)
            .query_param("tenant", _tenant(identity.namespace_id))
            .query_param("show", "all")
            .build()
        )
        return self._decode(request, Config)

    def publish_config(self, new_config: NewConfig) -> bool:
        """
        Create or overwrite a config.

        Raises:
            ValidationError: If data_id or content is missing
        """
        new_config.identity  # validates data_id
        if new_config.content is None:
            raise ValidationError("content is required")
        published = self._succeeded(self._publish_request(new_config))
        logger.debug(f"Published {new_config.identity}: {published}")
        return published

    def delete(self, identity: ConfigIdentity) -> bool:
        request = (
            self._identity_request(self.config_endpoint, identity)
            .method(HttpMethod.DELETE)
            .query_param("tag", identity.tag)
            .build()
        )
        return self._succeeded(request)

    def get_history_page(
        self,
        identity: ConfigIdentity,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[HistoryConfig]:
        validate_page(page_number, page_size)
        request = self._history_list_request(identity, page_number, page_size)
        payload = self._payload(request)
        if payload is None:
            return Page(items=[], page_number=page_number, page_size=page_size)
        return decode_page(payload, HistoryConfig, page_number, page_size)

    def get_history(self, identity: ConfigIdentity, revision: int) -> HistoryConfig | None:
        request = (
            self._identity_request(self.history_endpoint, identity)
            .query_param("nid", revision)
            .build()
        )
        return self._decode(request, HistoryConfig)

    def get_previous_history(self, identity: ConfigIdentity, id: int | str) -> HistoryConfig | None:
        request = (
            self._identity_request(self.previous_history_endpoint, identity)
            .query_param("id", id)
            .build()
        )
        return self._decode(request, HistoryConfig)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    @property
    def watcher(self) -> ConfigWatcher:
        with self._watcher_lock:
            if self._watcher is None:
                self._watcher = ConfigWatcher(
                    fetch=self.get_snapshot,
                    interval=self.config.watch_interval,
                    jitter=self.config.watch_jitter,
                    min_interval=self.config.watch_min_interval,
                )
            return self._watcher

    def watch(self, identity: ConfigIdentity, listener: ConfigChangedListener) -> ListenerHandle:
        return self.watcher.add_event_listener(identity, listener)

    def unwatch(self, handle: ListenerHandle) -> bool:
        return self.watcher.remove_event_listener(handle)

    def close(self) -> None:
        with self._watcher_lock:
            watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.close()

    # ------------------------------------------------------------------
    # Conveniences
    # ------------------------------------------------------------------

    def get_config_content(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> str | None:
        return self.get_content(ConfigIdentity(data_id, group, namespace_id, tag))

    def get_config(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> Config | None:
        return self.get_detail(ConfigIdentity(data_id, group, namespace_id))

    def publish_config_content(
        self,
        data_id: str,
        content: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
        config_type: ConfigType | None = None,
    ) -> bool:
        """Publish ``content``, keeping the stored metadata of an existing config."""
        identity = ConfigIdentity(data_id, group, namespace_id, tag)
        new_config: NewConfig | None = self.get_detail(identity)
        if new_config is None:
            new_config = NewConfig(data_id=data_id, group=identity.group, namespace_id=identity.namespace_id)
        new_config.content = content
        new_config.tag = tag
        if config_type is not None:
            new_config.type = config_type
        return self.publish_config(new_config)

    def delete_config(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> bool:
        return self.delete(ConfigIdentity(data_id, group, namespace_id, tag))

    def get_history_configs(
        self,
        data_id: str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[HistoryConfig]:
        return self.get_history_page(ConfigIdentity(data_id, group, namespace_id), page_number, page_size)

    def get_history_config(
        self,
        data_id: str,
        revision: int,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> HistoryConfig | None:
        return self.get_history(ConfigIdentity(data_id, group, namespace_id), revision)

    def get_previous_history_config(
        self,
        data_id: str,
        id: int | str,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
    ) -> HistoryConfig | None:
        return self.get_previous_history(ConfigIdentity(data_id, group, namespace_id), id)

    def add_event_listener(
        self,
        data_id: str,
        listener: ConfigChangedListener,
        group: str = DEFAULT_GROUP_NAME,
        namespace_id: str = DEFAULT_NAMESPACE_ID,
        tag: str | None = None,
    ) -> ListenerHandle:
        return self.watch(ConfigIdentity(data_id, group, namespace_id, tag), listener)

    def remove_event_listener(self, handle: ListenerHandle) -> bool:
        return self.unwatch(handle)


def _tenant(namespace_id: str | None) -> str | None:
    """The v1 surface stores the public namespace as an empty tenant."""
    if not namespace_id or namespace_id == DEFAULT_NAMESPACE_ID:
        return None
    return namespace_id


class ConfigClientV1(ConfigClient):
    api_version = "v1"
    config_endpoint = "/v1/cs/configs"
    history_list_endpoint = "/v1/cs/history"
    history_endpoint = "/v1/cs/history"
    previous_history_endpoint = "/v1/cs/history/previous"

    def _identity_request(self, endpoint, identity):
        return (
            RequestBuilder.create(endpoint)
            .query_param("dataId", identity.data_id)
            .query_param("group", identity.group)
            .query_param("tenant", _tenant(identity.namespace_id))
        )

    def _publish_request(self, new_config):
        identity = new_config.identity
        return (
            RequestBuilder.create(self.config_endpoint)
            .method(HttpMethod.POST)
            .form_param("dataId", identity.data_id)
            .form_param("group", identity.group)
            .form_param("tenant", _tenant(identity.namespace_id))
            .form_param("content", new_config.content)
            .form_param("tag", new_config.tag)
            .form_param("appName", new_config.app_name)
            .form_param("src_user", new_config.operator)
            .form_param("config_tags", new_config.tags)
            .form_param("desc", new_config.description)
            .form_param("type", new_config.type)
            .form_param("schema", new_config.schema)
            .build()
        )

    def _history_list_request(self, identity, page_number, page_size):
        return (
            self._identity_request(self.history_list_endpoint, identity)
            .query_param("search", "accurate")
            .query_param("pageNo", page_number)
            .query_param("pageSize", page_size)
            .build()
        )


class ConfigClientV2(ConfigClient):
    api_version = "v2"
    config_endpoint = "/v2/cs/config"
    history_list_endpoint = "/v2/cs/history/list"
    history_endpoint = "/v2/cs/history"
    previous_history_endpoint = "/v2/cs/history/previous"

    def _identity_request(self, endpoint, identity):
        return (
            RequestBuilder.create(endpoint)
            .query_param("dataId", identity.data_id)
            .query_param("group", identity.group)
            .query_param("namespaceId", identity.namespace_id)
        )

    def _content(self, payload):
        if payload is None:
            return None
        return decode(payload, str, context="data")

    def _publish_request(self, new_config):
        identity = new_config.identity
        return (
            RequestBuilder.create(self.config_endpoint)
            .method(HttpMethod.POST)
            .form_param("dataId", identity.data_id)
            .form_param("group", identity.group)
            .form_param("namespaceId", identity.namespace_id)
            .form_param("content", new_config.content)
            .form_param("tag", new_config.tag)
            .form_param("appName", new_config.app_name)
            .form_param("srcUser", new_config.operator)
            .form_param("configTags", new_config.tags)
            .form_param("desc", new_config.description)
            .form_param("type", new_config.type)
            .form_param("schema", new_config.schema)
            .build()
        )

    def _history_list_request(self, identity, page_number, page_size):
        return (
            self._identity_request(self.history_list_endpoint, identity)
            .query_param("pageNo", page_number)
            .query_param("pageSize", page_size)
            .build()
        )
