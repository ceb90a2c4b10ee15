"""
Config change notification.

For every :class:`ConfigIdentity` with at least one listener the watcher runs
a daemon thread that polls the server, compares content fingerprints and
calls the registered listeners when the content changes.

Usage:
    watcher = ConfigWatcher(fetch=config_client.get_snapshot, interval=5.0)
    handle = watcher.add_event_listener(
        ConfigIdentity("app.properties"),
        lambda event: print(event.content),
    )
    ...
    watcher.remove_event_listener(handle)
"""

from __future__ import annotations

import itertools
import logging
import random
import threading
from typing import Callable

from .errors import ClientClosedError, NacosError
from .models import ConfigChangedEvent, ConfigIdentity, ConfigSnapshot

logger = logging.getLogger(__name__)

ConfigChangedListener = Callable[[ConfigChangedEvent], None]
SnapshotFetcher = Callable[[ConfigIdentity], "ConfigSnapshot | None"]

_handle_ids = itertools.count(1)


class ListenerHandle:
    """
    Registration token returned by :meth:`ConfigWatcher.add_event_listener`.

    Removal goes through the handle, so the same callable can be registered
    several times (or for several identities) and removed independently.
    """

    def __init__(self, identity: ConfigIdentity, listener: ConfigChangedListener):
        self.id = next(_handle_ids)
        self.identity = identity
        self.listener = listener
        self._active = True
        # Re-entrant so a listener may remove itself from inside its callback
        self._call_lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def _deactivate(self) -> None:
        # Waits for an in-flight invocation on another thread to finish
        with self._call_lock:
            self._active = False

    def _invoke(self, event: ConfigChangedEvent) -> None:
        with self._call_lock:
            if not self._active:
                return
            try:
                self.listener(event)
            except Exception:
                logger.exception(f"Listener {self.id} for {self.identity} failed")

    def __repr__(self) -> str:
        return f"ListenerHandle(id={self.id}, identity={self.identity!s}, active={self._active})"


class _WatchLoop:
    """Polling thread for one identity."""

    def __init__(
        self,
        identity: ConfigIdentity,
        seed: ConfigSnapshot | None,
        watcher: ConfigWatcher,
    ):
        self.identity = identity
        self.last = seed
        self.handles: dict[int, ListenerHandle] = {}
        self._watcher = watcher
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"nacos-config-watch-{identity}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop.wait(timeout=self._watcher.next_delay()):
            self.poll()
        logger.debug(f"Watch loop for {self.identity} stopped")

    def poll(self) -> bool:
        """One iteration: fetch, diff, dispatch. Returns True if a change was dispatched."""
        try:
            snapshot = self._watcher.fetch(self.identity)
        except NacosError as e:
            logger.warning(f"Polling {self.identity} failed, retrying next interval: {e}")
            return False
        except Exception:
            logger.exception(f"Unexpected error polling {self.identity}, retrying next interval")
            return False

        if self._stop.is_set():
            return False
        if snapshot is None:
            # Deleted or not yet published: nothing to report
            return False
        if self.last is not None and snapshot.fingerprint == self.last.fingerprint:
            return False

        previous = self.last
        self.last = snapshot
        event = ConfigChangedEvent(
            identity=self.identity,
            content=snapshot.content,
            previous_content=previous.content if previous else None,
            fingerprint=snapshot.fingerprint,
        )
        logger.info(f"Config {self.identity} changed (md5 {snapshot.fingerprint})")

        for handle in self._watcher._handles_for(self):
            if self._stop.is_set():
                break
            handle._invoke(event)
        return True


class ConfigWatcher:
    """
    Registry of config listeners keyed by :class:`ConfigIdentity`.

    Args:
        fetch: Returns the current snapshot of an identity, or None if absent
        interval: Seconds between polls
        jitter: Fraction of ``interval`` added or removed at random per poll
        min_interval: Lower bound for a jittered delay
    """

    def __init__(
        self,
        fetch: SnapshotFetcher,
        interval: float = 10.0,
        jitter: float = 0.1,
        min_interval: float = 0.01,
    ):
        self.fetch = fetch
        self.interval = interval
        self.jitter = jitter
        self.min_interval = min_interval
        self._loops: dict[ConfigIdentity, _WatchLoop] = {}
        self._lock = threading.Lock()
        self._closed = False

    def next_delay(self) -> float:
        delay = self.interval * (1 + random.uniform(-self.jitter, self.jitter))
        return max(delay, self.min_interval)

    def _handles_for(self, loop: _WatchLoop) -> list[ListenerHandle]:
        with self._lock:
            return list(loop.handles.values())

    def add_event_listener(
        self,
        identity: ConfigIdentity,
        listener: ConfigChangedListener,
    ) -> ListenerHandle:
        """
        Register ``listener`` for changes of ``identity``.

        The first listener for an identity fetches the current content before
        returning, so the first notification is always a real change.

        Raises:
            NacosError: If the seeding fetch fails; nothing is registered then
        """
        handle = ListenerHandle(identity, listener)

        with self._lock:
            self._check_open()
            loop = self._loops.get(identity)
            if loop is not None:
                loop.handles[handle.id] = handle
                return handle

        # Seed outside the lock; the fetch is a network call
        seed = self.fetch(identity)

        with self._lock:
            self._check_open()
            loop = self._loops.get(identity)
            if loop is None:
                loop = _WatchLoop(identity, seed, self)
                self._loops[identity] = loop
                loop.handles[handle.id] = handle
                loop.start()
                logger.debug(f"Started watching {identity}")
            else:
                # Lost a race with another first listener; join its loop
                loop.handles[handle.id] = handle
        return handle

    def remove_event_listener(self, handle: ListenerHandle) -> bool:
        """
        Unregister a listener. Stops the identity's loop when it was the last one.

        Once this returns the listener is never invoked again.

        Returns:
            True if the handle was registered
        """
        with self._lock:
            loop = self._loops.get(handle.identity)
            removed = loop is not None and loop.handles.pop(handle.id, None) is not None
            if removed and not loop.handles:
                loop.stop()
                del self._loops[handle.identity]
                logger.debug(f"Stopped watching {handle.identity}")
        handle._deactivate()
        return removed

    def listeners(self, identity: ConfigIdentity) -> list[ListenerHandle]:
        with self._lock:
            loop = self._loops.get(identity)
            return list(loop.handles.values()) if loop else []

    @property
    def watched(self) -> list[ConfigIdentity]:
        with self._lock:
            return list(self._loops)

    def _check_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Config watcher is closed")

    def close(self, timeout: float = 5.0) -> None:
        """Stop every loop and deactivate every listener."""
        with self._lock:
            self._closed = True
            loops = list(self._loops.values())
            self._loops.clear()
        for loop in loops:
            loop.stop()
        for loop in loops:
            for handle in list(loop.handles.values()):
                handle._deactivate()
            loop.join(timeout=timeout)
        if loops:
            logger.info(f"Config watcher closed ({len(loops)} loops stopped)")
