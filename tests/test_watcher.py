"""Tests for config change detection and listener dispatch."""

from __future__ import annotations

import hashlib
import threading
import time

import pytest

from nacos_client.errors import ClientClosedError, TransportError
from nacos_client.models import ConfigIdentity, ConfigSnapshot
from nacos_client.watcher import ConfigWatcher

IDENTITY = ConfigIdentity("app.properties")


class FakeConfigSource:
    """Thread-safe stand-in for ConfigClient.get_snapshot."""

    def __init__(self, content: str | None = "a=1"):
        self.content = content
        self.fail = False
        self.fetches = 0
        self._lock = threading.Lock()

    def set(self, content: str | None) -> None:
        with self._lock:
            self.content = content

    def __call__(self, identity: ConfigIdentity) -> ConfigSnapshot | None:
        with self._lock:
            self.fetches += 1
            if self.fail:
                raise TransportError("connection refused", method="GET", endpoint="/v2/cs/config")
            if self.content is None:
                return None
            return ConfigSnapshot(self.content, hashlib.md5(self.content.encode()).hexdigest())


class Recorder:
    """Listener collecting events and signalling each arrival."""

    def __init__(self):
        self.events = []
        self.arrived = threading.Event()

    def __call__(self, event):
        self.events.append(event)
        self.arrived.set()

    def wait(self, timeout: float = 2.0) -> bool:
        arrived = self.arrived.wait(timeout)
        self.arrived.clear()
        return arrived


@pytest.fixture
def source():
    return FakeConfigSource()


@pytest.fixture
def watcher(source):
    w = ConfigWatcher(fetch=source, interval=0.02, jitter=0.0)
    yield w
    w.close()


class TestChangeDetection:
    """Test the poll loop."""

    def test_change_delivered_once_with_new_content(self, watcher, source):
        """A -> B invokes the listener exactly once with B."""
        recorder = Recorder()
        watcher.add_event_listener(IDENTITY, recorder)

        time.sleep(0.1)
        assert recorder.events == []  # seeding never notifies

        source.set("a=2")
        assert recorder.wait()
        time.sleep(0.1)

        assert len(recorder.events) == 1
        event = recorder.events[0]
        assert event.content == "a=2"
        assert event.previous_content == "a=1"
        assert event.identity == IDENTITY

    def test_every_listener_notified(self, watcher, source):
        first, second = Recorder(), Recorder()
        watcher.add_event_listener(IDENTITY, first)
        watcher.add_event_listener(IDENTITY, second)
        assert len(watcher.watched) == 1

        source.set("a=2")
        assert first.wait()
        assert second.wait()

    def test_deleted_config_is_not_a_change(self, watcher, source):
        recorder = Recorder()
        watcher.add_event_listener(IDENTITY, recorder)
        source.set(None)
        assert not recorder.wait(timeout=0.2)

    def test_config_created_after_seeding_is_reported(self, watcher, source):
        source.set(None)
        recorder = Recorder()
        watcher.add_event_listener(IDENTITY, recorder)
        source.set("a=1")
        assert recorder.wait()
        assert recorder.events[0].previous_content is None

    def test_failed_poll_does_not_stop_loop(self, watcher, source):
        """A transient fetch failure is skipped; later changes still arrive."""
        recorder = Recorder()
        watcher.add_event_listener(IDENTITY, recorder)

        source.fail = True
        fetches = source.fetches
        deadline = time.monotonic() + 2
        while source.fetches < fetches + 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        source.fail = False
        source.set("a=2")

        assert recorder.wait()
        assert recorder.events[-1].content == "a=2"

    def test_unexpected_fetch_error_does_not_stop_loop(self, source):
        """Errors outside the client taxonomy are logged and the loop keeps polling."""
        calls = {"n": 0}

        def _fetch(identity):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("unexpected")
            return source(identity)

        watcher = ConfigWatcher(fetch=_fetch, interval=0.02, jitter=0.0)
        try:
            recorder = Recorder()
            watcher.add_event_listener(IDENTITY, recorder)
            deadline = time.monotonic() + 2
            while calls["n"] < 3 and time.monotonic() < deadline:
                time.sleep(0.01)

            source.set("a=2")

            assert recorder.wait()
            assert [e.content for e in recorder.events] == ["a=2"]
        finally:
            watcher.close()

    def test_failing_listener_does_not_affect_others(self, watcher, source):
        def _broken(event):
            raise RuntimeError("listener bug")

        recorder = Recorder()
        watcher.add_event_listener(IDENTITY, _broken)
        watcher.add_event_listener(IDENTITY, recorder)

        source.set("a=2")
        assert recorder.wait()
        source.set("a=3")
        assert recorder.wait()


class TestRegistration:
    """Test add/remove semantics."""

    def test_seed_failure_propagates_and_registers_nothing(self, watcher, source):
        source.fail = True
        with pytest.raises(TransportError):
            watcher.add_event_listener(IDENTITY, Recorder())
        assert watcher.watched == []

    def test_removed_listener_never_invoked_again(self, watcher, source):
        recorder = Recorder()
        handle = watcher.add_event_listener(IDENTITY, recorder)

        assert watcher.remove_event_listener(handle) is True
        assert not handle.active
        assert watcher.watched == []

        source.set("a=2")
        time.sleep(0.1)
        assert recorder.events == []

    def test_removal_by_handle_not_callable(self, watcher, source):
        """The same callable registered twice is removed one handle at a time."""
        recorder = Recorder()
        first = watcher.add_event_listener(IDENTITY, recorder)
        watcher.add_event_listener(IDENTITY, recorder)

        watcher.remove_event_listener(first)
        assert len(watcher.listeners(IDENTITY)) == 1

        source.set("a=2")
        assert recorder.wait()
        time.sleep(0.05)
        assert len(recorder.events) == 1

    def test_remove_unknown_handle(self, watcher, source):
        handle = watcher.add_event_listener(IDENTITY, Recorder())
        watcher.remove_event_listener(handle)
        assert watcher.remove_event_listener(handle) is False

    def test_identities_watched_independently(self, watcher, source):
        other = ConfigIdentity("app.properties", group="ORDERS")
        watcher.add_event_listener(IDENTITY, Recorder())
        watcher.add_event_listener(other, Recorder())
        assert set(watcher.watched) == {IDENTITY, other}

    def test_default_spellings_are_one_identity(self, watcher):
        watcher.add_event_listener(ConfigIdentity("app.properties", group=None, namespace_id=None), Recorder())
        assert watcher.listeners(IDENTITY)


class TestClose:
    def test_close_stops_loops_and_rejects_new_listeners(self, source):
        watcher = ConfigWatcher(fetch=source, interval=0.02, jitter=0.0)
        recorder = Recorder()
        handle = watcher.add_event_listener(IDENTITY, recorder)

        watcher.close()

        assert not handle.active
        fetches = source.fetches
        source.set("a=2")
        time.sleep(0.1)
        assert source.fetches == fetches
        assert recorder.events == []
        with pytest.raises(ClientClosedError):
            watcher.add_event_listener(IDENTITY, recorder)

    def test_jittered_delay_bounds(self, source):
        watcher = ConfigWatcher(fetch=source, interval=1.0, jitter=0.2, min_interval=0.5)
        delays = [watcher.next_delay() for _ in range(200)]
        assert all(0.8 <= d <= 1.2 for d in delays)

        tiny = ConfigWatcher(fetch=source, interval=0.001, jitter=0.0, min_interval=0.01)
        assert tiny.next_delay() == 0.01
