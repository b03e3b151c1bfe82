"""Tests for syncfx.textual — Textual integration layer."""

import logging
import threading

from textual.css.query import NoMatches

from syncfx import IterableReader, ListDataProvider, Observable, ObservableList, State
from syncfx import textual as stx
import syncfx.observable as _obs_mod


class _MockApp:
    """Minimal mock matching the Textual App interface stx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []
        self.notifications = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        return fn(*args)

    def notify(self, message, *, title="", severity="information"):
        self.notifications.append((message, title, severity))


class TestUseApp:
    def test_sets_owner_thread(self):
        app = _MockApp()
        stx.use_app(app)
        assert _obs_mod._scheduler == app.call_from_thread
        assert _obs_mod._scheduler_thread is threading.current_thread()

    def test_background_set_goes_through_app(self):
        app = _MockApp()
        stx.use_app(app)
        o = Observable(1)
        t = threading.Thread(target=lambda: o.set(2))
        t.start()
        t.join(timeout=2)
        assert o.get() == 2
        assert len(app._call_from_thread_log) == 1

    def test_retrieval_appends_through_app(self):
        app = _MockApp()
        stx.use_app(app)
        provider = ListDataProvider(IterableReader([1, 2]))
        handle = provider.retrieve()
        assert handle.wait(timeout=2)
        assert handle.state is State.SUCCEEDED
        assert list(provider.result_list) == [1, 2]
        assert len(app._call_from_thread_log) >= 3  # two appends + finish


class TestNotifyFailures:
    def test_shows_error(self, caplog):
        app = _MockApp()
        provider = ListDataProvider(
            IterableReader([]), failure_handler=stx.notify_failures(app)
        )
        provider.reader = _Failing()
        with caplog.at_level(logging.ERROR, logger="syncfx.textual"):
            handle = provider.retrieve()
            assert handle.wait(timeout=2)
        assert app.notifications == [("no route to host", "Retrieval failed", "error")]
        assert "no route to host" in caplog.text

    def test_skips_notify_when_not_running(self):
        app = _MockApp(is_running=False)
        handler = stx.notify_failures(app, title="People")
        provider = ListDataProvider(_Failing(), failure_handler=handler)
        assert provider.retrieve().wait(timeout=2)
        assert app.notifications == []


class _Failing:
    def advance(self):
        raise OSError("no route to host")

    def current(self):
        raise AssertionError("unreachable")


class TestFollow:
    def test_renders_snapshot_on_change(self):
        app = _MockApp()
        items = ObservableList()
        renders = []
        stx.follow(app, items, renders.append)
        items.append("a")
        items.extend(["b", "c"])
        assert renders == [["a"], ["a", "b", "c"]]

    def test_background_change_marshals(self):
        app = _MockApp()
        items = ObservableList()
        renders = []
        stx.follow(app, items, renders.append)
        t = threading.Thread(target=lambda: items.append(1))
        t.start()
        t.join(timeout=2)
        assert renders == [[1]]
        assert len(app._call_from_thread_log) == 1

    def test_swallows_nomatch(self):
        app = _MockApp()
        items = ObservableList()

        def render(snapshot):
            raise NoMatches("#people")

        stx.follow(app, items, render)
        items.append(1)  # should not raise

    def test_dispose(self):
        app = _MockApp()
        items = ObservableList()
        renders = []
        dispose = stx.follow(app, items, renders.append)
        dispose()
        items.append(1)
        assert renders == []
