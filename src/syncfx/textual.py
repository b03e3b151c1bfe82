"""Textual integration for syncfx. Opt-in — requires textual.

Textual widgets may only be touched from the app thread, and
App.call_from_thread blocks until the callback ran there, which is
exactly what run_on_owner() needs from a scheduler.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from textual.app import App
from textual.css.query import NoMatches
from textual.notifications import SeverityLevel

from syncfx.observable import ListChange, set_scheduler

logger = logging.getLogger("syncfx.textual")


def use_app(app: App) -> None:
    """Make app's thread the owner of all syncfx lists and observables.

    Call from the app thread, e.g. in App.on_mount.
    """
    set_scheduler(app.call_from_thread)


def notify_failures(
    app: App,
    title: str = "Retrieval failed",
    severity: SeverityLevel = "error",
):
    """Failure handler that shows the cause as a notification.

    Usage:
        provider.failure_handler = notify_failures(self)
    """

    def _notify(handle) -> None:
        exc = handle.exception
        logger.error("%s: %s", title, exc, exc_info=exc)
        if app.is_running:
            app.notify(str(exc) or type(exc).__name__, title=title, severity=severity)

    return _notify


def follow(app: App, items, render: Callable[[list], None]) -> Callable[[], None]:
    """Call render(snapshot) on the app thread after every change of items.

    items is an ObservableList or ListView. A render that queries a widget
    which is gone (NoMatches) is skipped. Returns a disposer.
    """
    main = threading.get_ident()

    def _render() -> None:
        if not app.is_running:
            return
        try:
            render(list(items))
        except NoMatches:
            pass

    def _on_change(change: ListChange) -> None:
        if threading.get_ident() != main:
            app.call_from_thread(_render)
        else:
            _render()

    return items.add_listener(_on_change)
