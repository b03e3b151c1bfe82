"""Reactions — side effects triggered by observable state changes.

autorun(fn) runs fn immediately and re-runs it whenever any Observable or
ObservableList it read changes. Useful for following a retrieval's
progress (RetrievalHandle.published / state_cell) or a result list.
"""

from __future__ import annotations

from typing import Callable

from syncfx._tracking import current_derivation


class Reaction:
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ("_fn", "_dependencies", "_disposed", "__weakref__")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False

    def _run(self) -> None:
        """Re-evaluate the reaction function, re-tracking dependencies."""
        if self._disposed:
            return

        self._clear_dependencies()

        token = current_derivation.set(self)
        try:
            self._fn()
        finally:
            current_derivation.reset(token)

    def _clear_dependencies(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        self._clear_dependencies()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Reaction({self._fn.__name__}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any observable it reads changes.

    Returns the Reaction (call .dispose() to stop).

    Usage:
        handle = provider.retrieve()
        progress = []

        r = autorun(lambda: progress.append(handle.published.get()))
        # progress grows as items are appended

        r.dispose()
    """
    r = Reaction(fn)
    r._run()  # Initial run to establish dependencies
    return r
