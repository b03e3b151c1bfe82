"""Observable values and lists — state that tracks readers and notifies listeners.

Two kinds of subscribers are supported:

- Derivations (autorun) register automatically when they read a value.
- Listeners are registered explicitly with add_listener(). An Observable
  calls listener(observable) on invalidation; an ObservableList calls
  listener(change) with a ListChange describing what was added/removed.

Listeners are held strongly by the observable itself, so a subscription
lives exactly as long as the observable (and whatever owns it) is reachable.

Thread safety: call set_scheduler() once from the owning thread. After that,
any Observable.set() from a background thread is auto-marshaled, and
run_on_owner() executes arbitrary mutations on the owning thread.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Iterator, TypeVar

from syncfx._tracking import schedule, track

T = TypeVar("T")
R = TypeVar("R")

Disposer = Callable[[], None]

# ─── Owning thread ───────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread mutations.

    Call once from the owning (main/UI) thread:
        syncfx.set_scheduler(app.call_from_thread)

    Pass None to go back to direct mode, where every mutation runs on
    whichever thread performs it.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


def on_owner_thread() -> bool:
    """True when no scheduler is set or the caller is the owning thread."""
    return _scheduler is None or threading.current_thread() is _scheduler_thread


def run_on_owner(fn: Callable[[], R]) -> R:
    """Run fn on the owning thread and wait for its result.

    Exceptions raised by fn are re-raised in the caller.
    """
    if on_owner_thread():
        return fn()

    future: Future = Future()

    def _call() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn())
        except BaseException as exc:
            future.set_exception(exc)

    _scheduler(_call)
    return future.result()


def _add(listeners: list, listener: Callable) -> Disposer:
    listeners.append(listener)

    def _remove() -> None:
        try:
            listeners.remove(listener)
        except ValueError:
            pass  # already removed

    return _remove


class Observable(Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_value", "_observers", "_listeners")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: set = set()
        self._listeners: list[Callable[[Observable[T]], None]] = []

    def get(self) -> T:
        """Read the value. If inside an autorun, registers the dependency."""
        track(self)
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Auto-marshals from background threads."""
        if on_owner_thread():
            self._set_direct(value)
        else:
            _scheduler(lambda v=value: self._set_direct(v))

    def _set_direct(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._notify()

    def add_listener(self, listener: Callable[[Observable[T]], None]) -> Disposer:
        """Call listener(self) on every invalidation. Returns a disposer."""
        return _add(self._listeners, listener)

    def remove_listener(self, listener: Callable[[Observable[T]], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"


@dataclass(frozen=True)
class ListChange(Generic[T]):
    """One mutation of an ObservableList.

    `added` holds every inserted element in list order, starting at `start`.
    `removed` holds the elements that previously occupied that position.
    """

    source: ObservableList[T]
    start: int
    added: tuple[T, ...] = ()
    removed: tuple[T, ...] = ()

    @property
    def was_added(self) -> bool:
        return bool(self.added)

    @property
    def was_removed(self) -> bool:
        return bool(self.removed)


class ObservableList(Generic[T]):
    """An observable list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, extend, __setitem__, etc.) notifies listeners
    with a ListChange and re-runs dependent reactions.
    """

    __slots__ = ("_items", "_observers", "_listeners", "__weakref__")

    def __init__(self, items: Iterable[T] | None = None) -> None:
        self._items: list[T] = list(items) if items else []
        self._observers: set = set()
        self._listeners: list[Callable[[ListChange[T]], None]] = []

    def add_listener(self, listener: Callable[[ListChange[T]], None]) -> Disposer:
        """Call listener(change) after every mutation. Returns a disposer."""
        return _add(self._listeners, listener)

    def remove_listener(self, listener: Callable[[ListChange[T]], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, change: ListChange[T]) -> None:
        for listener in list(self._listeners):
            listener(change)
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def _position(self, index: int) -> int:
        n = len(self._items)
        if index < 0:
            index += n
        if not 0 <= index < n:
            raise IndexError("list index out of range")
        return index

    # --- Read operations (track) ---

    def __getitem__(self, index: int) -> T:
        track(self)
        return self._items[index]

    def __len__(self) -> int:
        track(self)
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        track(self)
        return iter(list(self._items))

    def __contains__(self, item: T) -> bool:
        track(self)
        return item in self._items

    def __bool__(self) -> bool:
        track(self)
        return bool(self._items)

    def index(self, item: T) -> int:
        track(self)
        return self._items.index(item)

    # --- Write operations (notify) ---

    def append(self, item: T) -> None:
        start = len(self._items)
        self._items.append(item)
        self._notify(ListChange(self, start, added=(item,)))

    def extend(self, items: Iterable[T]) -> None:
        added = tuple(items)
        if not added:
            return
        start = len(self._items)
        self._items.extend(added)
        self._notify(ListChange(self, start, added=added))

    def insert(self, index: int, item: T) -> None:
        n = len(self._items)
        start = max(0, min(index + n if index < 0 else index, n))
        self._items.insert(start, item)
        self._notify(ListChange(self, start, added=(item,)))

    def pop(self, index: int = -1) -> T:
        position = self._position(index)
        result = self._items.pop(position)
        self._notify(ListChange(self, position, removed=(result,)))
        return result

    def remove(self, item: T) -> None:
        position = self._items.index(item)
        del self._items[position]
        self._notify(ListChange(self, position, removed=(item,)))

    def clear(self) -> None:
        removed = tuple(self._items)
        self._items.clear()
        self._notify(ListChange(self, 0, removed=removed))

    def __setitem__(self, index: int, value: T) -> None:
        position = self._position(index)
        old = self._items[position]
        self._items[position] = value
        self._notify(ListChange(self, position, added=(value,), removed=(old,)))

    def __delitem__(self, index: int) -> None:
        position = self._position(index)
        old = self._items.pop(position)
        self._notify(ListChange(self, position, removed=(old,)))

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"


class ListView(Generic[T]):
    """Read/observe-only view over one ObservableList reference."""

    __slots__ = ("_source",)

    def __init__(self, source: ObservableList[T]) -> None:
        self._source = source

    @property
    def source(self) -> ObservableList[T]:
        return self._source

    def add_listener(self, listener: Callable[[ListChange[T]], None]) -> Disposer:
        return self._source.add_listener(listener)

    def remove_listener(self, listener: Callable[[ListChange[T]], None]) -> None:
        self._source.remove_listener(listener)

    def __getitem__(self, index: int) -> T:
        return self._source[index]

    def __len__(self) -> int:
        return len(self._source)

    def __iter__(self) -> Iterator[T]:
        return iter(self._source)

    def __contains__(self, item: T) -> bool:
        return item in self._source

    def __bool__(self) -> bool:
        return bool(self._source)

    def __repr__(self) -> str:
        return f"ListView({self._source._items!r})"
