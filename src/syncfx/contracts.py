"""Collaborator contracts — where items come from and where they go back to.

A DataReader is a pull-based cursor: advance() moves to the next item and
reports whether there is one, current() returns it. A WriteBackHandler
turns an item into a Sink whose invoke() persists it.

Both are structural protocols; any object with the right methods works.
"""

from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
T_contra = TypeVar("T_contra", contravariant=True)
R = TypeVar("R")

_NOTHING = object()


@runtime_checkable
class DataReader(Protocol[T_co]):
    """Pull-based source of items. Either method may raise a read failure."""

    def advance(self) -> bool: ...

    def current(self) -> T_co: ...


@runtime_checkable
class Sink(Protocol[T_co]):
    """One pending write. invoke() performs it and returns the sink's result."""

    def invoke(self) -> T_co: ...


@runtime_checkable
class WriteBackHandler(Protocol[T_contra]):
    """Factory of sinks that persist a single item."""

    def create_sink(self, item: T_contra) -> Sink: ...


class IterableReader(Generic[T]):
    """DataReader over any iterable (list, generator, DB cursor, ...)."""

    def __init__(self, iterable: Iterable[T]) -> None:
        self._iterator: Iterator[T] = iter(iterable)
        self._current: object = _NOTHING

    def advance(self) -> bool:
        try:
            self._current = next(self._iterator)
        except StopIteration:
            self._current = _NOTHING
            return False
        return True

    def current(self) -> T:
        if self._current is _NOTHING:
            raise LookupError("current() called without a successful advance()")
        return self._current  # type: ignore[return-value]


class _CallbackSink(Generic[T, R]):
    __slots__ = ("_fn", "_item")

    def __init__(self, fn: Callable[[T], R], item: T) -> None:
        self._fn = fn
        self._item = item

    def invoke(self) -> R:
        return self._fn(self._item)


class CallbackWriteBack(Generic[T, R]):
    """WriteBackHandler whose sinks call fn(item).

    Usage:
        provider.write_back_handler = CallbackWriteBack(repo.save)
    """

    def __init__(self, fn: Callable[[T], R]) -> None:
        self._fn = fn

    def create_sink(self, item: T) -> _CallbackSink[T, R]:
        return _CallbackSink(self._fn, item)
