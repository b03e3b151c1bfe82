"""Retrieval handles and the publishing task that drives them.

A PublishingTask drains a DataReader on a background thread and appends
each item to the target ObservableList on the owning thread (see
run_on_owner), one item per reader step, preserving reader order.

A RetrievalHandle is the observable side of one run: its state and the
number of published items are Observables, so callers can follow them
with autorun, or block with wait().
"""

from __future__ import annotations

import contextvars
import enum
import functools
import logging
import threading
from typing import Callable, Generic, TypeVar

from syncfx.contracts import DataReader
from syncfx.observable import Observable, ObservableList, run_on_owner

logger = logging.getLogger("syncfx.task")

T = TypeVar("T")

Handler = Callable[["RetrievalHandle"], None]

# True while a PublishingTask appends; list listeners use it to tell
# fetched items from items added by anyone else.
_publishing: contextvars.ContextVar[bool] = contextvars.ContextVar("publishing", default=False)


def is_publishing() -> bool:
    """True inside the append step of a PublishingTask."""
    return _publishing.get()


class State(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (State.SUCCEEDED, State.FAILED, State.CANCELLED)


class RetrievalHandle(Generic[T]):
    """One in-flight or completed retrieval. Never reused.

    Terminal handlers (on_succeeded / on_failed / on_cancelled) run on the
    owning thread when the handle reaches that state. Assigning a handler
    replaces the previous one; assigning after the state was reached has
    no effect, use add_done_callback() for late subscribers.
    """

    def __init__(self) -> None:
        self.state_cell: Observable[State] = Observable(State.PENDING)
        self.published: Observable[int] = Observable(0)
        self.on_succeeded: Handler | None = None
        self.on_failed: Handler | None = None
        self.on_cancelled: Handler | None = None
        self._state = State.PENDING
        self._result: ObservableList[T] | None = None
        self._exception: BaseException | None = None
        self._callbacks: list[Handler] = []
        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()
        self._done = threading.Event()

    @property
    def state(self) -> State:
        return self._state

    @property
    def result(self) -> ObservableList[T] | None:
        """The target list, once the retrieval succeeded."""
        return self._result

    @property
    def exception(self) -> BaseException | None:
        """The failure cause, once the retrieval failed."""
        return self._exception

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self._state is State.CANCELLED

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if already finished.

        Items already appended stay in the list and their field bindings
        stay attached.
        """
        with self._lock:
            if self._state.terminal:
                return False
            was_pending = self._state is State.PENDING
            self._cancel_requested.set()
        if was_pending:
            run_on_owner(lambda: self._finish(State.CANCELLED))
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the handle is done and its handlers ran."""
        return self._done.wait(timeout)

    def add_done_callback(self, fn: Handler) -> None:
        """Call fn(handle) once done. Runs immediately if already done."""
        with self._lock:
            if not self._state.terminal:
                self._callbacks.append(fn)
                return
        fn(self)

    def _begin(self) -> bool:
        with self._lock:
            if self._state is not State.PENDING:
                return False
            self._state = State.RUNNING
        self.state_cell.set(State.RUNNING)
        return True

    def _finish(
        self,
        state: State,
        result: ObservableList[T] | None = None,
        exception: BaseException | None = None,
    ) -> bool:
        """Enter a terminal state. Must run on the owning thread."""
        with self._lock:
            if self._state.terminal:
                return False
            self._state = state
            self._result = result
            self._exception = exception
            callbacks, self._callbacks = self._callbacks, []
        self.state_cell.set(state)

        handler = {
            State.SUCCEEDED: self.on_succeeded,
            State.FAILED: self.on_failed,
            State.CANCELLED: self.on_cancelled,
        }[state]
        try:
            for fn in ([handler] if handler is not None else []) + callbacks:
                try:
                    fn(self)
                except Exception:
                    logger.exception("Handler %r raised for %s retrieval", fn, state.value)
        finally:
            self._done.set()
        return True

    def __repr__(self) -> str:
        return f"RetrievalHandle({self._state.value}, published={self.published._value})"


class PublishingTask(Generic[T]):
    """Drains a reader into a target list.

    publish_hook(item), when given, runs on the owning thread right after
    each append (used for write-back wiring). Exceptions from the reader,
    the append or the hook abort the task and fail the handle; items
    already appended are kept.
    """

    def __init__(
        self,
        reader: DataReader[T],
        target: ObservableList[T],
        publish_hook: Callable[[T], object] | None = None,
    ) -> None:
        self.reader = reader
        self.target = target
        self.publish_hook = publish_hook

    def run(self, handle: RetrievalHandle[T]) -> None:
        if not handle._begin():
            return
        logger.debug("Retrieval started on %s", threading.current_thread().name)
        try:
            completed = self._drain(handle)
        except BaseException as exc:
            logger.debug("Retrieval failed after %d items", handle.published._value)
            run_on_owner(lambda: handle._finish(State.FAILED, exception=exc))
            if not isinstance(exc, Exception):
                raise
            return
        if completed:
            logger.debug("Retrieval succeeded with %d items", handle.published._value)
            run_on_owner(lambda: handle._finish(State.SUCCEEDED, result=self.target))
        else:
            logger.debug("Retrieval cancelled after %d items", handle.published._value)
            run_on_owner(lambda: handle._finish(State.CANCELLED))

    def _drain(self, handle: RetrievalHandle[T]) -> bool:
        """Returns True on reader exhaustion, False when cancelled."""
        while not handle.cancel_requested:
            if not self.reader.advance():
                return True
            item = self.reader.current()
            if not run_on_owner(functools.partial(self._publish, handle, item)):
                return False
        return False

    def _publish(self, handle: RetrievalHandle[T], item: T) -> bool:
        # Re-checked on the owning thread so a cancel() issued there is
        # never followed by another append.
        if handle.cancel_requested:
            return False
        token = _publishing.set(True)
        try:
            self.target.append(item)
        finally:
            _publishing.reset(token)
        handle.published.set(handle.published._value + 1)
        if self.publish_hook is not None:
            self.publish_hook(item)
        return True
