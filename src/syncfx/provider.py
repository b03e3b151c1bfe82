"""ListDataProvider — fetch a collection into an ObservableList and keep it in sync.

    people = ListDataProvider(IterableReader(api.people()))
    people.write_back_handler = CallbackWriteBack(api.save_person)
    people.entry_added_handler = CallbackWriteBack(api.create_person)
    handle = people.retrieve()

Items appear in people.result_list one by one as the reader yields them.
After an item is published, changing any of its observable fields saves
it through write_back_handler. Once the retrieval succeeded, items
appended to the list by anyone else are sent to entry_added_handler.
"""

from __future__ import annotations

import logging
import threading
import weakref
from concurrent.futures import Executor
from typing import Callable, Generic, TypeVar, Union

from syncfx.contracts import DataReader, WriteBackHandler
from syncfx.fields import bind_write_back
from syncfx.observable import ListChange, ListView, ObservableList
from syncfx.task import PublishingTask, RetrievalHandle, State, is_publishing

logger = logging.getLogger("syncfx.provider")

T = TypeVar("T")

ExecutorLike = Union[Executor, Callable[[Callable[[], None]], object]]


def report_failure(handle: RetrievalHandle) -> None:
    """Default failure handler: log the cause (stderr when logging is unconfigured)."""
    exc = handle.exception
    logger.error("Retrieval failed: %s", exc, exc_info=exc)


class ListDataProvider(Generic[T]):
    """Retrieval orchestrator for one target ObservableList.

    executor may be a concurrent.futures.Executor (anything with submit),
    a plain callable taking a zero-argument function, or None for a fresh
    daemon thread per retrieval. A supplied result_list is filled in place
    and never cleared.
    """

    def __init__(
        self,
        reader: DataReader[T],
        executor: ExecutorLike | None = None,
        result_list: ObservableList[T] | None = None,
        *,
        write_back_handler: WriteBackHandler[T] | None = None,
        entry_added_handler: WriteBackHandler[T] | None = None,
        failure_handler: Callable[[RetrievalHandle[T]], None] | None = None,
    ) -> None:
        self.reader = reader
        self.executor = executor
        self.result_list: ObservableList[T] = (
            result_list if result_list is not None else ObservableList()
        )
        self.write_back_handler = write_back_handler
        self.entry_added_handler = entry_added_handler
        self.failure_handler = failure_handler
        self._watched: weakref.WeakSet[ObservableList[T]] = weakref.WeakSet()

    # --- Accessors ---

    def get_reader(self) -> DataReader[T]:
        return self.reader

    def set_reader(self, reader: DataReader[T]) -> None:
        self.reader = reader

    def get_executor(self) -> ExecutorLike | None:
        return self.executor

    def set_executor(self, executor: ExecutorLike | None) -> None:
        self.executor = executor

    def set_result_list(self, result_list: ObservableList[T]) -> None:
        """Point later retrievals at another list. The list is not cleared."""
        self.result_list = result_list

    def set_write_back_handler(self, handler: WriteBackHandler[T] | None) -> None:
        self.write_back_handler = handler

    def set_add_entry_handler(self, handler: WriteBackHandler[T] | None) -> None:
        self.entry_added_handler = handler

    @property
    def data(self) -> ListView[T]:
        """A fresh read-only view over the current result list."""
        return ListView(self.result_list)

    # --- Retrieval ---

    def retrieve(self) -> RetrievalHandle[T]:
        """Start one retrieval in the background and return its handle."""
        target = self.result_list
        task = self.create_publishing_task(target)
        handle: RetrievalHandle[T] = RetrievalHandle()
        handle.add_done_callback(
            lambda h: self._watch_growth(target) if h.state is State.SUCCEEDED else None
        )
        handle.on_failed = self.failure_handler or report_failure

        executor = self.executor
        if executor is None:
            threading.Thread(
                target=task.run, args=(handle,), name="syncfx-retrieve", daemon=True
            ).start()
        elif hasattr(executor, "submit"):
            executor.submit(task.run, handle)
        else:
            executor(lambda: task.run(handle))
        logger.debug("Submitted retrieval into list %#x", id(target))
        return handle

    def create_publishing_task(self, target: ObservableList[T]) -> PublishingTask[T]:
        """Build the task for one retrieval. Override to customize publishing."""
        hook = None
        if self.write_back_handler is not None:
            handler = self.write_back_handler
            hook = lambda item: bind_write_back(item, handler)  # noqa: E731
        return PublishingTask(self.reader, target, hook)

    def _watch_growth(self, target: ObservableList[T]) -> None:
        # Attached only after a fetch into target succeeded, and at most once
        # per list; appends made by publishing tasks are never reported.
        if self.entry_added_handler is None or target in self._watched:
            return
        self._watched.add(target)

        def _on_change(change: ListChange[T]) -> None:
            handler = self.entry_added_handler
            if handler is None or is_publishing():
                return
            for entry in change.added:
                try:
                    handler.create_sink(entry).invoke()
                except Exception:
                    logger.exception("Write-back of added entry %r failed", entry)
                    raise

        target.add_listener(_on_change)
        logger.debug("Watching list %#x for added entries", id(target))
