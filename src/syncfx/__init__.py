"""syncfx: incremental reactive-list data providers with field write-back."""

from importlib.metadata import version as _version

__version__ = _version("syncfx")

from syncfx.observable import (
    Observable,
    ObservableList,
    ListChange,
    ListView,
    set_scheduler,
    run_on_owner,
)
from syncfx.reaction import Reaction, autorun
from syncfx.contracts import DataReader, Sink, WriteBackHandler, IterableReader, CallbackWriteBack
from syncfx.task import State, RetrievalHandle, PublishingTask
from syncfx.fields import WriteTransient, WRITE_TRANSIENT, FieldBinding, bind_write_back
from syncfx.provider import ListDataProvider, report_failure
# textual NOT auto-imported — opt-in only

__all__ = [
    "Observable",
    "ObservableList",
    "ListChange",
    "ListView",
    "set_scheduler",
    "run_on_owner",
    "Reaction",
    "autorun",
    "DataReader",
    "Sink",
    "WriteBackHandler",
    "IterableReader",
    "CallbackWriteBack",
    "State",
    "RetrievalHandle",
    "PublishingTask",
    "WriteTransient",
    "WRITE_TRANSIENT",
    "FieldBinding",
    "bind_write_back",
    "ListDataProvider",
    "report_failure",
]
