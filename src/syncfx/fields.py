"""Write-back wiring — push field changes of a fetched item back to its sink.

For every observable field of an item, an invalidation listener is
attached that calls handler.create_sink(item).invoke() with the whole item.

Which fields count:

1. If the item implements observable_fields(), exactly the (name, cell)
   pairs it returns. Leaving a field out excludes it.
2. Otherwise the fields declared by the item's own class (annotations and
   __slots__, not inherited ones) whose value has add_listener(), minus
   those marked write-transient:

       @dataclass
       class Person:
           name: Observable[str]
           selected: Annotated[Observable[bool], WriteTransient]
           draft: Observable[str] = field(metadata={WRITE_TRANSIENT: True})

   or listed in a class-level ``__write_transient__ = {"draft"}``.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import typing
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from syncfx.contracts import WriteBackHandler

logger = logging.getLogger("syncfx.fields")

WRITE_TRANSIENT = "write_transient"


class WriteTransient:
    """Marker for Annotated[...] fields that must not trigger write-back."""


@runtime_checkable
class ObservableFields(Protocol):
    def observable_fields(self) -> Iterable[tuple[str, Any]]: ...


@dataclass(frozen=True)
class FieldBinding:
    item: Any
    name: str
    dispose: Callable[[], None]


def _is_observable(value) -> bool:
    return callable(getattr(value, "add_listener", None))


def _mangle(cls: type, name: str) -> str:
    if name.startswith("__") and not name.endswith("__"):
        return f"_{cls.__name__.lstrip('_')}{name}"
    return name


def _own_annotations(cls: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(cls, eval_str=True)
    except Exception:
        logger.debug("Unresolvable annotations on %s, using raw strings", cls.__qualname__)
        return inspect.get_annotations(cls)


def _marked_transient(hint) -> bool:
    if isinstance(hint, str):
        return WriteTransient.__name__ in hint
    if typing.get_origin(hint) is typing.Annotated:
        return any(m is WriteTransient or isinstance(m, WriteTransient) for m in hint.__metadata__)
    return False


def _is_classvar(hint) -> bool:
    if isinstance(hint, str):
        return hint.startswith(("ClassVar", "typing.ClassVar"))
    return hint is typing.ClassVar or typing.get_origin(hint) is typing.ClassVar


def declared_fields(cls: type) -> list[str]:
    """Names of the fields cls itself declares, minus write-transient ones."""
    excluded = set(getattr(cls, "__write_transient__", ()))
    if dataclasses.is_dataclass(cls):
        excluded.update(
            f.name for f in dataclasses.fields(cls) if f.metadata.get(WRITE_TRANSIENT)
        )

    names: list[str] = []
    for name, hint in _own_annotations(cls).items():
        if _is_classvar(hint) or _marked_transient(hint):
            excluded.add(name)
        else:
            names.append(name)

    slots = cls.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    for slot in slots:
        name = _mangle(cls, slot)
        if slot not in ("__dict__", "__weakref__") and name not in names:
            names.append(name)

    return [name for name in names if name not in excluded]


def discover_fields(item) -> list[tuple[str, Any]]:
    """(name, observable) pairs of item that should trigger write-back."""
    if isinstance(item, ObservableFields):
        return list(item.observable_fields())

    cls = type(item)
    found = []
    for name in declared_fields(cls):
        try:
            value = getattr(item, name)
        except Exception:
            logger.error(
                "Cannot read %s.%s, skipping its write-back", cls.__qualname__, name,
                exc_info=True,
            )
            continue
        if _is_observable(value):
            found.append((name, value))
    return found


def bind_write_back(item, handler: WriteBackHandler) -> list[FieldBinding]:
    """Attach write-back listeners to every observable field of item.

    Each invalidation performs exactly one write-back; nothing is
    coalesced. A failing write-back is logged and re-raised to whoever
    triggered the change.
    """
    bindings = []
    for name, cell in discover_fields(item):
        dispose = cell.add_listener(_write_back_listener(item, name, handler))
        bindings.append(FieldBinding(item, name, dispose))
    if bindings:
        logger.debug(
            "Bound write-back on %s: %s",
            type(item).__qualname__, ", ".join(b.name for b in bindings),
        )
    return bindings


def _write_back_listener(item, name: str, handler: WriteBackHandler):
    def _invalidated(_source) -> None:
        try:
            handler.create_sink(item).invoke()
        except Exception:
            logger.exception("Write-back of %r failed after %s changed", item, name)
            raise

    return _invalidated
