"""Tests for write-back wiring of observable fields."""

import logging
from dataclasses import dataclass, field
from typing import Annotated, ClassVar

import pytest

from syncfx import WRITE_TRANSIENT, CallbackWriteBack, Observable, ObservableList, WriteTransient, bind_write_back
from syncfx.fields import declared_fields, discover_fields


@dataclass
class Person:
    a: Annotated[Observable[str], WriteTransient]
    b: int
    c: Observable[str]


@dataclass
class Draft:
    title: Observable[str]
    scratch: Observable[str] = field(
        default_factory=lambda: Observable(""), metadata={WRITE_TRANSIENT: True}
    )


@dataclass
class Flagged:
    __write_transient__ = {"selected"}

    name: Observable[str]
    selected: Observable[bool]
    registry: ClassVar[Observable[int]] = Observable(0)


@dataclass
class Base:
    inherited: Observable[int]


@dataclass
class Child(Base):
    own: Observable[int]


class Point:
    __slots__ = ("x", "__secret", "label", "missing")

    def __init__(self):
        self.x = Observable(0)
        self.__secret = Observable(1)
        self.label = "p"

    def bump_secret(self):
        self.__secret.set(self.__secret.get() + 1)


class Declared:
    """Declares its write-back fields explicitly."""

    def __init__(self):
        self.name = Observable("n")
        self.hidden = Observable("h")

    def observable_fields(self):
        return [("name", self.name)]


def recorder():
    writes = []
    return writes, CallbackWriteBack(writes.append)


class TestDiscovery:
    def test_annotated_transient_and_plain_fields_skipped(self):
        p = Person(Observable("a"), 1, Observable("c"))
        assert [name for name, _ in discover_fields(p)] == ["c"]

    def test_dataclass_metadata_excludes(self):
        assert declared_fields(Draft) == ["title"]

    def test_class_level_exclusions_and_classvar(self):
        assert declared_fields(Flagged) == ["name"]

    def test_inherited_fields_not_scanned(self):
        child = Child(Observable(1), Observable(2))
        assert [name for name, _ in discover_fields(child)] == ["own"]

    def test_private_slots_are_read(self):
        names = [name for name, _ in discover_fields(Point())]
        assert names == ["x", "_Point__secret"]

    def test_unreadable_field_logged_and_skipped(self, caplog):
        with caplog.at_level(logging.ERROR, logger="syncfx.fields"):
            found = discover_fields(Point())
        assert len(found) == 2
        assert "Cannot read Point.missing" in caplog.text

    def test_explicit_capability_wins(self):
        d = Declared()
        assert discover_fields(d) == [("name", d.name)]

    def test_observable_list_field_counts(self):
        @dataclass
        class Tagged:
            tags: ObservableList[str]

        t = Tagged(ObservableList())
        assert discover_fields(t) == [("tags", t.tags)]


class TestBindWriteBack:
    def test_only_observable_non_transient_field_writes(self):
        writes, handler = recorder()
        p = Person(Observable("a"), 1, Observable("c"))
        bindings = bind_write_back(p, handler)
        assert [b.name for b in bindings] == ["c"]

        p.c.set("changed")
        assert writes == [p]

        p.a.set("transient")
        p.b = 2
        assert writes == [p]

    def test_no_coalescing(self):
        writes, handler = recorder()
        p = Person(Observable("a"), 1, Observable("c"))
        bind_write_back(p, handler)
        for value in ("x", "y", "z"):
            p.c.set(value)
        assert writes == [p, p, p]

    def test_private_field_triggers_write_back(self):
        writes, handler = recorder()
        point = Point()
        bind_write_back(point, handler)
        point.bump_secret()
        assert writes == [point]

    def test_list_field_change_writes(self):
        @dataclass
        class Tagged:
            tags: ObservableList[str]

        writes, handler = recorder()
        t = Tagged(ObservableList())
        bind_write_back(t, handler)
        t.tags.append("new")
        assert writes == [t]

    def test_binding_dispose(self):
        writes, handler = recorder()
        p = Person(Observable("a"), 1, Observable("c"))
        (binding,) = bind_write_back(p, handler)
        assert binding.item is p
        binding.dispose()
        p.c.set("changed")
        assert writes == []

    def test_write_back_failure_logged_and_propagated(self, caplog):
        def fail(item):
            raise RuntimeError("backend down")

        p = Person(Observable("a"), 1, Observable("c"))
        bind_write_back(p, CallbackWriteBack(fail))
        with caplog.at_level(logging.ERROR, logger="syncfx.fields"):
            with pytest.raises(RuntimeError, match="backend down"):
                p.c.set("changed")
        assert "after c changed" in caplog.text
