"""Record types shared by the test modules and fixtures."""

from typing import Any, List, Tuple

from kcollection import Collection, Model


class Contact(Model):
    """Record identified by ``id``."""


class Person(Model):
    """Record identified by ``id`` or by first/last name."""

    merge_keys = ["first", "last"]


class EventRecorder:
    """Collects every event and length notification of a collection."""

    def __init__(self, collection: Collection, events=("add", "remove", "reset", "filter", "destroy")):
        self.events: List[Tuple[str, Any]] = []
        self.lengths: List[Tuple[Any, Any]] = []
        for event in events:
            collection.add_listener(event, self._on_event)
        collection.add_observer("length", self._on_length)

    def _on_event(self, target, event, args):
        self.events.append((event, args))

    def _on_length(self, old, new, prop):
        self.lengths.append((old, new))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Any]:
        return [args for event, args in self.events if event == name]
