"""
Filter overlay types.

Filters are plain callables registered by name on a collection. When the
collection's ``active_filter`` names one of them, the callable is invoked
with the collection and returns a ``FilterResult``:

    def only_done(collection):
        return FilterResult(records=collection.filter(lambda r: r.get("done")))

    todos = Collection(data, store=store, filters={"done": only_done})
    todos.set("active_filter", "done")
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

if TYPE_CHECKING:
    from kcollection.core.collection import Collection


class FilterState(Enum):
    """States of the filter overlay."""

    UNFILTERED = auto()
    FILTERING = auto()
    FILTERED = auto()


@dataclass(frozen=True)
class FilterResult:
    """Outcome of a filter predicate.

    - ``records`` given: the collection is reset to these records.
    - ``applied`` without ``records``: the predicate already called
      ``collection.reset(records)`` itself.
    - neither: nothing is filtered this cycle. When a filter was already
      active, the collection goes back to its unfiltered data.
    """

    applied: bool = False
    records: Optional[List[Any]] = None

    def __post_init__(self):
        if self.records is not None:
            object.__setattr__(self, "records", list(self.records))
            object.__setattr__(self, "applied", True)

    @classmethod
    def coerce(cls, value: Any) -> "FilterResult":
        """Normalize a predicate's return value.

        Accepts a ``FilterResult``, ``True`` (already applied), a list or
        tuple of records (possibly empty), or ``None``/``False`` (nothing to do).
        """
        if isinstance(value, FilterResult):
            return value
        if value is True:
            return cls(applied=True)
        if isinstance(value, (list, tuple)):
            return cls(records=value)
        if not value:
            return cls()
        return cls(records=list(value))


FilterPredicate = Callable[["Collection"], Union[FilterResult, Sequence[Any], bool, None]]


def where(**criteria: Any) -> FilterPredicate:
    """Build a predicate keeping records whose attributes equal ``criteria``.

    Example:
        collection = Collection(data, store=store, filters={"open": where(status="open")})
    """

    def predicate(collection: "Collection") -> FilterResult:
        return FilterResult(
            records=collection.filter(
                lambda record: all(record.get(k) == v for k, v in criteria.items())
            )
        )

    predicate.__name__ = "where_" + "_".join(sorted(criteria)) if criteria else "where_all"
    return predicate
