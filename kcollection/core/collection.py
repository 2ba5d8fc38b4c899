"""
Collection - ordered, lazily-materialized sequence of records.

Each slot holds either a raw attribute dict or a materialized Model. Raw
slots become records the first time they are read through ``at()``, so
adding thousands of hashes costs nothing until they are used.

Collections emit these events through their store:
- add      {"records": [index, ...]}
- remove   {"records": {index: record}}
- reset    {"records": [slot, ...]}
- filter
- destroy

and notify observers of ``length`` whenever it changes.

Mutations (add, remove, merge, remove_all) only apply to the unfiltered
data. Calling them while a filter is active restores the unfiltered view
first.
"""

import asyncio
import bisect
import importlib
import json
import uuid
from collections.abc import Mapping
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from kcollection.core.errors import InvalidRecordState
from kcollection.core.fetch import FetchOptions, get_fetch_strategy
from kcollection.core.filters import FilterPredicate, FilterResult, FilterState
from kcollection.core.model import Model
from kcollection.core.store import Store
from kcollection.matching import KeyMatcher, MergeResult

Slot = Union[Dict[str, Any], Model]


def _as_list(records: Any) -> List[Any]:
    if records is None:
        return []
    if isinstance(records, (list, tuple)):
        return list(records)
    return [records]


def _split_props(props: Union[str, Sequence[str], None]) -> List[str]:
    if not props:
        return []
    if isinstance(props, str):
        return props.split()
    return list(props)


def _is_destroyed(item: Any) -> bool:
    if isinstance(item, Mapping):
        return bool(item.get("destroyed"))
    return bool(getattr(item, "destroyed", False))


def resolve_model(model: Union[type, str]) -> type:
    """Resolve a model class from a class or a dotted path ("pkg.module.Class")."""
    if isinstance(model, str):
        module_path, _, name = model.rpartition(".")
        if not module_path:
            raise ValueError(f"Model path must be 'module.ClassName', got {model!r}")
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise ValueError(f"Cannot import model module: {module_path}") from e
        resolved = getattr(module, name, None)
        if resolved is None:
            raise ValueError(f"Module {module_path} has no model {name!r}")
        model = resolved

    if not (isinstance(model, type) and issubclass(model, Model)):
        raise ValueError(f"model must be a Model subclass, got {model!r}")
    return model


class Collection:
    """Array-like container of records.

    Subclasses declare their model, filters and filter properties:

        class Todos(Collection):
            model = "myapp.models.Todo"
            filter_props = "owner"

            def only_mine(self):
                return FilterResult(records=self.filter(lambda r: r.get("owner") == self.owner))

            filters = {"mine": only_mine}

    ``filters`` and ``filter_props`` accumulate down the class hierarchy.
    """

    model: Union[type, str] = Model
    url: str = ""
    filters: Dict[str, FilterPredicate] = {}
    filter_props: Union[str, Sequence[str]] = ()
    active_filter: str = ""

    # None means "use the store's configuration"
    preserve_records: Optional[bool] = None
    instance_all_records: Optional[bool] = None
    report_instance_adds: Optional[bool] = None
    default_source: Optional[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        filters: Dict[str, FilterPredicate] = {}
        props: List[str] = []
        for base in cls.__bases__:
            filters.update(getattr(base, "filters", {}) or {})
            props.extend(p for p in _split_props(getattr(base, "filter_props", ())) if p not in props)
        filters.update(cls.__dict__.get("filters", {}) or {})
        props.extend(p for p in _split_props(cls.__dict__.get("filter_props", ())) if p not in props)
        cls.filters = filters
        cls.filter_props = tuple(props)

    def __init__(
        self,
        records: Optional[Sequence[Any]] = None,
        *,
        store: Store,
        model: Union[type, str, None] = None,
        filters: Optional[Dict[str, FilterPredicate]] = None,
        filter_props: Union[str, Sequence[str], None] = None,
        **props: Any,
    ):
        """Create a collection.

        Args:
            records: Initial raw data or records, passed through ``parse()``
            store: Store providing events, the record factory and sources
            model: Model class or dotted import path (default: class attribute)
            filters: Extra named filter predicates
            filter_props: Extra attribute names that re-trigger the active filter
            **props: Property overrides (url, active_filter, preserve_records, ...)
        """
        if store is None:
            raise ValueError("Collection requires a store")

        self.euid = uuid.uuid4().hex
        self.store: Optional[Store] = store
        self.destroyed = False
        self.filtered = False
        self._filtering = False
        self._silenced = False
        self._destroying_all = False
        self._undo: Optional[List[Slot]] = None

        for name, value in props.items():
            setattr(self, name, value)

        config = store.config
        if self.preserve_records is None:
            self.preserve_records = config.preserve_records
        if self.instance_all_records is None:
            self.instance_all_records = config.instance_all_records
        if self.report_instance_adds is None:
            self.report_instance_adds = config.report_instance_adds
        if self.default_source is None:
            self.default_source = config.default_source

        self.model = resolve_model(model if model is not None else type(self).model)
        self.filters = {**type(self).filters, **(filters or {})}
        extra_props = [p for p in _split_props(filter_props) if p not in _split_props(type(self).filter_props)]
        self.filter_props = tuple(_split_props(type(self).filter_props)) + tuple(extra_props)

        self._slots: List[Slot] = []
        if records is not None:
            self._slots = [r for r in _as_list(self.parse(_as_list(records))) if r is not None]
        self.length = len(self._slots)

        store.add_collection(self)
        for prop in self.filter_props:
            self.add_observer(prop, self._filter_prop_changed)
        self.add_listener("filter", self._filter_content)
        self.add_observer("active_filter", self._active_filter_changed)

        if self.active_filter in self.filters:
            self.trigger_event("filter")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.model.__name__} length={self.length}>"

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[Model]:
        for index in range(self.length):
            yield self.at(index)

    @property
    def filter_state(self) -> FilterState:
        if self._filtering:
            return FilterState.FILTERING
        if self.filtered:
            return FilterState.FILTERED
        return FilterState.UNFILTERED

    # Hooks

    def parse(self, data: Any) -> Any:
        """Overload to process incoming data; should return a list of record hashes."""
        return data

    def record_changed(self, record: Model, event: str, args: Optional[Dict[str, Any]]) -> None:
        """Overload to react to ``change`` events of records in the collection."""

    # Reading

    def at(self, index: int) -> Optional[Model]:
        """Return the record at ``index``, materializing it on first access.

        Returns None for out-of-range indices.
        """
        if not isinstance(index, int) or index < 0 or index >= len(self._slots):
            return None

        slot = self._slots[index]
        if isinstance(slot, Model):
            return slot

        record = self.create_record(slot, add=False)
        self._slots[index] = record
        # Keep the same identity once the unfiltered data is restored
        if self._undo is not None:
            for position, held in enumerate(self._undo):
                if held is slot:
                    self._undo[position] = record
                    break
        return record

    def map(self, fn: Callable[[Model], Any]) -> List[Any]:
        """Apply ``fn`` to every (visible) record and return the results."""
        return [fn(self.at(index)) for index in range(self.length)]

    def filter(self, fn: Callable[[Model], Any]) -> List[Model]:
        """Return the (visible) records for which ``fn`` is truthy."""
        return [record for record in self if fn(record)]

    def index_of(self, record: Any, offset: int = 0) -> int:
        """Return the index of ``record`` (identity), or -1.

        Only the visible data is searched while a filter is active.
        """
        for index in range(max(0, offset), len(self._slots)):
            if self._slots[index] is record:
                return index
        return -1

    def raw(self) -> List[Dict[str, Any]]:
        """Plain-data snapshot of the visible records."""
        return self.map(lambda record: record.raw())

    def to_json(self) -> str:
        return json.dumps(self.raw(), default=str)

    def get(self, path: Union[str, int]) -> Any:
        """Read a collection property by dotted path; an int is the same as ``at()``.

        Record attributes are not reachable through this method.
        """
        if isinstance(path, int) and not isinstance(path, bool):
            return self.at(path)

        value: Any = self
        for part in path.split("."):
            value = getattr(value, part, None)
            if value is None:
                return None
        return value

    def set(self, path: str, value: Any, force: bool = False) -> "Collection":
        """Set a collection property by dotted path and notify its observers.

        Setting ``active_filter`` through this method applies or clears the
        named filter.
        """
        *parents, name = path.split(".")
        target: Any = self
        for part in parents:
            target = getattr(target, part)
        old = getattr(target, name, None)
        setattr(target, name, value)
        if force or old != value:
            self.notify_observers(path, old, value)
        return self

    # Record factory

    def create_record(
        self,
        attrs: Optional[Dict[str, Any]] = None,
        props: Optional[Dict[str, Any]] = None,
        index: Optional[int] = None,
        add: bool = True,
    ) -> Model:
        """Create a record owned by this collection.

        Args:
            attrs: Record attributes
            props: Extra record properties
            index: Insertion index (default: append)
            add: False to create the record without adding it

        Returns:
            The new record
        """
        record = self.store.create_record(self.model, attrs, {"owner": self, **(props or {})})
        self._bind(record)
        if add:
            self.add(record, index)
        return record

    def _bind(self, record: Model) -> None:
        record.add_listener("change", self._record_changed)
        record.add_listener("destroy", self._record_destroyed)

    def _unbind(self, record: Model) -> None:
        record.remove_listener("change", self._record_changed)
        record.remove_listener("destroy", self._record_destroyed)

    def _record_changed(self, record: Model, event: str, args: Optional[Dict[str, Any]]) -> None:
        self.record_changed(record, event, args)

    def _record_destroyed(self, record: Model, event: str, args: Optional[Dict[str, Any]]) -> None:
        # destroy_all() already removed it
        if not self._destroying_all:
            self.remove(record)

    # Mutation

    def add(self, records: Any, index: Optional[int] = None) -> List[int]:
        """Insert a record, hash or list of them at ``index`` (default: append).

        Returns:
            Indices reported by the ``add`` event. Model instances passed in
            directly are only reported when ``report_instance_adds`` is set.

        Raises:
            InvalidRecordState: if raw data of a destroyed record is passed
        """
        if self.filtered:
            self.reset()

        batch = [r for r in _as_list(records) if r is not None]
        if not batch:
            return []

        for item in batch:
            if not isinstance(item, Model) and _is_destroyed(item):
                raise InvalidRecordState("cannot add a record that has already been destroyed")

        previous = self.length
        start = previous if index is None else max(0, min(previous, int(index)))

        added: List[int] = []
        for offset, item in enumerate(batch):
            if isinstance(item, Model):
                self._bind(item)
                if self.report_instance_adds:
                    added.append(start + offset)
                continue
            if self.instance_all_records:
                batch[offset] = self.create_record(item, add=False)
            added.append(start + offset)

        self._slots[start:start] = batch
        self.length = len(self._slots)

        if previous != self.length:
            self.notify_observers("length", previous, self.length)
        if added:
            self.trigger_event("add", {"records": added})
        self._audit("add", {"count": len(batch), "index": start})
        return added

    def remove(self, records: Any) -> Dict[int, Any]:
        """Remove a record or list of records (matched by identity).

        Returns:
            Mapping of former index to removed record, in ascending index order
        """
        if self.filtered:
            self.reset()

        previous = self.length
        found: Dict[int, Any] = {}
        order: List[int] = []
        for item in _as_list(records):
            if item is None:
                continue
            position = self.index_of(item)
            if position < 0 or position in found:
                continue
            if not order or position < order[0]:
                order.insert(0, position)
            elif position > order[-1]:
                order.append(position)
            else:
                bisect.insort(order, position)
            found[position] = item

        # Descending, so earlier indices stay valid
        for position in reversed(order):
            del self._slots[position]
            if isinstance(found[position], Model):
                self._unbind(found[position])

        self.length = len(self._slots)
        removed = {position: found[position] for position in order}

        if previous != self.length:
            self.notify_observers("length", previous, self.length)
        if removed:
            self.trigger_event("remove", {"records": removed})
            self._audit("remove", {"count": len(removed)})
        return removed

    def remove_all(self) -> Dict[int, Any]:
        """Remove (without destroying) every record of the current view."""
        return self.remove(list(self._slots))

    def destroy_all(self) -> Dict[int, Any]:
        """Remove every record of the current view and destroy it."""
        removed = self.remove_all()
        self._destroying_all = True
        try:
            for record in removed.values():
                if isinstance(record, Model):
                    record.destroy()
        finally:
            self._destroying_all = False
        return removed

    def merge(self, records: Any) -> MergeResult:
        """Update existing records with matching keys, append the rest.

        A local record matches when its primary key equals the incoming
        one, or when every ``merge_keys`` value is equal. Each local record
        absorbs at most one incoming record. Raw local slots are updated in
        place without being materialized.
        """
        incoming = [r for r in _as_list(records) if r is not None]
        if not incoming:
            return MergeResult()

        if self.filtered:
            self.reset()

        matcher = KeyMatcher.for_model(self.model)
        pool = list(self._slots)
        pending: List[Any] = []
        matched = 0

        for item in incoming:
            position = matcher.find(item, pool)
            if position is None:
                pending.append(item)
                continue

            local = pool.pop(position)
            data = item.raw() if isinstance(item, Model) else dict(item)
            if isinstance(local, Model):
                local.set_object(data if isinstance(item, Model) else local.parse(data))
            else:
                local.update(data)
            matched += 1

        added = self.add(pending) if pending else []
        self._audit("merge", {"matched": matched, "appended": len(pending)})
        return MergeResult(matched=matched, appended=len(pending), added=added)

    # Filter overlay

    def reset(self, records: Optional[Sequence[Any]] = None) -> "Collection":
        """Replace the visible records, or restore the unfiltered data.

        Without arguments, restores the data saved before filtering (no-op
        when not filtered). With a list, replaces the visible records; when
        called by a filter predicate, the unfiltered data is saved first.
        Re-filtering starts from the unfiltered data, so a predicate that
        then returns ``None`` or ``False`` leaves the collection unfiltered.
        """
        if records is None:
            if not self.filtered:
                return self
            previous = len(self._slots)
            self._slots = self._undo if self._undo is not None else []
            self._undo = None
            self.filtered = False
        else:
            if self._filtering and not self.filtered and self._undo is None:
                self._undo = list(self._slots)
            previous = len(self._slots)
            self._slots = [r for r in _as_list(records) if r is not None]

        self.length = len(self._slots)
        if previous != self.length:
            self.notify_observers("length", previous, self.length)
        self.trigger_event("reset", {"records": list(self._slots)})
        return self

    def clear_filter(self) -> "Collection":
        """Clear ``active_filter`` (restoring the unfiltered data)."""
        if self.active_filter:
            self.set("active_filter", "")
        return self

    def _active_filter_changed(self, old: Any, new: Any, prop: str) -> None:
        if new and new in self.filters:
            self.trigger_event("filter")
        else:
            self.reset()

    def _filter_prop_changed(self, old: Any, new: Any, prop: str) -> None:
        self.trigger_event("filter")

    def _filter_content(self, target: Any = None, event: Any = None, args: Any = None) -> None:
        if self._filtering:
            return
        if not (self.length or self._undo):
            return

        predicate = self.filters.get(self.active_filter) if self.active_filter else None
        if predicate is None:
            return

        before_slots = self._slots
        before_length = self.length
        self._filtering = True
        self._silenced = True
        try:
            # Predicates always see the complete data
            if self.filtered:
                self.reset()
            result = FilterResult.coerce(predicate(self))
            if result.records is not None:
                self.reset(result.records)
            elif not result.applied and self._undo is not None:
                self._rollback_filter()
        except Exception:
            if self._undo is not None:
                self._rollback_filter()
            raise
        finally:
            self._silenced = False
            self._filtering = False

        if not self._undo:
            self._undo = None
        self.filtered = self._undo is not None

        if self._slots is not before_slots:
            if before_length != self.length:
                self.notify_observers("length", before_length, self.length)
            self.trigger_event("reset", {"records": list(self._slots)})
        self._audit("filter", {"name": self.active_filter, "filtered": self.filtered, "length": self.length})

    def _rollback_filter(self) -> None:
        self._slots = self._undo
        self._undo = None
        self.filtered = False
        self.length = len(self._slots)

    # Fetching

    def fetch(
        self,
        options: Optional[Union[FetchOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> "asyncio.Task[None]":
        """Request data from a source and apply it with the chosen strategy.

        Must be called from a running event loop. The request starts only
        after the current synchronous block, so the ``replace``/``destroy``
        clearing always happens first. Failures go to ``options.fail`` and
        are never raised here.

        Returns:
            The task running the request
        """
        if self.filtered:
            self.reset()

        opts = FetchOptions.build(options, **kwargs)
        if opts.strategy is None:
            opts.strategy = self.store.config.default_strategy

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._request(opts))
        self._audit("start", {"strategy": opts.strategy, "replace": opts.replace, "destroy": opts.destroy}, category="fetch")

        if opts.replace and not opts.destroy:
            self.remove_all()
        elif opts.destroy:
            self.destroy_all()
        return task

    def fetch_and_replace(self, options: Optional[Union[FetchOptions, Dict[str, Any]]] = None, **kwargs: Any) -> "asyncio.Task[None]":
        return self.fetch(options, replace=True, **kwargs)

    def fetch_and_destroy(self, options: Optional[Union[FetchOptions, Dict[str, Any]]] = None, **kwargs: Any) -> "asyncio.Task[None]":
        return self.fetch(options, destroy=True, **kwargs)

    async def _request(self, options: FetchOptions) -> None:
        settled: List[bool] = []

        def success(collection: Any, opts: Any, result: Any) -> None:
            settled.append(True)
            self._did_fetch(options, collection, result)

        def fail(collection: Any, opts: Any, result: Any) -> None:
            settled.append(True)
            self._did_fail(options, collection, result)

        request = FetchOptions.build(options, success=success, fail=fail)
        if self.store is None:
            fail(self, request, {"error": "Collection was destroyed before the request started"})
            return

        store = self.store
        try:
            get_fetch_strategy(options.strategy)
        except ValueError as e:
            fail(self, request, e)
            return

        try:
            await store.fetch_records(self, request)
        except Exception as e:
            if settled:
                raise
            if store.audit:
                store.audit.log_error(e, collection=self.euid, operation="fetch")
            fail(self, request, e)

    def _did_fetch(self, options: FetchOptions, collection: Any, result: Any) -> None:
        parsed = self.parse(result)
        if parsed:
            get_fetch_strategy(options.strategy)(self, parsed)
        self._audit("success", {"strategy": options.strategy}, category="fetch")
        if options.success:
            options.success(collection, options, result)

    def _did_fail(self, options: FetchOptions, collection: Any, result: Any) -> None:
        self._audit("fail", {"result": result}, category="fetch")
        if options.fail:
            options.fail(collection, options, result)

    # Lifecycle

    def destroy(self) -> None:
        """Remove all records and destroy the ones this collection owns.

        Owned records are detached instead when ``preserve_records`` is set.
        """
        removed = self.remove_all()
        for record in removed.values():
            if isinstance(record, Model) and record.owner is self:
                if self.preserve_records:
                    record.owner = None
                else:
                    record.destroy()

        self.trigger_event("destroy")
        self._audit("destroy", {"removed": len(removed)})
        self.store.remove_collection(self)
        self.store = None
        self.destroyed = True

    # Event support, delegated to the store

    def add_listener(self, event: str, fn: Any) -> Any:
        return self.store.add_listener(self, event, fn)

    def remove_listener(self, event: str, fn: Any) -> bool:
        return self.store.remove_listener(self, event, fn)

    def add_observer(self, prop: str, fn: Any) -> Any:
        return self.store.add_observer(self, prop, fn)

    def remove_observer(self, prop: str, fn: Any) -> bool:
        return self.store.remove_observer(self, prop, fn)

    def notify_observers(self, prop: str, old: Any = None, new: Any = None) -> None:
        if not self._silenced and self.store is not None:
            self.store.notify_observers(self, prop, old, new)

    def trigger_event(self, event: str, args: Optional[Dict[str, Any]] = None) -> None:
        if not self._silenced and self.store is not None:
            self.store.trigger_event(self, event, args)

    def _audit(self, action: str, details: Dict[str, Any], category: str = "collection") -> None:
        if self.store is not None and self.store.audit:
            self.store.audit.log(category, action, details, collection=self.euid)
