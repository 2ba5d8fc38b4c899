"""
Store - shared infrastructure for collections and records.

Provides:
- the listener/observer bus every collection and record emits through
- the record factory (``create_record``)
- registries of live collections, records and data sources

A store is an explicit dependency: every collection is constructed with
the store it belongs to.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from kcollection.audit import AuditLogger
from kcollection.core.config import CollectionConfig
from kcollection.core.events import EventBus, Listener, ListenerError, Observer
from kcollection.core.model import Model
from kcollection.sources.base import Source, list_sources, load_sources


class Store:
    """Observer/event bus and record factory shared by collections.

    Usage:
        store = Store(config=load_config())
        store.register_source(MemorySource({"/todos": [...]}))

        todos = Collection(store=store, url="/todos")
    """

    def __init__(
        self,
        config: Optional[CollectionConfig] = None,
        audit: Optional[AuditLogger] = None,
        sources: Optional[List[Source]] = None,
        error_handler: Optional[Callable[[ListenerError], None]] = None,
    ):
        """Initialize store.

        Args:
            config: Collection defaults (defaults to CollectionConfig())
            audit: Audit logger; built from ``config.audit`` when omitted
            sources: Source instances registered in addition to the built-ins
            error_handler: Optional callback for listener errors
        """
        self.config = config or CollectionConfig()
        if audit is None and self.config.audit.log_path:
            audit = AuditLogger(self.config.audit.log_path, self.config.audit.retention_days)
        self.audit = audit
        self._error_handler = error_handler
        self._bus = EventBus(error_handler=self._on_listener_error)

        self.collections: Dict[str, Any] = {}
        self.records: Dict[str, Model] = {}
        self._sources: Dict[str, Source] = load_sources(list_sources())
        for source in sources or []:
            self.register_source(source)

    # Registries

    def add_collection(self, collection: Any) -> None:
        self.collections[collection.euid] = collection

    def remove_collection(self, collection: Any) -> None:
        self.collections.pop(collection.euid, None)
        self._bus.forget(collection.euid)

    def create_record(
        self,
        model: type,
        attrs: Optional[Dict[str, Any]] = None,
        props: Optional[Dict[str, Any]] = None,
    ) -> Model:
        """Create a record of type ``model`` bound to this store."""
        record = model(attrs, store=self, **(props or {}))
        self.records[record.euid] = record
        return record

    def remove_record(self, record: Model) -> None:
        self.records.pop(record.euid, None)
        self._bus.forget(record.euid)

    def register_source(self, source: Source, name: Optional[str] = None) -> None:
        """Register a source instance, replacing any source with the same name."""
        self._sources[name or source.name] = source

    def get_source(self, name: str) -> Optional[Source]:
        return self._sources.get(name)

    async def fetch_records(self, collection: Any, options: Any) -> None:
        """Run a fetch request through the source named by the options.

        An unknown source settles the request as failed.
        """
        source: Union[str, Source, None] = options.source or collection.default_source
        if not isinstance(source, Source):
            name = source
            source = self._sources.get(name) if name else None
            if source is None:
                options.fail(collection, options, {"error": f"Unknown source: {name}"})
                return

        await source.fetch(collection, options)

    # Listeners and observers

    def add_listener(self, target: Any, event: str, fn: Listener) -> Listener:
        return self._bus.add_listener(target.euid, event, fn)

    def remove_listener(self, target: Any, event: str, fn: Listener) -> bool:
        return self._bus.remove_listener(target.euid, event, fn)

    def trigger_event(self, target: Any, event: str, args: Optional[Dict[str, Any]] = None) -> None:
        self._bus.trigger(target, event, args)

    def add_observer(self, target: Any, prop: str, fn: Observer) -> Observer:
        return self._bus.add_observer(target.euid, prop, fn)

    def remove_observer(self, target: Any, prop: str, fn: Observer) -> bool:
        return self._bus.remove_observer(target.euid, prop, fn)

    def notify_observers(self, target: Any, prop: str, old: Any = None, new: Any = None) -> None:
        self._bus.notify(target, prop, old, new)

    def get_errors(self) -> List[ListenerError]:
        """Listener and observer errors recorded so far (oldest first)."""
        return self._bus.get_errors()

    def _on_listener_error(self, error: ListenerError) -> None:
        if self.audit:
            self.audit.log("error", "listener", error.to_dict())
        if self._error_handler:
            self._error_handler(error)
