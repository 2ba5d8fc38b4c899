"""
Model - mutable attribute bag with identity.

A record is identified by the value of its ``primary_key`` attribute and,
optionally, by the composite of its ``merge_keys``. Records emit ``change``
and ``destroy`` events through the store they were created by.
"""

import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from kcollection.core.store import Store


class Model:
    """Attribute bag record.

    Subclasses customize identity and incoming data handling:

        class Contact(Model):
            primary_key = "email"
            merge_keys = ["first_name", "last_name"]

            def parse(self, data):
                data["email"] = data.get("email", "").lower()
                return data
    """

    primary_key: str = "id"
    merge_keys: Optional[List[str]] = None
    # Names of registered matching strategies tried during a merge
    match_strategies: Tuple[str, ...] = ("primary_key", "merge_keys")

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        store: Optional["Store"] = None,
        owner: Any = None,
        **props: Any,
    ):
        """Initialize a record.

        Args:
            attributes: Raw attribute data, passed through ``parse()``
            store: Store providing the event bus for this record
            owner: Collection that created this record, if any
            **props: Extra instance properties
        """
        self.euid = uuid.uuid4().hex
        self.store = store
        self.owner = owner
        self.destroyed = False
        for name, value in props.items():
            setattr(self, name, value)
        self.attributes: Dict[str, Any] = dict(self.parse(dict(attributes or {})) or {})

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.primary_key}={self.get(self.primary_key)!r}>"

    def parse(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Overload to process incoming data before it is applied."""
        return data

    def get(self, path: str, default: Any = None) -> Any:
        """Get an attribute by dotted path (``"address.city"``)."""
        value: Any = self.attributes
        for part in path.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return default
            value = value[part]
        return value

    def set(self, path: str, value: Any) -> "Model":
        """Set a single attribute by dotted path and emit ``change`` if it changed."""
        *parents, name = path.split(".")
        target = self.attributes
        for part in parents:
            target = target.setdefault(part, {})
        old = target.get(name)
        if name in target and old == value:
            return self
        target[name] = value
        self.trigger_event("change", {"changed": {path: (old, value)}})
        return self

    def set_object(self, data: Dict[str, Any]) -> "Model":
        """Apply several top-level attributes at once.

        Emits a single ``change`` event listing every attribute whose value
        actually changed.
        """
        changed = {}
        for key, value in data.items():
            old = self.attributes.get(key)
            if key in self.attributes and old == value:
                continue
            self.attributes[key] = value
            changed[key] = (old, value)
        if changed:
            self.trigger_event("change", {"changed": changed})
        return self

    def raw(self) -> Dict[str, Any]:
        """Plain-data snapshot of the attributes."""
        return dict(self.attributes)

    def destroy(self) -> None:
        """Mark the record destroyed and emit ``destroy``."""
        if self.destroyed:
            return
        self.destroyed = True
        self.trigger_event("destroy")
        if self.store is not None:
            self.store.remove_record(self)

    # Event support, delegated to the store

    def add_listener(self, event: str, fn: Any) -> Any:
        if self.store is None:
            return fn
        return self.store.add_listener(self, event, fn)

    def remove_listener(self, event: str, fn: Any) -> bool:
        if self.store is None:
            return False
        return self.store.remove_listener(self, event, fn)

    def trigger_event(self, event: str, args: Optional[Dict[str, Any]] = None) -> None:
        if self.store is not None:
            self.store.trigger_event(self, event, args)
