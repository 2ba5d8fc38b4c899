"""Core abstractions for kcollection."""

from kcollection.core.collection import Collection, resolve_model
from kcollection.core.config import AuditConfig, CollectionConfig, load_config
from kcollection.core.errors import InvalidRecordState, KCollectionError
from kcollection.core.events import EventBus, ListenerError, create_counter_listener
from kcollection.core.fetch import FetchOptions, get_fetch_strategy, list_fetch_strategies, register_fetch_strategy
from kcollection.core.filters import FilterResult, FilterState, where
from kcollection.core.model import Model
from kcollection.core.store import Store

__all__ = [
    # Collection
    "Collection",
    "resolve_model",
    # Records and store
    "Model",
    "Store",
    "EventBus",
    "ListenerError",
    "create_counter_listener",
    # Filtering
    "FilterResult",
    "FilterState",
    "where",
    # Fetching
    "FetchOptions",
    "get_fetch_strategy",
    "list_fetch_strategies",
    "register_fetch_strategy",
    # Configuration
    "AuditConfig",
    "CollectionConfig",
    "load_config",
    # Errors
    "InvalidRecordState",
    "KCollectionError",
]
