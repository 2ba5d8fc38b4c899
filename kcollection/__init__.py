"""
kcollection - ordered, lazily-materialized record collections

Collections hold raw attribute hashes and turn them into records only
when they are read. They reconcile incoming data by key, filter their
contents reversibly, and notify listeners synchronously.

Core components:
- Collection: the record sequence (add/remove/merge/filter/fetch)
- Model: attribute-bag record with primary key and merge keys
- Store: event bus, record factory and source registry
- AuditLogger: JSONL audit trail of collection operations

Sources:
- MemorySource: payloads held in memory
- FileSource: JSON/YAML files
"""

__version__ = "0.1.0"

# Core modules
from kcollection.core import (
    AuditConfig,
    Collection,
    CollectionConfig,
    EventBus,
    FetchOptions,
    FilterResult,
    FilterState,
    InvalidRecordState,
    KCollectionError,
    ListenerError,
    Model,
    Store,
    load_config,
    where,
)
from kcollection.audit import AuditLogger, init_audit_logger

# Matching and sources
from kcollection.matching import KeyMatcher, MergeResult
from kcollection.sources import FileSource, MemorySource, Source, register_source

__all__ = [
    # Core
    "Collection",
    "Model",
    "Store",
    "EventBus",
    "ListenerError",
    "FetchOptions",
    "FilterResult",
    "FilterState",
    "where",
    "AuditConfig",
    "CollectionConfig",
    "load_config",
    "InvalidRecordState",
    "KCollectionError",
    # Audit
    "AuditLogger",
    "init_audit_logger",
    # Matching
    "KeyMatcher",
    "MergeResult",
    # Sources
    "Source",
    "FileSource",
    "MemorySource",
    "register_source",
]
