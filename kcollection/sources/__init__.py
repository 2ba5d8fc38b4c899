"""Data sources used by Collection.fetch()."""

from kcollection.sources.base import (
    Source,
    register_source,
    get_source,
    list_sources,
    load_sources,
)
from kcollection.sources.file import FileSource, load_payload
from kcollection.sources.memory import MemorySource

__all__ = [
    "Source",
    "register_source",
    "get_source",
    "list_sources",
    "load_sources",
    "FileSource",
    "MemorySource",
    "load_payload",
]
