"""
Base classes for data sources.

A source performs the actual retrieval for ``Collection.fetch()``. It
receives the collection and the fetch options and settles the request by
calling exactly one of ``options.success(collection, options, result)`` or
``options.fail(collection, options, result)``.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from kcollection.core.fetch import FetchOptions


class Source(ABC):
    """Abstract base class for data sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name (e.g., 'memory', 'file')."""
        pass

    @abstractmethod
    async def fetch(self, collection: Any, options: "FetchOptions") -> None:
        """Retrieve data for ``collection`` and settle through the options' callbacks."""
        pass


# Source registry for loading by name
_SOURCE_REGISTRY: Dict[str, type] = {}


def register_source(name: str):
    """Decorator to register a source class."""
    def decorator(cls):
        _SOURCE_REGISTRY[name] = cls
        return cls
    return decorator


def get_source(name: str) -> type:
    """Get a source class by name."""
    if name not in _SOURCE_REGISTRY:
        raise ValueError(f"Unknown source: {name}. Available: {list(_SOURCE_REGISTRY.keys())}")
    return _SOURCE_REGISTRY[name]


def list_sources() -> List[str]:
    """List available source names."""
    return list(_SOURCE_REGISTRY.keys())


def load_sources(names: List[str], **kwargs) -> Dict[str, Source]:
    """Load and instantiate sources by name.

    Args:
        names: List of source names to load
        **kwargs: Arguments passed to source constructors

    Returns:
        Mapping of name to instantiated source
    """
    return {name: get_source(name)(**kwargs) for name in names}
