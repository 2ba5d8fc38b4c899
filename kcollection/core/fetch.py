"""
Fetch options and strategies.

A strategy decides how data received from a source is applied to a
collection:

- ``add``: append every incoming record at the end (the default)
- ``merge``: update records with the same key, append the rest
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

if TYPE_CHECKING:
    from kcollection.core.collection import Collection
    from kcollection.sources.base import Source

# (collection, options, result) -> None
FetchCallback = Callable[[Any, "FetchOptions", Any], None]


@dataclass
class FetchOptions:
    """Options for a single fetch request."""

    strategy: Optional[str] = None
    """Strategy name; None uses the store's configured default"""

    replace: bool = False
    """Remove (without destroying) current records before results arrive"""

    destroy: bool = False
    """Remove and destroy current records before results arrive"""

    source: Optional[Union[str, "Source"]] = None
    """Source name or instance; None uses the collection's default source"""

    success: Optional[FetchCallback] = None
    fail: Optional[FetchCallback] = None

    params: Dict[str, Any] = field(default_factory=dict)
    """Source-specific parameters (e.g. a file path)"""

    @classmethod
    def build(
        cls,
        options: Optional[Union["FetchOptions", Dict[str, Any]]] = None,
        **overrides: Any,
    ) -> "FetchOptions":
        """Build a fresh options object; the caller's options are never mutated."""
        if options is None:
            base = cls()
        elif isinstance(options, FetchOptions):
            base = replace(options, params=dict(options.params))
        else:
            base = cls(**options)
        return replace(base, **overrides) if overrides else base


# Strategy registry for dispatch by name
_FETCH_STRATEGIES: Dict[str, Callable[["Collection", List[Any]], Any]] = {}


def register_fetch_strategy(name: str):
    """Decorator to register a fetch strategy."""
    def decorator(fn):
        _FETCH_STRATEGIES[name] = fn
        return fn
    return decorator


def get_fetch_strategy(name: str) -> Callable[["Collection", List[Any]], Any]:
    """Get a fetch strategy by name."""
    if name not in _FETCH_STRATEGIES:
        raise ValueError(
            f"Unknown fetch strategy: {name}. Available: {list(_FETCH_STRATEGIES.keys())}"
        )
    return _FETCH_STRATEGIES[name]


def list_fetch_strategies() -> List[str]:
    """List available fetch strategy names."""
    return list(_FETCH_STRATEGIES.keys())


@register_fetch_strategy("add")
def add_strategy(collection: "Collection", records: List[Any]) -> Any:
    return collection.add(records)


@register_fetch_strategy("merge")
def merge_strategy(collection: "Collection", records: List[Any]) -> Any:
    return collection.merge(records)
