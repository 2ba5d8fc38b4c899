"""
Base classes for matching strategies.

Matching strategies decide whether an incoming record corresponds to a
record already held by a collection during a merge.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


def read_value(item: Any, key: str) -> Any:
    """Read ``key`` from a raw dict or a model instance.

    Both expose ``get()``; anything else has no readable keys.
    """
    getter = getattr(item, "get", None)
    if getter is None:
        return None
    return getter(key)


@dataclass
class MergeResult:
    """Outcome of merging a batch into a collection."""

    matched: int = 0  # Local records updated in place
    appended: int = 0  # Incoming records added at the end
    added: List[int] = field(default_factory=list)  # Indices reported by the add event

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"matched": self.matched, "appended": self.appended, "added": list(self.added)}


class MatchStrategy(ABC):
    """Abstract base class for record matching strategies.

    Each strategy implements one identity rule:
    - PrimaryKeyMatchStrategy: equal primary key values
    - MergeKeysMatchStrategy: every merge key value equal
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name (e.g., 'primary_key', 'merge_keys')."""
        pass

    @abstractmethod
    def usable(self, incoming: Any) -> bool:
        """Whether ``incoming`` carries enough data for this strategy."""
        pass

    @abstractmethod
    def matches(self, incoming: Any, candidate: Any) -> bool:
        """Whether ``incoming`` identifies the same record as ``candidate``."""
        pass


# Strategy registry for loading by name
_STRATEGY_REGISTRY: Dict[str, type] = {}


def register_strategy(name: str):
    """Decorator to register a matching strategy."""
    def decorator(cls):
        _STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


def get_strategy(name: str) -> type:
    """Get a strategy class by name."""
    if name not in _STRATEGY_REGISTRY:
        raise ValueError(f"Unknown strategy: {name}. Available: {list(_STRATEGY_REGISTRY.keys())}")
    return _STRATEGY_REGISTRY[name]


def list_strategies() -> List[str]:
    """List available strategy names."""
    return list(_STRATEGY_REGISTRY.keys())
