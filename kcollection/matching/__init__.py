"""Matching strategies for merge reconciliation."""

from kcollection.matching.base import (
    MatchStrategy,
    MergeResult,
    read_value,
    register_strategy,
    get_strategy,
    list_strategies,
)
from kcollection.matching.keys import (
    KeyMatcher,
    MergeKeysMatchStrategy,
    PrimaryKeyMatchStrategy,
)

__all__ = [
    "MatchStrategy",
    "MergeResult",
    "read_value",
    "register_strategy",
    "get_strategy",
    "list_strategies",
    "KeyMatcher",
    "MergeKeysMatchStrategy",
    "PrimaryKeyMatchStrategy",
]
