"""
Key-based matching strategies.

Identity comes from the model type: its ``primary_key`` and optional
``merge_keys``. A defined primary key value that equals the candidate's
is always a match; otherwise every merge key must be equal.
"""

from typing import Any, List, Optional, Sequence

from kcollection.matching.base import MatchStrategy, get_strategy, read_value, register_strategy

DEFAULT_STRATEGIES = ("primary_key", "merge_keys")


@register_strategy("primary_key")
class PrimaryKeyMatchStrategy(MatchStrategy):
    """Match on equality of the primary key value."""

    def __init__(self, primary_key: str = "id", **kwargs):
        self.primary_key = primary_key

    @property
    def name(self) -> str:
        return "primary_key"

    def usable(self, incoming: Any) -> bool:
        return read_value(incoming, self.primary_key) is not None

    def matches(self, incoming: Any, candidate: Any) -> bool:
        value = read_value(incoming, self.primary_key)
        return value is not None and value == read_value(candidate, self.primary_key)


@register_strategy("merge_keys")
class MergeKeysMatchStrategy(MatchStrategy):
    """Match when every merge key value is equal (short-circuits on first mismatch)."""

    def __init__(self, merge_keys: Optional[Sequence[str]] = None, **kwargs):
        self.merge_keys: List[str] = list(merge_keys or [])

    @property
    def name(self) -> str:
        return "merge_keys"

    def usable(self, incoming: Any) -> bool:
        return bool(self.merge_keys)

    def matches(self, incoming: Any, candidate: Any) -> bool:
        if not self.merge_keys:
            return False
        for key in self.merge_keys:
            if read_value(incoming, key) != read_value(candidate, key):
                return False
        return True


class KeyMatcher:
    """Finds the local slot an incoming record should be merged into.

    Usage:
        matcher = KeyMatcher.for_model(Contact)
        position = matcher.find(incoming, pool)
        if position is not None:
            local = pool.pop(position)
    """

    def __init__(
        self,
        primary_key: str = "id",
        merge_keys: Optional[Sequence[str]] = None,
        strategies: Sequence[str] = DEFAULT_STRATEGIES,
    ):
        self.strategies: List[MatchStrategy] = [
            get_strategy(name)(primary_key=primary_key, merge_keys=merge_keys)
            for name in strategies
        ]

    @classmethod
    def for_model(cls, model: type) -> "KeyMatcher":
        """Build a matcher from a model type's identity declaration."""
        return cls(
            primary_key=getattr(model, "primary_key", "id"),
            merge_keys=getattr(model, "merge_keys", None),
            strategies=getattr(model, "match_strategies", DEFAULT_STRATEGIES),
        )

    def usable(self, incoming: Any) -> bool:
        """An incoming record with no usable key can never match."""
        return any(strategy.usable(incoming) for strategy in self.strategies)

    def find(self, incoming: Any, pool: Sequence[Any]) -> Optional[int]:
        """Return the position in ``pool`` of the first matching candidate.

        Candidates are checked in order; for each one the strategies are
        tried in turn.
        """
        active = [s for s in self.strategies if s.usable(incoming)]
        if not active:
            return None

        for position, candidate in enumerate(pool):
            for strategy in active:
                if strategy.matches(incoming, candidate):
                    return position
        return None
