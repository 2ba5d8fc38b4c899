"""
Listener and observer bus shared by every object registered with a store.

Two kinds of callbacks are supported:

- listeners receive named events: ``fn(target, event, args)``
- observers receive property changes: ``fn(old, new, prop)``

Targets are keyed by their ``euid`` so a single bus can serve all
collections and records of a store.

Usage:
    bus = EventBus()
    bus.add_listener(collection.euid, "add", on_add)
    bus.trigger(collection, "add", {"records": [0]})
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple


class Listener(Protocol):
    """Protocol for event listeners.

    Listeners should handle their own errors - exceptions are caught and
    recorded but do not stop dispatch to the remaining listeners.
    """

    def __call__(self, target: Any, event: str, args: Optional[Dict[str, Any]]) -> None:
        """Handle an event emitted by ``target``."""
        ...


class Observer(Protocol):
    """Protocol for property observers."""

    def __call__(self, old: Any, new: Any, prop: str) -> None:
        """Handle a change of ``prop`` from ``old`` to ``new``."""
        ...


@dataclass
class ListenerError:
    """Record of a listener or observer execution error."""

    target: str
    listener_name: str
    event: str
    error: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "target": self.target,
            "listener_name": self.listener_name,
            "event": self.event,
            "error": self.error,
            "timestamp": self.timestamp,
        }


class EventBus:
    """Synchronous dispatcher for listeners and observers.

    Callbacks run in registration order. Registering the same callable
    twice for the same target and name is a no-op, so bound methods can be
    re-registered safely.
    """

    def __init__(self, error_handler: Optional[Callable[[ListenerError], None]] = None):
        """
        Initialize the bus.

        Args:
            error_handler: Optional callback for listener errors.
                          If not provided, errors are only recorded.
        """
        self._listeners: Dict[Tuple[str, str], List[Listener]] = {}
        self._observers: Dict[Tuple[str, str], List[Observer]] = {}
        self._error_handler = error_handler
        self._errors: List[ListenerError] = []

    # Listeners

    def add_listener(self, euid: str, event: str, fn: Listener) -> Listener:
        """Register ``fn`` for ``event`` on the target with ``euid``.

        Returns:
            The registered callable (handy for later removal)
        """
        listeners = self._listeners.setdefault((euid, event), [])
        if fn not in listeners:
            listeners.append(fn)
        return fn

    def remove_listener(self, euid: str, event: str, fn: Listener) -> bool:
        """Unregister a listener.

        Returns:
            True if the listener was found and removed
        """
        listeners = self._listeners.get((euid, event))
        if not listeners:
            return False

        try:
            listeners.remove(fn)
            return True
        except ValueError:
            return False

    def trigger(self, target: Any, event: str, args: Optional[Dict[str, Any]] = None) -> None:
        """Dispatch ``event`` to every listener registered on ``target``."""
        # Copy: listeners may unregister themselves while running
        for fn in list(self._listeners.get((target.euid, event), [])):
            try:
                fn(target, event, args)
            except Exception as e:
                self._record(target.euid, fn, event, e)

    def get_listeners(self, euid: str, event: str) -> List[Listener]:
        """Get the listeners registered for ``event`` on a target."""
        return list(self._listeners.get((euid, event), []))

    # Observers

    def add_observer(self, euid: str, prop: str, fn: Observer) -> Observer:
        """Register ``fn`` for changes of ``prop`` on the target with ``euid``."""
        observers = self._observers.setdefault((euid, prop), [])
        if fn not in observers:
            observers.append(fn)
        return fn

    def remove_observer(self, euid: str, prop: str, fn: Observer) -> bool:
        """Unregister an observer.

        Returns:
            True if the observer was found and removed
        """
        observers = self._observers.get((euid, prop))
        if not observers:
            return False

        try:
            observers.remove(fn)
            return True
        except ValueError:
            return False

    def notify(self, target: Any, prop: str, old: Any, new: Any) -> None:
        """Notify every observer of ``prop`` on ``target``."""
        for fn in list(self._observers.get((target.euid, prop), [])):
            try:
                fn(old, new, prop)
            except Exception as e:
                self._record(target.euid, fn, prop, e)

    def get_observers(self, euid: str, prop: str) -> List[Observer]:
        """Get the observers registered for ``prop`` on a target."""
        return list(self._observers.get((euid, prop), []))

    # Housekeeping

    def forget(self, euid: str) -> None:
        """Drop every listener and observer registered on a target."""
        for key in [k for k in self._listeners if k[0] == euid]:
            del self._listeners[key]
        for key in [k for k in self._observers if k[0] == euid]:
            del self._observers[key]

    def get_errors(self) -> List[ListenerError]:
        """
        Get all listener execution errors.

        Returns:
            List of errors (oldest first)
        """
        return list(self._errors)

    def clear_errors(self) -> None:
        """Clear error history."""
        self._errors.clear()

    @property
    def listener_count(self) -> int:
        """Total number of registered listeners and observers."""
        return sum(len(fns) for fns in self._listeners.values()) + sum(
            len(fns) for fns in self._observers.values()
        )

    def _record(self, euid: str, fn: Callable, name: str, exc: Exception) -> None:
        error = ListenerError(
            target=euid,
            listener_name=_get_callable_name(fn),
            event=name,
            error=f"{type(exc).__name__}: {exc}",
            timestamp=datetime.now().isoformat(),
        )
        self._errors.append(error)

        if self._error_handler:
            try:
                self._error_handler(error)
            except Exception:
                pass  # Don't let error handler errors propagate


def _get_callable_name(fn: Callable) -> str:
    """Get a descriptive name for a listener."""
    if hasattr(fn, "__qualname__"):
        return fn.__qualname__
    if hasattr(fn, "__class__"):
        return fn.__class__.__name__
    return str(fn)


def create_counter_listener() -> Tuple[Listener, Callable[[], Dict[str, int]]]:
    """
    Create a listener that counts events by name.

    Returns:
        Tuple of (listener function, get_counts function)
    """
    counts: Dict[str, int] = {}

    def counter_listener(target: Any, event: str, args: Optional[Dict[str, Any]]) -> None:
        counts[event] = counts.get(event, 0) + 1

    def get_counts() -> Dict[str, int]:
        return dict(counts)

    return counter_listener, get_counts
