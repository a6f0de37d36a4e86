"""Keyed store for sharing service instances across components.

The store is a plain reference cache: entries are only removed by explicit
``delete``/``clear`` calls. A single process-wide store is shared by every
factory that is not given its own; the render pipeline resets it before
each independent server render so instances never leak between requests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from typing_extensions import override

if TYPE_CHECKING:
    from exact_state.instance import ServiceInstance

logger = logging.getLogger(__name__)


class KeyedStore(ABC):
    """Abstract base class for service instance stores.

    Keys are opaque strings. Callers are responsible for namespacing them
    (factories prefix every key with their factory id).
    """

    @abstractmethod
    def get(self, key: str) -> ServiceInstance | None:
        """Return the instance stored under key, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, instance: ServiceInstance) -> None:
        """Store instance under key, replacing any existing entry."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the entry for key.

        No-op if the key does not exist.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry.

        Must never raise, including on an empty store.
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List all stored keys."""
        pass

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self.keys())

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())


class InMemoryKeyedStore(KeyedStore):
    """Dictionary-backed store.

    No thread safety is provided: a store is only ever touched by one
    render pass or one page at a time.
    """

    def __init__(self) -> None:
        """Initialise an empty store."""
        self._entries: dict[str, ServiceInstance] = {}

    @override
    def get(self, key: str) -> ServiceInstance | None:
        return self._entries.get(key)

    @override
    def set(self, key: str, instance: ServiceInstance) -> None:
        self._entries[key] = instance
        logger.debug("Stored service instance under '%s'", key)

    @override
    def delete(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Evicted service instance '%s'", key)

    @override
    def clear(self) -> None:
        # Rebind rather than clear in place so snapshots taken earlier stay intact
        count = len(self._entries)
        self._entries = {}
        logger.debug("Cleared %d cached service instance(s)", count)

    @override
    def keys(self) -> list[str]:
        return list(self._entries)

    def snapshot_state(self) -> dict[str, ServiceInstance]:
        """Capture current entries for later restoration.

        This is primarily used for test isolation.

        Returns:
            Shallow copy of the key to instance mapping

        """
        return dict(self._entries)

    def restore_state(self, state: dict[str, ServiceInstance]) -> None:
        """Restore entries from a previously captured snapshot.

        Args:
            state: Mapping from snapshot_state()

        """
        self._entries = dict(state)


_default_store: InMemoryKeyedStore | None = None

# Render-wide props payload, replaced on every render
_locals: dict[str, Any] = {}


def get_default_store() -> InMemoryKeyedStore:
    """Get or create the process-wide store.

    Returns:
        Shared store used by factories that were not given their own

    """
    global _default_store
    if _default_store is None:
        _default_store = InMemoryKeyedStore()
    return _default_store


def reset() -> None:
    """Drop every cached instance from the process-wide store.

    Also empties the render locals. Called by the render pipeline before
    constructing the component tree for a new request. Safe to call before
    anything has been stored.
    """
    global _locals
    get_default_store().clear()
    _locals = {}


def set_locals(props: Mapping[str, Any]) -> None:
    """Replace the render-wide props payload.

    Args:
        props: Root props of the current render (server) or the
            bootstrapped props payload (client)

    """
    global _locals
    _locals = dict(props)


def get_locals() -> dict[str, Any]:
    """Return a copy of the render-wide props payload.

    Empty until the first render, and again after reset().
    """
    return dict(_locals)
