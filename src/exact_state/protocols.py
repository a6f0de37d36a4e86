"""Protocols for host components consumed by the state service store."""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Component(Protocol):
    """Capability set a host UI component must provide.

    Identity is the object identity of the component. Components may also
    carry a ``props`` mapping (read when no props are passed to the mixin)
    and a ``service_refs`` mutable mapping (populated for mixins with a
    ``ref`` option); both are optional.
    """

    def set_state(self, partial: Mapping[str, Any]) -> None:
        """Merge a partial update into the component's local state."""
        ...
